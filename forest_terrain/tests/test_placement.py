"""Tests for the density and slope gated vegetation scatter."""
from __future__ import annotations

import math

import numpy as np
import pytest

from forest_terrain.config import TerrainConfig
from forest_terrain.mesh import generate_heightfield_mesh
from forest_terrain.noise import NoiseField
from forest_terrain.placement import DEFAULT_RULES, is_eligible, scatter, steepness
from forest_terrain.vector import Vector3


def _grid(half_size: int, seed: int = 0, low: float = -20.0, high: float = 60.0):
    # //1.- Synthetic terrain: random heights on a unit grid with vertical normals.
    rng = np.random.default_rng(seed)
    axis = np.arange(-half_size, half_size + 1, dtype=np.float64)
    xx, zz = np.meshgrid(axis, axis)
    heights = rng.uniform(low, high, size=xx.size)
    positions = np.stack([xx.ravel(), heights, zz.ravel()], axis=1)
    normals = np.tile((0.0, 1.0, 0.0), (positions.shape[0], 1))
    return positions, normals


def _mesh(config: TerrainConfig):
    return generate_heightfield_mesh(NoiseField.from_config(config), config.half_size)


def test_reference_example_with_zero_density_places_nothing() -> None:
    config = TerrainConfig(half_size=4, seed=42, frequency=1.0, octaves=6, density=0.0)
    mesh = _mesh(config)
    assert mesh.vertex_count == 81
    assert scatter(mesh.positions, mesh.normals, config, config.seed, variant_count=3) == []


def test_zero_variants_short_circuit() -> None:
    positions, normals = _grid(5)
    config = TerrainConfig(density=1.0, max_steepness=2.0)
    assert scatter(positions, normals, config, 1, variant_count=0) == []


def test_full_density_plants_every_eligible_vertex() -> None:
    positions, normals = _grid(200)
    config = TerrainConfig(half_size=200, density=1.0, max_steepness=2.0)
    instances = scatter(positions, normals, config, 42, variant_count=3)
    eligible = int(np.count_nonzero(positions[:, 1] > DEFAULT_RULES.min_height))
    assert eligible > 0
    assert len(instances) == eligible


def test_density_above_one_is_clamped() -> None:
    positions, normals = _grid(20)
    full = scatter(positions, normals, TerrainConfig(density=1.0, max_steepness=2.0), 5, 2)
    clamped = scatter(positions, normals, TerrainConfig(density=4.0, max_steepness=2.0), 5, 2)
    assert full == clamped


def test_half_density_admits_about_half() -> None:
    positions, normals = _grid(100, low=1.0, high=50.0)
    config = TerrainConfig(density=0.5, max_steepness=2.0)
    instances = scatter(positions, normals, config, 2024, variant_count=1)
    fraction = len(instances) / positions.shape[0]
    assert abs(fraction - 0.5) < 0.02


def test_instances_respect_height_and_slope_gates() -> None:
    config = TerrainConfig(half_size=50, seed=8, density=0.8, max_steepness=0.95)
    mesh = _mesh(config)
    instances = scatter(mesh.positions, mesh.normals, config, config.seed, variant_count=3)
    assert instances
    for instance in instances:
        source = mesh.positions[instance.vertex_index]
        normal = mesh.normals[instance.vertex_index]
        assert source[1] > DEFAULT_RULES.min_height
        assert steepness(normal) <= config.max_steepness
        assert is_eligible(source, normal, config)


def test_steep_vertices_are_rejected() -> None:
    positions, normals = _grid(10, low=5.0, high=10.0)
    tilt = math.radians(60.0)
    normals[:] = (math.sin(tilt), math.cos(tilt), 0.0)
    config = TerrainConfig(density=1.0, max_steepness=0.5)
    assert scatter(positions, normals, config, 3, variant_count=2) == []
    assert steepness(normals[0]) == pytest.approx(math.sin(tilt))


def test_jitter_scale_and_variant_ranges() -> None:
    positions, normals = _grid(30, low=1.0, high=90.0)
    config = TerrainConfig(density=1.0, max_steepness=2.0)
    instances = scatter(positions, normals, config, 77, variant_count=3)
    low_scale, high_scale = DEFAULT_RULES.scale_range
    for instance in instances:
        source = positions[instance.vertex_index]
        offset = instance.translation - Vector3.from_iter(source)
        assert abs(offset.x) <= DEFAULT_RULES.horizontal_jitter + 1e-12
        assert abs(offset.z) <= DEFAULT_RULES.horizontal_jitter + 1e-12
        assert -0.05 - 1e-12 <= offset.y <= 1e-12
        attenuation = 1.0 - source[1] / DEFAULT_RULES.attenuation_height
        assert low_scale * attenuation - 1e-12 <= instance.scale <= high_scale * attenuation + 1e-12
        assert 0 <= instance.variant < 3
    assert {instance.variant for instance in instances} == {0, 1, 2}


def test_rotation_stands_asset_upright_and_spins_about_up() -> None:
    positions, normals = _grid(6, low=1.0, high=5.0)
    instances = scatter(positions, normals, TerrainConfig(density=1.0, max_steepness=2.0), 13, 1)
    spins = set()
    for instance in instances:
        assert instance.rotation.length() == pytest.approx(1.0)
        up = instance.rotation.rotate(Vector3.unit_z())
        assert up.x == pytest.approx(0.0, abs=1e-9)
        assert up.y == pytest.approx(1.0)
        assert up.z == pytest.approx(0.0, abs=1e-9)
        forward = instance.rotation.rotate(Vector3.unit_x())
        spins.add(round(math.atan2(forward.z, forward.x), 6))
    assert len(spins) > 1


def test_scatter_is_reproducible() -> None:
    positions, normals = _grid(12)
    config = TerrainConfig(density=0.6, max_steepness=2.0)
    first = scatter(positions, normals, config, 1234, variant_count=3)
    second = scatter(positions, normals, config, 1234, variant_count=3)
    other = scatter(positions, normals, config, 4321, variant_count=3)
    assert first
    assert first == second
    assert first != other


def test_scatter_over_generated_mesh_is_reproducible() -> None:
    config = TerrainConfig(half_size=10, seed=99, density=0.6, max_steepness=0.6)
    mesh_a = _mesh(config)
    mesh_b = _mesh(config)
    first = scatter(mesh_a.positions, mesh_a.normals, config, config.seed, variant_count=3)
    second = scatter(mesh_b.positions, mesh_b.normals, config, config.seed, variant_count=3)
    assert first == second


def test_bare_vertices_do_not_consume_the_stream() -> None:
    positions, normals = _grid(8, low=1.0, high=20.0)
    config = TerrainConfig(density=0.5, max_steepness=2.0)
    baseline = scatter(positions, normals, config, 55, variant_count=2)

    # //2.- Prefix vertices below the shoreline; they must be skipped without a draw.
    shore = np.array([[0.0, -1.0, 0.0], [1.0, 0.01, 0.0], [2.0, 0.0, 0.0]])
    shifted = scatter(
        np.vstack([shore, positions]),
        np.vstack([np.tile((0.0, 1.0, 0.0), (3, 1)), normals]),
        config,
        55,
        variant_count=2,
    )
    assert len(shifted) == len(baseline)
    for before, after in zip(baseline, shifted):
        assert after.vertex_index == before.vertex_index + 3
        assert after.translation == before.translation
        assert after.rotation == before.rotation
        assert after.scale == before.scale


def test_accepts_plain_sequences() -> None:
    positions = [(0.0, 5.0, 0.0), (1.0, 5.0, 0.0)]
    normals = [(0.0, 1.0, 0.0), (0.0, 1.0, 0.0)]
    instances = scatter(positions, normals, TerrainConfig(density=1.0), 0, variant_count=1)
    assert [instance.vertex_index for instance in instances] == [0, 1]


def test_mismatched_inputs_are_rejected() -> None:
    with pytest.raises(ValueError):
        scatter([(0.0, 1.0, 0.0)], [], TerrainConfig(), 0, variant_count=1)
