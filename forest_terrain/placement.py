"""Density and slope gated scattering of vegetation over the terrain mesh."""
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from .config import TerrainConfig
from .noise import HEIGHT_AMPLITUDE
from .vector import Quaternion, Vector3

LOGGER = logging.getLogger(__name__)


# //1.- Tunables shared by every scatter pass; the defaults suit the stylised fir asset.
@dataclass(frozen=True)
class ScatterRules:
    # Vertices at or below this height count as shoreline and stay bare.
    min_height: float = 0.01
    horizontal_jitter: float = 0.25
    vertical_jitter: Tuple[float, float] = (-0.05, 0.0)
    scale_range: Tuple[float, float] = (0.02, 0.025)
    # Instances shrink towards the shore by ``1 - height / attenuation_height``.
    attenuation_height: float = HEIGHT_AMPLITUDE
    # The vegetation asset is authored Z-up; this turns it upright before the random spin.
    base_rotation: Quaternion = field(
        default_factory=lambda: Quaternion.from_axis_angle(Vector3.unit_x(), 3.0 * math.pi / 2.0)
    )
    spin_axis: Vector3 = field(default_factory=Vector3.unit_z)


DEFAULT_RULES = ScatterRules()


# //2.- A single scattered object ready for the scene collaborator to instantiate.
@dataclass(frozen=True)
class PlacementInstance:
    translation: Vector3
    scale: float
    rotation: Quaternion
    variant: int
    vertex_index: int


def steepness(normal: Sequence[float]) -> float:
    """Return ``|n x up|``: the sine of the angle between ``normal`` and +Y.

    For up-axis ``(0, 1, 0)`` the cross product is ``(-n.z, 0, n.x)``.
    """

    return math.hypot(normal[0], normal[2])


def is_eligible(position: Sequence[float], normal: Sequence[float], config: TerrainConfig,
                rules: ScatterRules = DEFAULT_RULES) -> bool:
    """Deterministic part of the gate: height and slope, without the density roll."""

    return position[1] > rules.min_height and steepness(normal) <= config.max_steepness


def scatter(
    positions: Sequence[Sequence[float]],
    normals: Sequence[Sequence[float]],
    config: TerrainConfig,
    rng_seed: int,
    variant_count: int,
    rules: ScatterRules = DEFAULT_RULES,
) -> List[PlacementInstance]:
    """Choose vegetation placements over the mesh vertices.

    Vertices are visited in index order and a single ``random.Random`` stream
    seeded with ``rng_seed`` is consumed along the way, so the same inputs
    always produce the same list. Per vertex:

    * skip when the height is at or below ``rules.min_height`` (no draw);
    * draw the density roll and skip when it is below ``1 - density``;
    * skip when ``steepness(normal) > config.max_steepness``;
    * otherwise draw the jitter (x, y, z), the variant, the scale and the spin.

    With ``variant_count == 0`` there is nothing to instantiate and the pass
    returns an empty list without consuming the stream.
    """

    if variant_count <= 0:
        return []
    if len(positions) != len(normals):
        raise ValueError("positions and normals must have the same length")

    rng = random.Random(rng_seed)
    threshold = 1.0 - config.effective_density
    max_steepness = config.max_steepness
    jitter = rules.horizontal_jitter
    low_y, high_y = rules.vertical_jitter
    low_scale, high_scale = rules.scale_range

    # Plain lists keep the per-vertex loop off numpy scalar boxing.
    position_rows = positions.tolist() if hasattr(positions, "tolist") else positions
    normal_rows = normals.tolist() if hasattr(normals, "tolist") else normals

    instances: List[PlacementInstance] = []
    for index, (position, normal) in enumerate(zip(position_rows, normal_rows)):
        height = position[1]
        if height <= rules.min_height:
            continue
        if rng.random() < threshold:
            continue
        if steepness(normal) > max_steepness:
            continue

        offset = Vector3(
            rng.uniform(-jitter, jitter),
            rng.uniform(low_y, high_y),
            rng.uniform(-jitter, jitter),
        )
        variant = rng.randrange(variant_count)
        scale = rng.uniform(low_scale, high_scale) * (1.0 - height / rules.attenuation_height)
        spin = Quaternion.from_axis_angle(rules.spin_axis, rng.uniform(0.0, math.tau))
        instances.append(
            PlacementInstance(
                translation=Vector3.from_iter(position) + offset,
                scale=scale,
                rotation=rules.base_rotation * spin,
                variant=variant,
                vertex_index=index,
            )
        )

    LOGGER.debug("Scattered %d instances over %d vertices", len(instances), len(position_rows))
    return instances
