"""Heightfield mesh construction for the terrain surface."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterator, Optional

import numpy as np

from .errors import TangentGenerationError
from .noise import NoiseField
from .vector import Vector3, yaw_matrix

UP = np.array([0.0, 1.0, 0.0])
_DEGENERATE_EPSILON = 1e-12


@dataclass(frozen=True)
class HeightSample:
    position: Vector3
    normal: Vector3


@dataclass(frozen=True)
class HeightfieldMesh:
    """Indexed triangle mesh of a subdivided, displaced plane.

    Vertices are stored row-major: index ``row * columns + column`` where
    the row walks +Z and the column walks +X. ``tangents`` holds ``xyz`` plus
    a handedness sign in ``w`` and is ``None`` until generated.
    """

    positions: np.ndarray
    normals: np.ndarray
    uvs: np.ndarray
    indices: np.ndarray
    columns: int
    tangents: Optional[np.ndarray] = None

    @property
    def vertex_count(self) -> int:
        return int(self.positions.shape[0])

    @property
    def triangle_count(self) -> int:
        return int(self.indices.shape[0])

    @property
    def heights(self) -> np.ndarray:
        return self.positions[:, 1]

    def sample(self, index: int) -> HeightSample:
        return HeightSample(
            position=Vector3.from_iter(self.positions[index]),
            normal=Vector3.from_iter(self.normals[index]),
        )

    def samples(self) -> Iterator[HeightSample]:
        for index in range(self.vertex_count):
            yield self.sample(index)

    def summary(self) -> str:
        return (
            f"Mesh: vertices={self.vertex_count}, triangles={self.triangle_count}, "
            f"height range=({self.heights.min():.2f}, {self.heights.max():.2f}), "
            f"tangents={'yes' if self.tangents is not None else 'no'}"
        )


def build_plane(size: float, subdivisions: int) -> HeightfieldMesh:
    """Create a flat plane centred on the origin facing +Y.

    The plane has ``subdivisions`` cells per axis, a UV unwrap spanning
    ``0..1`` over the full extent, and two counter-clockwise triangles per
    cell when viewed from above.
    """

    if subdivisions < 1:
        raise ValueError("subdivisions must be >= 1")
    if size <= 0.0:
        raise ValueError("size must be positive")
    columns = subdivisions + 1
    t = np.arange(columns, dtype=np.float64) / subdivisions
    axis = np.linspace(-0.5 * size, 0.5 * size, columns)
    xx, zz = np.meshgrid(axis, axis)
    tu, tv = np.meshgrid(t, t)

    positions = np.stack([xx.ravel(), np.zeros(xx.size), zz.ravel()], axis=1)
    normals = np.tile(UP, (positions.shape[0], 1))
    uvs = np.stack([tu.ravel(), tv.ravel()], axis=1)

    row, col = np.mgrid[0:subdivisions, 0:subdivisions]
    quad = (row * columns + col).ravel()
    first = np.stack([quad + columns + 1, quad + 1, quad + columns], axis=1)
    second = np.stack([quad, quad + columns, quad + 1], axis=1)
    # Interleave so every cell contributes its two triangles consecutively.
    indices = np.stack([first, second], axis=1).reshape(-1, 3).astype(np.uint32)

    return HeightfieldMesh(positions=positions, normals=normals, uvs=uvs, indices=indices, columns=columns)


def displace(mesh: HeightfieldMesh, noise: NoiseField) -> HeightfieldMesh:
    """Replace each vertex's Y with the noise height above its original X/Z.

    Normals and tangents are dropped since they no longer describe the
    displaced surface.
    """

    xs = mesh.positions[: mesh.columns, 0]
    zs = mesh.positions[:: mesh.columns, 2]
    heights = noise.height_grid(xs, zs)
    positions = mesh.positions.copy()
    positions[:, 1] = heights.ravel()
    return replace(mesh, positions=positions, normals=np.zeros_like(positions), tangents=None)


def compute_smooth_normals(mesh: HeightfieldMesh) -> HeightfieldMesh:
    """Average area-weighted face normals onto every vertex."""

    tri = mesh.indices.astype(np.int64)
    p0 = mesh.positions[tri[:, 0]]
    p1 = mesh.positions[tri[:, 1]]
    p2 = mesh.positions[tri[:, 2]]
    # Unnormalised cross products weight each face by twice its area.
    face_normals = np.cross(p1 - p0, p2 - p0)

    accumulated = np.zeros_like(mesh.positions)
    for corner in range(3):
        np.add.at(accumulated, tri[:, corner], face_normals)

    lengths = np.linalg.norm(accumulated, axis=1)
    normals = np.tile(UP, (mesh.vertex_count, 1))
    valid = lengths > _DEGENERATE_EPSILON
    normals[valid] = accumulated[valid] / lengths[valid, None]
    return replace(mesh, normals=normals)


def generate_tangents(mesh: HeightfieldMesh) -> HeightfieldMesh:
    """Derive per-vertex tangents from positions, normals and UVs.

    Raises :class:`TangentGenerationError` when a triangle has a degenerate
    UV mapping or a vertex ends up without a usable tangent direction.
    """

    tri = mesh.indices.astype(np.int64)
    p0, p1, p2 = (mesh.positions[tri[:, corner]] for corner in range(3))
    w0, w1, w2 = (mesh.uvs[tri[:, corner]] for corner in range(3))

    edge1 = p1 - p0
    edge2 = p2 - p0
    duv1 = w1 - w0
    duv2 = w2 - w0
    det = duv1[:, 0] * duv2[:, 1] - duv2[:, 0] * duv1[:, 1]
    degenerate = np.abs(det) < _DEGENERATE_EPSILON
    if np.any(degenerate):
        first = int(np.argmax(degenerate))
        raise TangentGenerationError(
            f"{int(degenerate.sum())} triangles have degenerate UVs (first: triangle {first})"
        )
    inv = 1.0 / det
    sdir = (edge1 * duv2[:, 1, None] - edge2 * duv1[:, 1, None]) * inv[:, None]
    tdir = (edge2 * duv1[:, 0, None] - edge1 * duv2[:, 0, None]) * inv[:, None]

    tan1 = np.zeros_like(mesh.positions)
    tan2 = np.zeros_like(mesh.positions)
    for corner in range(3):
        np.add.at(tan1, tri[:, corner], sdir)
        np.add.at(tan2, tri[:, corner], tdir)

    normals = mesh.normals
    # Gram-Schmidt against the vertex normal.
    ortho = tan1 - normals * np.sum(normals * tan1, axis=1)[:, None]
    lengths = np.linalg.norm(ortho, axis=1)
    if np.any(lengths < _DEGENERATE_EPSILON):
        bad = int(np.argmax(lengths < _DEGENERATE_EPSILON))
        raise TangentGenerationError(f"Vertex {bad} has no usable tangent direction")
    tangent_xyz = ortho / lengths[:, None]
    handedness = np.where(np.sum(np.cross(normals, tangent_xyz) * tan2, axis=1) < 0.0, -1.0, 1.0)
    tangents = np.concatenate([tangent_xyz, handedness[:, None]], axis=1)
    return replace(mesh, tangents=tangents)


def rotate_yaw(mesh: HeightfieldMesh, angle: float) -> HeightfieldMesh:
    """Rigidly rotate positions, normals and tangents about +Y."""

    if angle == 0.0:
        return mesh
    matrix = np.array(yaw_matrix(angle))
    positions = mesh.positions @ matrix.T
    normals = mesh.normals @ matrix.T
    tangents = None
    if mesh.tangents is not None:
        tangents = mesh.tangents.copy()
        tangents[:, :3] = mesh.tangents[:, :3] @ matrix.T
    return replace(mesh, positions=positions, normals=normals, tangents=tangents)


def generate_heightfield_mesh(
    noise: NoiseField,
    half_size: int,
    *,
    with_tangents: bool = True,
    rotation: float = 0.0,
) -> HeightfieldMesh:
    """Build the terrain mesh for a ``2 * half_size`` square centred on the origin."""

    if half_size <= 0:
        raise ValueError("half_size must be > 0")
    mesh = build_plane(size=half_size * 2.0, subdivisions=half_size * 2)
    mesh = displace(mesh, noise)
    mesh = compute_smooth_normals(mesh)
    if with_tangents:
        mesh = generate_tangents(mesh)
    return rotate_yaw(mesh, rotation)
