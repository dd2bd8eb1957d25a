"""Lightweight vector and quaternion helpers.

Only the handful of operations needed by the terrain pipeline are
implemented. Bulk vertex data lives in numpy arrays; these types describe
single placement transforms and the axes used to build them.
"""
from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Iterable, Tuple


@dataclass(frozen=True)
class Vector3:
    """Immutable 3D vector with a handful of math helpers."""

    x: float
    y: float
    z: float

    def __add__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> "Vector3":
        return Vector3(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def dot(self, other: "Vector3") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: "Vector3") -> "Vector3":
        return Vector3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def length(self) -> float:
        return math.sqrt(self.dot(self))

    def normalized(self) -> "Vector3":
        length = self.length()
        if length == 0.0:
            raise ValueError("Cannot normalize zero-length vector")
        return Vector3(self.x / length, self.y / length, self.z / length)

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    @staticmethod
    def zero() -> "Vector3":
        return Vector3(0.0, 0.0, 0.0)

    @staticmethod
    def unit_x() -> "Vector3":
        return Vector3(1.0, 0.0, 0.0)

    @staticmethod
    def unit_y() -> "Vector3":
        return Vector3(0.0, 1.0, 0.0)

    @staticmethod
    def unit_z() -> "Vector3":
        return Vector3(0.0, 0.0, 1.0)

    @staticmethod
    def from_iter(values: Iterable[float]) -> "Vector3":
        x, y, z = values
        return Vector3(float(x), float(y), float(z))


@dataclass(frozen=True)
class Quaternion:
    """Unit quaternion stored as ``(x, y, z, w)``."""

    x: float
    y: float
    z: float
    w: float

    @staticmethod
    def identity() -> "Quaternion":
        return Quaternion(0.0, 0.0, 0.0, 1.0)

    @staticmethod
    def from_axis_angle(axis: Vector3, angle: float) -> "Quaternion":
        unit = axis.normalized()
        half = angle * 0.5
        s = math.sin(half)
        return Quaternion(unit.x * s, unit.y * s, unit.z * s, math.cos(half))

    def __mul__(self, other: "Quaternion") -> "Quaternion":
        # Hamilton product: ``self * other`` applies ``other`` first.
        return Quaternion(
            self.w * other.x + self.x * other.w + self.y * other.z - self.z * other.y,
            self.w * other.y - self.x * other.z + self.y * other.w + self.z * other.x,
            self.w * other.z + self.x * other.y - self.y * other.x + self.z * other.w,
            self.w * other.w - self.x * other.x - self.y * other.y - self.z * other.z,
        )

    def rotate(self, vector: Vector3) -> Vector3:
        """Rotate ``vector`` by this quaternion."""

        q = Vector3(self.x, self.y, self.z)
        t = q.cross(vector) * 2.0
        return vector + t * self.w + q.cross(t)

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z + self.w * self.w)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.z, self.w)


def yaw_matrix(angle: float) -> Tuple[Tuple[float, float, float], ...]:
    """Return the row-major 3x3 matrix rotating by ``angle`` about +Y.

    Matches ``Quaternion.from_axis_angle(Vector3.unit_y(), angle)`` so that
    bulk numpy rotation of vertex data agrees with single-vector rotation.
    """

    c = math.cos(angle)
    s = math.sin(angle)
    return (
        (c, 0.0, s),
        (0.0, 1.0, 0.0),
        (-s, 0.0, c),
    )
