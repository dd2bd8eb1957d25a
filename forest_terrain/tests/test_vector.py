"""Tests for the vector and quaternion helpers."""
from __future__ import annotations

import math

import pytest

from forest_terrain.vector import Quaternion, Vector3, yaw_matrix


def test_vector_arithmetic() -> None:
    a = Vector3(1.0, 2.0, 3.0)
    b = Vector3(-2.0, 0.5, 4.0)
    assert a + b == Vector3(-1.0, 2.5, 7.0)
    assert a - b == Vector3(3.0, 1.5, -1.0)
    assert 2.0 * a == a * 2.0 == Vector3(2.0, 4.0, 6.0)
    assert a.dot(b) == pytest.approx(11.0)
    assert Vector3.unit_x().cross(Vector3.unit_y()) == Vector3.unit_z()


def test_normalized_rejects_zero_vector() -> None:
    assert Vector3(3.0, 0.0, 4.0).normalized() == Vector3(0.6, 0.0, 0.8)
    with pytest.raises(ValueError):
        Vector3.zero().normalized()


def test_identity_leaves_vectors_alone() -> None:
    vector = Vector3(0.3, -1.2, 5.0)
    assert Quaternion.identity().rotate(vector) == vector


def test_axis_angle_rotation() -> None:
    quarter = Quaternion.from_axis_angle(Vector3.unit_y(), math.pi / 2.0)
    rotated = quarter.rotate(Vector3.unit_x())
    assert rotated.x == pytest.approx(0.0, abs=1e-12)
    assert rotated.z == pytest.approx(-1.0)
    assert quarter.length() == pytest.approx(1.0)


def test_product_applies_right_operand_first() -> None:
    about_x = Quaternion.from_axis_angle(Vector3.unit_x(), math.pi / 2.0)
    about_z = Quaternion.from_axis_angle(Vector3.unit_z(), math.pi / 2.0)
    combined = (about_x * about_z).rotate(Vector3.unit_x())
    stepwise = about_x.rotate(about_z.rotate(Vector3.unit_x()))
    assert combined.as_tuple() == pytest.approx(stepwise.as_tuple())
    assert combined.as_tuple() == pytest.approx((0.0, 0.0, 1.0), abs=1e-12)


@pytest.mark.parametrize("angle", [0.0, 0.4, math.pi / 2.0, 2.5, -1.1])
def test_yaw_matrix_matches_quaternion(angle: float) -> None:
    matrix = yaw_matrix(angle)
    quat = Quaternion.from_axis_angle(Vector3.unit_y(), angle)
    vector = Vector3(1.5, -0.5, 2.0)
    expected = quat.rotate(vector)
    actual = tuple(sum(row[i] * vector.as_tuple()[i] for i in range(3)) for row in matrix)
    assert actual == pytest.approx(expected.as_tuple())
