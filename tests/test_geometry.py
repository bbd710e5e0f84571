import math

import numpy as np
import pytest

from posefilter.geometry import (
    construct_pose_matrix,
    euler_angles_zyx,
    extract_rotation_without_scale,
    get_translation,
    normalize_quaternion,
    quaternion_to_rotation_matrix,
    rotation_matrix_to_quaternion,
    slerp,
)


def _axis_angle(axis, angle):
    axis = np.asarray(axis, dtype=np.float64)
    axis = axis / np.linalg.norm(axis)
    return np.concatenate(([math.cos(angle / 2)], math.sin(angle / 2) * axis))


def _rz(a):
    c, s = math.cos(a), math.sin(a)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def _ry(a):
    c, s = math.cos(a), math.sin(a)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


def _rx(a):
    c, s = math.cos(a), math.sin(a)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])


ROTATIONS = [
    _axis_angle([0, 0, 1], 0.3),
    _axis_angle([1, 2, 3], 1.1),
    _axis_angle([1, 0, 0], math.pi),
    _axis_angle([0, 1, 0], math.pi),
    _axis_angle([0, 0, 1], math.pi),
    _axis_angle([1, -1, 0.5], 2.9),
]


def test_get_translation_reads_last_column():
    pose = np.identity(4, dtype=np.float32)
    pose[:3, 3] = [1.5, -2.0, 3.25]
    result = get_translation(pose)
    assert result.dtype == np.float64
    assert np.array_equal(result, [1.5, -2.0, 3.25])


def test_extract_rotation_divides_by_scale():
    pose = np.identity(4)
    pose[:3, :3] = 2.0 * _rz(0.4)
    assert np.allclose(extract_rotation_without_scale(pose, 2.0), _rz(0.4))


def test_extract_rotation_near_zero_scale_falls_back():
    pose = np.identity(4)
    pose[:3, :3] = 3.0 * _rz(0.4)
    assert np.allclose(extract_rotation_without_scale(pose, 1e-12), 3.0 * _rz(0.4))


def test_identity_quaternion():
    assert np.allclose(rotation_matrix_to_quaternion(np.identity(3)), [1, 0, 0, 0])


@pytest.mark.parametrize("q", ROTATIONS)
def test_quaternion_round_trip(q):
    rotation = quaternion_to_rotation_matrix(q)
    back = rotation_matrix_to_quaternion(rotation)
    assert abs(abs(float(np.dot(back, q))) - 1.0) < 1e-9


@pytest.mark.parametrize("q", ROTATIONS)
def test_rotation_matrix_is_orthonormal(q):
    rotation = quaternion_to_rotation_matrix(q)
    assert np.allclose(rotation @ rotation.T, np.identity(3))
    assert np.linalg.det(rotation) == pytest.approx(1.0)


def test_normalize_quaternion_unit_length():
    assert np.linalg.norm(normalize_quaternion([2.0, 1.0, -1.0, 0.5])) == pytest.approx(1.0)


def test_normalize_zero_quaternion_unchanged():
    assert np.array_equal(normalize_quaternion([0.0, 0.0, 0.0, 0.0]), np.zeros(4))


def test_slerp_endpoints():
    a = _axis_angle([0, 0, 1], 0.0)
    b = _axis_angle([0, 0, 1], 1.2)
    assert np.allclose(slerp(a, b, 0.0), a)
    assert np.allclose(slerp(a, b, 1.0), b)


def test_slerp_midpoint_is_equidistant_and_unit():
    a = _axis_angle([1, 0, 0], 0.2)
    b = _axis_angle([0, 1, 1], 1.4)
    mid = slerp(a, b, 0.5)
    assert np.linalg.norm(mid) == pytest.approx(1.0)
    assert float(np.dot(mid, a)) == pytest.approx(float(np.dot(mid, b)))


def test_slerp_takes_short_path_for_negated_target():
    a = _axis_angle([0, 0, 1], 0.3)
    b = _axis_angle([0, 0, 1], 0.9)
    direct = slerp(a, b, 0.4)
    flipped = slerp(a, -b, 0.4)
    assert np.allclose(direct, flipped)


def test_slerp_identical_quaternions():
    a = _axis_angle([1, 1, 0], 0.7)
    assert np.allclose(slerp(a, a, 0.3), a)


@pytest.mark.parametrize(
    "yaw, pitch, roll",
    [(0.3, 0.2, 0.1), (-1.0, 0.5, 2.0), (2.5, -1.2, -0.4), (0.0, 0.0, 0.0)],
)
def test_euler_angles_reconstruct_rotation(yaw, pitch, roll):
    rotation = _rz(yaw) @ _ry(pitch) @ _rx(roll)
    y, p, r = euler_angles_zyx(rotation)
    assert np.allclose(_rz(y) @ _ry(p) @ _rx(r), rotation)
    assert 0.0 <= y <= math.pi


def test_construct_pose_matrix_layout():
    q = _axis_angle([0, 0, 1], 0.5)
    pose = construct_pose_matrix([1.0, 2.0, 3.0], q, 2.0 * np.identity(3))
    assert pose.dtype == np.float32
    assert np.array_equal(pose[3], [0, 0, 0, 1])
    assert np.allclose(pose[:3, 3], [1.0, 2.0, 3.0])
    assert np.allclose(pose[:3, :3], 2.0 * _rz(0.5), atol=1e-6)


def test_construct_pose_matrix_normalizes_quaternion():
    q = _axis_angle([1, 2, 0], 0.8)
    a = construct_pose_matrix(np.zeros(3), q, np.identity(3))
    b = construct_pose_matrix(np.zeros(3), 3.0 * q, np.identity(3))
    assert np.allclose(a, b)