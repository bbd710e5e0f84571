"""Pose helpers for 4x4 homogeneous matrices and (w, x, y, z) quaternions."""

import math

import numpy as np

_SCALE_EPSILON = 1e-9
_SLERP_LINEAR_THRESHOLD = 1.0 - float(np.finfo(np.float64).eps)


def get_translation(pose):
    """Return the translation column of a 4x4 pose as a float64 vector."""
    return np.asarray(pose)[:3, 3].astype(np.float64)


def extract_rotation_without_scale(pose, scale):
    """Return the upper-left 3x3 block of ``pose`` divided by ``scale``.

    A near-zero scale leaves the block untouched.
    """
    block = np.array(np.asarray(pose, dtype=np.float64)[:3, :3])
    if abs(scale) < _SCALE_EPSILON:
        return block
    return block / scale


def rotation_matrix_to_quaternion(rotation):
    """Convert a 3x3 rotation matrix to a (w, x, y, z) quaternion."""
    r = np.asarray(rotation, dtype=np.float64)
    trace = r[0, 0] + r[1, 1] + r[2, 2]
    if trace > 0.0:
        t = math.sqrt(trace + 1.0)
        w = 0.5 * t
        t = 0.5 / t
        return np.array(
            [
                w,
                (r[2, 1] - r[1, 2]) * t,
                (r[0, 2] - r[2, 0]) * t,
                (r[1, 0] - r[0, 1]) * t,
            ]
        )

    i = 0
    if r[1, 1] > r[0, 0]:
        i = 1
    if r[2, 2] > r[i, i]:
        i = 2
    j = (i + 1) % 3
    k = (j + 1) % 3
    t = math.sqrt(r[i, i] - r[j, j] - r[k, k] + 1.0)
    vector = np.zeros(3)
    vector[i] = 0.5 * t
    t = 0.5 / t
    w = (r[k, j] - r[j, k]) * t
    vector[j] = (r[j, i] + r[i, j]) * t
    vector[k] = (r[k, i] + r[i, k]) * t
    return np.concatenate(([w], vector))


def quaternion_to_rotation_matrix(quaternion):
    """Convert a unit (w, x, y, z) quaternion to a 3x3 rotation matrix."""
    w, x, y, z = (float(c) for c in quaternion)
    tx, ty, tz = 2.0 * x, 2.0 * y, 2.0 * z
    twx, twy, twz = tx * w, ty * w, tz * w
    txx, txy, txz = tx * x, ty * x, tz * x
    tyy, tyz, tzz = ty * y, tz * y, tz * z
    return np.array(
        [
            [1.0 - (tyy + tzz), txy - twz, txz + twy],
            [txy + twz, 1.0 - (txx + tzz), tyz - twx],
            [txz - twy, tyz + twx, 1.0 - (txx + tyy)],
        ]
    )


def normalize_quaternion(quaternion):
    """Return ``quaternion`` scaled to unit length; a zero quaternion is returned as is."""
    q = np.asarray(quaternion, dtype=np.float64)
    norm = float(np.linalg.norm(q))
    if norm > 0.0:
        return q / norm
    return q.copy()


def slerp(start, end, t):
    """Spherically interpolate from ``start`` towards ``end`` by fraction ``t``."""
    q0 = np.asarray(start, dtype=np.float64)
    q1 = np.asarray(end, dtype=np.float64)
    d = float(np.dot(q0, q1))
    abs_d = abs(d)
    if abs_d >= _SLERP_LINEAR_THRESHOLD:
        scale0 = 1.0 - t
        scale1 = t
    else:
        theta = math.acos(abs_d)
        sin_theta = math.sin(theta)
        scale0 = math.sin((1.0 - t) * theta) / sin_theta
        scale1 = math.sin(t * theta) / sin_theta
    if d < 0.0:
        scale1 = -scale1
    return scale0 * q0 + scale1 * q1


def euler_angles_zyx(rotation):
    """Return (yaw, pitch, roll) such that rotation = Rz(yaw) @ Ry(pitch) @ Rx(roll).

    The yaw lies in [-pi, 0] ... [0, pi] following the usual half-turn
    convention: the first angle is kept in [0, pi].
    """
    m = np.asarray(rotation, dtype=np.float64)
    i, j, k = 2, 1, 0
    first = math.atan2(m[j, k], m[k, k])
    c2 = math.hypot(m[i, i], m[i, j])
    if first < 0.0:
        first += math.pi
        second = math.atan2(-m[i, k], -c2)
    else:
        second = math.atan2(-m[i, k], c2)
    s1 = math.sin(first)
    c1 = math.cos(first)
    third = math.atan2(s1 * m[k, i] - c1 * m[j, i], c1 * m[j, j] - s1 * m[k, j])
    return np.array([first, second, third])


def construct_pose_matrix(translation, quaternion, scaling):
    """Build a float32 4x4 pose from a translation, a quaternion and a 3x3 scaling matrix."""
    pose = np.identity(4)
    rotation = quaternion_to_rotation_matrix(normalize_quaternion(quaternion))
    pose[:3, :3] = rotation @ np.asarray(scaling, dtype=np.float64)
    pose[:3, 3] = np.asarray(translation, dtype=np.float64)
    return pose.astype(np.float32)