"""Rigid-body helpers for calibration matrices, IMU orientation and 3D boxes."""

import math
from typing import Tuple

import numpy as np

from .tp_types import Box3D, Quaternion


def to_homogeneous(M: np.ndarray) -> np.ndarray:
    """
    Embed a 3x3 rotation or 3x4 rigid transform into a 4x4 matrix.

    Args:
        M: (3, 3) or (3, 4) matrix

    Returns:
        4x4 homogeneous matrix with last row [0, 0, 0, 1]
    """
    M = np.asarray(M, dtype=np.float64)
    if M.shape not in ((3, 3), (3, 4)):
        raise ValueError(f"expected a 3x3 or 3x4 matrix, got {M.shape}")
    T = np.eye(4)
    T[:3, : M.shape[1]] = M
    return T


def invert_transform(T: np.ndarray) -> np.ndarray:
    """
    Invert a 4x4 homogeneous transformation matrix.

    For SE(3): T^-1 = [R^T, -R^T * t; 0, 1]. Rectifying rotations are
    close to but not exactly orthonormal, use np.linalg.inv for those.

    Args:
        T: 4x4 transformation matrix

    Returns:
        4x4 inverted transformation matrix
    """
    T_inv = np.eye(4)
    R = T[:3, :3]
    t = T[:3, 3]

    R_T = R.T
    T_inv[:3, :3] = R_T
    T_inv[:3, 3] = -R_T @ t

    return T_inv


def quaternion_from_rpy(roll: float, pitch: float, yaw: float) -> Quaternion:
    """
    Quaternion for fixed-axis roll/pitch/yaw (rotate X, then Y, then Z).

    Same convention as ROS tf createQuaternionFromRPY, which is how the
    OXTS orientation is reported.
    """
    hr, hp, hy = roll / 2.0, pitch / 2.0, yaw / 2.0
    cr, sr = math.cos(hr), math.sin(hr)
    cp, sp = math.cos(hp), math.sin(hp)
    cy, sy = math.cos(hy), math.sin(hy)
    return Quaternion(
        x=sr * cp * cy - cr * sp * sy,
        y=cr * sp * cy + sr * cp * sy,
        z=cr * cp * sy - sr * sp * cy,
        w=cr * cp * cy + sr * sp * sy,
    )


def quaternion_from_yaw(yaw: float) -> Quaternion:
    """Rotation of `yaw` radians around +Z."""
    return Quaternion(0.0, 0.0, math.sin(yaw / 2.0), math.cos(yaw / 2.0))


def box_corners(box: Box3D) -> np.ndarray:
    """
    Corners of a yaw-rotated 3D box.

    Args:
        box: box with center, (length, width, height) and heading

    Returns:
        (8, 3) array; rows 0-3 are the bottom face, 4-7 the top face,
        both counter-clockwise starting at front-left.
    """
    l, w, h = box.dimensions
    xs = np.array([l, -l, -l, l, l, -l, -l, l]) / 2.0
    ys = np.array([w, w, -w, -w, w, w, -w, -w]) / 2.0
    zs = np.array([-h, -h, -h, -h, h, h, h, h]) / 2.0
    c, s = math.cos(box.heading), math.sin(box.heading)
    R = np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])
    corners = R @ np.vstack([xs, ys, zs])
    return corners.T + np.asarray(box.center, dtype=np.float64)


def camera_to_velo(
    point_rect: Tuple[float, float, float], R_rect: np.ndarray, Tr_velo_cam: np.ndarray
) -> np.ndarray:
    """
    Map a point from the rectified camera frame back to the velodyne frame.

    velo = inv(Tr_velo_cam) @ inv(R_rect) @ rect

    Args:
        point_rect: (x, y, z) in rectified camera coordinates
        R_rect: 3x3 rectifying rotation
        Tr_velo_cam: 3x4 velodyne-to-camera transform

    Returns:
        (3,) point in velodyne coordinates
    """
    rect = np.append(np.asarray(point_rect, dtype=np.float64), 1.0)
    R_inv = np.linalg.inv(to_homogeneous(R_rect))
    T_inv = invert_transform(to_homogeneous(Tr_velo_cam))
    return (T_inv @ R_inv @ rect)[:3]
