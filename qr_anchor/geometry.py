"""
Geometry Utilities

Vector and pose math used to measure marker separation and orientation.
All functions are pure; degenerate input may produce NaN.
"""

from typing import Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation


def _vec(v: Sequence[float]) -> np.ndarray:
    return np.asarray(v, dtype=np.float64).reshape(-1)


def subtract(a: Sequence[float], b: Sequence[float]) -> np.ndarray:
    """Component-wise a - b."""
    return _vec(a) - _vec(b)


def length(v: Sequence[float]) -> float:
    """Magnitude of a vector."""
    return float(np.linalg.norm(_vec(v)))


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two points in world coordinates."""
    return length(subtract(a, b))


def xz_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Distance projected onto the ground (XZ) plane, ignoring height."""
    d = subtract(a, b)
    return float(np.hypot(d[0], d[2]))


def position_of(transform: np.ndarray) -> np.ndarray:
    """Translation component of a 4x4 transform."""
    return np.asarray(transform, dtype=np.float64)[:3, 3].copy()


def translation_matrix(vector: Sequence[float]) -> np.ndarray:
    """4x4 homogeneous transform that translates by vector."""
    t = np.eye(4, dtype=np.float64)
    t[:3, 3] = _vec(vector)[:3]
    return t


def euler_angles(rotation: np.ndarray) -> Tuple[float, float, float]:
    """
    Decompose a rotation into (pitch, yaw, roll) in radians.

    Uses the Y-X-Z convention (R = Ry(yaw) @ Rx(pitch) @ Rz(roll)), so
    pitch = asin(-R[1, 2]), yaw = atan2(R[0, 2], R[2, 2]) and
    roll = atan2(R[1, 0], R[1, 1]).

    Args:
        rotation: 3x3 rotation matrix or 4x4 transform

    Returns:
        (pitch, yaw, roll)
    """
    m = np.asarray(rotation, dtype=np.float64)
    if m.shape == (4, 4):
        m = m[:3, :3]
    if m.shape != (3, 3):
        raise ValueError(f"Expected a 3x3 rotation or 4x4 transform, got {m.shape}")

    yaw, pitch, roll = Rotation.from_matrix(m).as_euler('YXZ')
    return float(pitch), float(yaw), float(roll)


def rotate_point(point: Sequence[float],
                 origin: Sequence[float],
                 degrees: float) -> Tuple[float, float]:
    """Rotate a 2D point around origin by the given angle in degrees."""
    dx = point[0] - origin[0]
    dy = point[1] - origin[1]
    radius = np.hypot(dx, dy)
    azimuth = np.arctan2(dy, dx) + np.radians(degrees)
    return (float(origin[0] + radius * np.cos(azimuth)),
            float(origin[1] + radius * np.sin(azimuth)))
