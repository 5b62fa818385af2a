"""Quaternion helpers module.

Quaternions are stored in scalar-last (x, y, z, w) order to match
:class:`scipy.spatial.transform.Rotation`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from scipy.spatial.transform import Rotation as R

if TYPE_CHECKING:
    from numpy.typing import NDArray


IDENTITY_QUAT = np.array([0.0, 0.0, 0.0, 1.0])


def quat_multiply(q1: NDArray[np.floating], q2: NDArray[np.floating]) -> NDArray[np.floating]:
    """Hamilton product q1 ⊗ q2 of two xyzw quaternions."""
    x1, y1, z1, w1 = q1
    x2, y2, z2, w2 = q2
    return np.array(
        [
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        ]
    )


def quat_derivative(q: NDArray[np.floating], omega: NDArray[np.floating]) -> NDArray[np.floating]:
    """Quaternion kinematics q_dot = 0.5 * q ⊗ (omega, 0) with omega in the body frame."""
    return 0.5 * quat_multiply(q, np.array([omega[0], omega[1], omega[2], 0.0]))


def normalize_quat(q: NDArray[np.floating]) -> NDArray[np.floating]:
    """Return the unit quaternion of ``q``. Degenerate quaternions map to the identity."""
    norm = np.linalg.norm(q)
    if norm == 0 or not np.isfinite(norm):
        return IDENTITY_QUAT.copy()
    return q / norm


def rotate(q: NDArray[np.floating], v: NDArray[np.floating], inverse: bool = False) -> NDArray:
    """Rotate a body-frame vector into the world frame (or back if ``inverse``)."""
    return R.from_quat(q).apply(v, inverse=inverse)


def quat_to_wxyz(q: NDArray[np.floating]) -> NDArray[np.floating]:
    """Reorder an xyzw quaternion into scalar-first order."""
    return np.array([q[3], q[0], q[1], q[2]])
