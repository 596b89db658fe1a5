"""World-frame to vehicle-frame coordinate transforms.

After ``to_vehicle_frame`` the vehicle sits at the origin facing +x, so its own
x, y and heading are all zero.
"""

from typing import Sequence, Tuple

import numpy as np
import numpy.typing as npt


def to_vehicle_frame(
    xs: Sequence[float], ys: Sequence[float], px: float, py: float, psi: float
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Express world-frame points in the vehicle's frame.

    Each point is translated by (-px, -py) and then rotated by -psi.

    Args:
        xs: World-frame x coordinates.
        ys: World-frame y coordinates.
        px: Vehicle x position (world frame).
        py: Vehicle y position (world frame).
        psi: Vehicle heading (rad).

    Returns:
        Tuple of (x, y) arrays in the vehicle frame, same order and length.

    Raises:
        ValueError: If xs and ys differ in length.
    """
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    if xs.shape != ys.shape:
        raise ValueError(f"Point arrays differ in length: {xs.shape} vs {ys.shape}")

    dx = xs - px
    dy = ys - py
    cos_psi = np.cos(-psi)
    sin_psi = np.sin(-psi)

    return dx * cos_psi - dy * sin_psi, dx * sin_psi + dy * cos_psi


def to_world_frame(
    xs: Sequence[float], ys: Sequence[float], px: float, py: float, psi: float
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Inverse of ``to_vehicle_frame``: rotate by psi, then translate by (px, py)."""
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    if xs.shape != ys.shape:
        raise ValueError(f"Point arrays differ in length: {xs.shape} vs {ys.shape}")

    cos_psi = np.cos(psi)
    sin_psi = np.sin(psi)

    return xs * cos_psi - ys * sin_psi + px, xs * sin_psi + ys * cos_psi + py
