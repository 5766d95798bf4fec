from __future__ import annotations

import numpy as np


def kinetic_sum(v: np.ndarray, mass) -> float:
    """Return sum of m v^2 (twice the translational kinetic energy).

    mass may be a scalar or a per-particle array.
    """

    m = np.broadcast_to(np.asarray(mass, dtype=np.float64), (v.shape[0],))
    return float(np.sum(m * np.sum(v * v, axis=1)))


def kinetic_tensor(v: np.ndarray, mass) -> np.ndarray:
    """Return sum of m v_a v_b as (xx, yy, zz, xy, xz, yz)."""

    m = np.broadcast_to(np.asarray(mass, dtype=np.float64), (v.shape[0],))
    t = np.empty(6, dtype=np.float64)
    t[0] = np.sum(m * v[:, 0] * v[:, 0])
    t[1] = np.sum(m * v[:, 1] * v[:, 1])
    t[2] = np.sum(m * v[:, 2] * v[:, 2])
    t[3] = np.sum(m * v[:, 0] * v[:, 1])
    t[4] = np.sum(m * v[:, 0] * v[:, 2])
    t[5] = np.sum(m * v[:, 1] * v[:, 2])
    return t


def temperature(v: np.ndarray, mass, dof: float | None = None, mvv2e: float = 1.0, boltz: float = 1.0) -> float:
    """Instantaneous translational temperature; dof defaults to 3 per particle."""

    n = v.shape[0]
    if dof is None:
        dof = 3 * n
    if dof <= 0:
        return 0.0
    return mvv2e * kinetic_sum(v, mass) / (dof * boltz)
