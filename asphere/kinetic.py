from __future__ import annotations

import numpy as np
from numba import njit

from .inertia import (
    accumulate_rotational_tensor,
    body_angular_velocity,
    principal_inertia,
    rotational_energy,
)


@njit(cache=True)
def asphere_energy(
    v: np.ndarray,
    angmom: np.ndarray,
    rmass: np.ndarray,
    mask: np.ndarray,
    groupbit: int,
    ellipsoid: np.ndarray,
    shape: np.ndarray,
    quat: np.ndarray,
) -> float:
    """Local sum of m v^2 + sum_k I_k w_k^2 over group members.

    Every member must have an ellipsoid record; there is no point-particle
    branch because the rotational term divides by the moments of inertia.
    """

    rot = np.empty((3, 3), dtype=np.float64)
    wbody = np.empty(3, dtype=np.float64)
    t = 0.0
    for i in range(v.shape[0]):
        if (mask[i] & groupbit) == 0:
            continue
        e = ellipsoid[i]
        m = rmass[i]
        t += (v[i, 0] * v[i, 0] + v[i, 1] * v[i, 1] + v[i, 2] * v[i, 2]) * m

        ix, iy, iz = principal_inertia(m, shape[e, 0], shape[e, 1], shape[e, 2])
        body_angular_velocity(quat[e], angmom[i], ix, iy, iz, rot, wbody)
        t += rotational_energy(ix, iy, iz, wbody)
    return t


@njit(cache=True)
def asphere_energy_tensor(
    v: np.ndarray,
    angmom: np.ndarray,
    rmass: np.ndarray,
    mask: np.ndarray,
    groupbit: int,
    ellipsoid: np.ndarray,
    shape: np.ndarray,
    quat: np.ndarray,
) -> np.ndarray:
    """Local six-component sum (xx, yy, zz, xy, xz, yz) over group members."""

    rot = np.empty((3, 3), dtype=np.float64)
    wbody = np.empty(3, dtype=np.float64)
    t = np.zeros(6, dtype=np.float64)
    for i in range(v.shape[0]):
        if (mask[i] & groupbit) == 0:
            continue
        e = ellipsoid[i]
        m = rmass[i]

        # translational
        t[0] += m * v[i, 0] * v[i, 0]
        t[1] += m * v[i, 1] * v[i, 1]
        t[2] += m * v[i, 2] * v[i, 2]
        t[3] += m * v[i, 0] * v[i, 1]
        t[4] += m * v[i, 0] * v[i, 2]
        t[5] += m * v[i, 1] * v[i, 2]

        # rotational
        ix, iy, iz = principal_inertia(m, shape[e, 0], shape[e, 1], shape[e, 2])
        body_angular_velocity(quat[e], angmom[i], ix, iy, iz, rot, wbody)
        accumulate_rotational_tensor(ix, iy, iz, wbody, t)
    return t


@njit(cache=True)
def find_point_particle(mask: np.ndarray, groupbit: int, ellipsoid: np.ndarray) -> int:
    """Index of the first group member without an ellipsoid record, or -1."""

    for i in range(mask.shape[0]):
        if (mask[i] & groupbit) != 0 and ellipsoid[i] < 0:
            return i
    return -1
