from __future__ import annotations

import numpy as np
from numba import njit


@njit(cache=True)
def principal_inertia(mass: float, a: float, b: float, c: float):
    """Principal moments of a uniform solid ellipsoid with semi-axes (a, b, c)."""

    ix = mass * (b * b + c * c) / 5.0
    iy = mass * (a * a + c * c) / 5.0
    iz = mass * (a * a + b * b) / 5.0
    return ix, iy, iz


@njit(cache=True)
def quat_to_mat(q: np.ndarray, rot: np.ndarray) -> None:
    """Fill rot (3,3) with the rotation matrix of unit quaternion q = (w, i, j, k).

    rot maps body-frame vectors to the lab (space) frame.
    """

    w, i, j, k = q[0], q[1], q[2], q[3]
    w2 = w * w
    i2 = i * i
    j2 = j * j
    k2 = k * k
    twoij = 2.0 * i * j
    twoik = 2.0 * i * k
    twojk = 2.0 * j * k
    twoiw = 2.0 * i * w
    twojw = 2.0 * j * w
    twokw = 2.0 * k * w

    rot[0, 0] = w2 + i2 - j2 - k2
    rot[0, 1] = twoij - twokw
    rot[0, 2] = twojw + twoik

    rot[1, 0] = twoij + twokw
    rot[1, 1] = w2 - i2 + j2 - k2
    rot[1, 2] = twojk - twoiw

    rot[2, 0] = twoik - twojw
    rot[2, 1] = twojk + twoiw
    rot[2, 2] = w2 - i2 - j2 + k2


@njit(cache=True)
def transpose_matvec(m: np.ndarray, v: np.ndarray, out: np.ndarray) -> None:
    """out = m^T v for a 3x3 matrix."""

    out[0] = m[0, 0] * v[0] + m[1, 0] * v[1] + m[2, 0] * v[2]
    out[1] = m[0, 1] * v[0] + m[1, 1] * v[1] + m[2, 1] * v[2]
    out[2] = m[0, 2] * v[0] + m[1, 2] * v[1] + m[2, 2] * v[2]


@njit(cache=True)
def body_angular_velocity(
    q: np.ndarray,
    angmom: np.ndarray,
    ix: float,
    iy: float,
    iz: float,
    rot: np.ndarray,
    wbody: np.ndarray,
) -> None:
    """Angular velocity in the body frame from lab-frame angular momentum.

    rot (3,3) is scratch space; the result is written into wbody (3,).
    """

    quat_to_mat(q, rot)
    transpose_matvec(rot, angmom, wbody)
    wbody[0] /= ix
    wbody[1] /= iy
    wbody[2] /= iz


@njit(cache=True)
def rotational_energy(ix: float, iy: float, iz: float, wbody: np.ndarray) -> float:
    """Twice the rotational kinetic energy, sum_k I_k w_k^2."""

    return ix * wbody[0] * wbody[0] + iy * wbody[1] * wbody[1] + iz * wbody[2] * wbody[2]


@njit(cache=True)
def accumulate_rotational_tensor(
    ix: float, iy: float, iz: float, wbody: np.ndarray, t: np.ndarray
) -> None:
    """Add rotational terms into t = (xx, yy, zz, xy, xz, yz).

    Each off-diagonal term carries the moment of the diagonal it is paired
    with: xy <- Ix, xz <- Iy, yz <- Iz.
    """

    t[0] += ix * wbody[0] * wbody[0]
    t[1] += iy * wbody[1] * wbody[1]
    t[2] += iz * wbody[2] * wbody[2]
    t[3] += ix * wbody[0] * wbody[1]
    t[4] += iy * wbody[0] * wbody[2]
    t[5] += iz * wbody[1] * wbody[2]
