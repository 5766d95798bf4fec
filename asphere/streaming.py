from __future__ import annotations

import numpy as np
from numba import njit


@njit(cache=True, fastmath=True)
def stream_step(x: np.ndarray, v: np.ndarray, dt: float, box: np.ndarray) -> None:
    """Ballistic streaming with periodic boundaries (in-place).

    Only positions move; orientations and angular momenta are left alone,
    which is all a temperature measurement between steps needs.
    """

    n = x.shape[0]
    for i in range(n):
        for k in range(3):
            L = box[k]
            xk = x[i, k] + v[i, k] * dt
            xk -= np.floor(xk / L) * L
            x[i, k] = xk
