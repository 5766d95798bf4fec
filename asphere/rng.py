from __future__ import annotations

import numpy as np


def seed_all(seed: int) -> None:
    """Seed global NumPy RNG for reproducibility."""

    np.random.seed(seed)


def random_quaternions(n: int) -> np.ndarray:
    """Generate n uniformly distributed unit quaternions (w, i, j, k)."""

    q = np.random.normal(size=(n, 4))
    norms = np.linalg.norm(q, axis=1)
    norms[norms == 0] = 1.0
    q /= norms[:, None]
    return q


def planar_quaternions(n: int) -> np.ndarray:
    """Unit quaternions for random rotations about z only (2d systems)."""

    theta = np.random.uniform(0.0, 2.0 * np.pi, size=n)
    q = np.zeros((n, 4), dtype=np.float64)
    q[:, 0] = np.cos(0.5 * theta)
    q[:, 3] = np.sin(0.5 * theta)
    return q
