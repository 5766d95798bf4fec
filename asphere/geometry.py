from __future__ import annotations

from dataclasses import dataclass

import numpy as np


def inside_sphere(points: np.ndarray, center: np.ndarray, radius: float) -> np.ndarray:
    d = points - center[None, :]
    return np.sum(d * d, axis=1) < radius * radius


def inside_block(points: np.ndarray, lo: np.ndarray, hi: np.ndarray) -> np.ndarray:
    return np.all((points >= lo[None, :]) & (points <= hi[None, :]), axis=1)


@dataclass
class Sphere:
    center: np.ndarray
    radius: float

    def __post_init__(self) -> None:
        self.center = np.asarray(self.center, dtype=np.float64)

    def match(self, points: np.ndarray) -> np.ndarray:
        """Bool mask of points strictly inside the sphere."""

        return inside_sphere(np.atleast_2d(points), self.center, self.radius)


@dataclass
class Block:
    lo: np.ndarray
    hi: np.ndarray

    def __post_init__(self) -> None:
        self.lo = np.asarray(self.lo, dtype=np.float64)
        self.hi = np.asarray(self.hi, dtype=np.float64)
        if np.any(self.hi < self.lo):
            raise ValueError("Block bounds must satisfy lo <= hi")

    def match(self, points: np.ndarray) -> np.ndarray:
        """Bool mask of points inside the closed box [lo, hi]."""

        return inside_block(np.atleast_2d(points), self.lo, self.hi)
