from __future__ import annotations

import threading

import numpy as np
import pytest

from asphere.comm import ThreadTeam
from asphere.particles import EllipsoidBonus, allocate_atoms, random_ellipsoid_gas
from asphere.rng import seed_all
from asphere.system import System


@pytest.fixture(autouse=True)
def _seed():
    seed_all(7)


def ellipsoid_system(n: int = 4, dimension: int = 3, shape=(1.0, 1.0, 1.0), **kwargs) -> System:
    """n unit-mass ellipsoids at rest with identity orientation."""

    atoms = allocate_atoms(n)
    bonus = EllipsoidBonus(
        shape=np.tile(np.asarray(shape, dtype=np.float64), (n, 1)),
        quat=np.tile(np.array([1.0, 0.0, 0.0, 0.0]), (n, 1)),
    )
    atoms.ellipsoid[:] = np.arange(n)
    return System(atoms, bonus, dimension=dimension, **kwargs)


def gas_system(n: int = 500, dimension: int = 3, **kwargs) -> System:
    box = np.array([10.0, 10.0, 10.0])
    atoms, bonus = random_ellipsoid_gas(n, box, temperature=1.0, dimension=dimension)
    return System(atoms, bonus, dimension=dimension, **kwargs)


def run_team(size: int, fn):
    """Run fn(comm, rank) on ``size`` threads sharing a ThreadTeam."""

    team = ThreadTeam(size, timeout=120.0)
    results = [None] * size
    errors = []

    def work(rank):
        try:
            results[rank] = fn(team.comm(rank), rank)
        except BaseException as e:  # re-raised in the calling thread
            errors.append(e)
            team.abort()

    threads = [threading.Thread(target=work, args=(r,)) for r in range(size)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()
    if errors:
        raise errors[0]
    return results
