from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


@dataclass
class AtomStore:
    """SoA per-atom storage owned by one worker.

    Only the locally owned atoms are stored. ``ellipsoid[i]`` indexes the
    bonus store or is -1 for a point particle.
    """

    x: np.ndarray
    v: np.ndarray
    angmom: np.ndarray
    rmass: np.ndarray
    mask: np.ndarray
    ellipsoid: np.ndarray

    def __post_init__(self) -> None:
        n = self.x.shape[0]
        for name in ("x", "v", "angmom"):
            arr = getattr(self, name)
            if arr.shape != (n, 3):
                raise ValueError(f"{name} must have shape ({n}, 3), got {arr.shape}")
        for name in ("rmass", "mask", "ellipsoid"):
            arr = getattr(self, name)
            if arr.shape != (n,):
                raise ValueError(f"{name} must have shape ({n},), got {arr.shape}")

    @property
    def nlocal(self) -> int:
        return int(self.x.shape[0])


@dataclass
class EllipsoidBonus:
    """Shape and orientation records for extended particles."""

    shape: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.float64))
    quat: np.ndarray = field(default_factory=lambda: np.zeros((0, 4), dtype=np.float64))

    @property
    def nbonus(self) -> int:
        return int(self.shape.shape[0])

    def add(self, shape, quat) -> int:
        """Append one record and return its index."""

        s = np.asarray(shape, dtype=np.float64).reshape(1, 3)
        q = np.asarray(quat, dtype=np.float64).reshape(1, 4)
        if np.any(s <= 0.0):
            raise ValueError("Ellipsoid semi-axes must be positive")
        norm = np.linalg.norm(q)
        if norm == 0.0:
            raise ValueError("Ellipsoid quaternion must be non-zero")
        self.shape = np.vstack([self.shape, s])
        self.quat = np.vstack([self.quat, q / norm])
        return self.nbonus - 1


def allocate_atoms(num_atoms: int) -> AtomStore:
    """Allocate zeroed float64 storage for num_atoms point particles of mass 1.

    Every atom starts in the ``all`` group (bit 0) with no ellipsoid record.
    """

    return AtomStore(
        x=np.zeros((num_atoms, 3), dtype=np.float64),
        v=np.zeros((num_atoms, 3), dtype=np.float64),
        angmom=np.zeros((num_atoms, 3), dtype=np.float64),
        rmass=np.ones(num_atoms, dtype=np.float64),
        mask=np.ones(num_atoms, dtype=np.int64),
        ellipsoid=np.full(num_atoms, -1, dtype=np.int64),
    )


def set_ellipsoid(atoms: AtomStore, bonus: EllipsoidBonus, i: int, shape, quat) -> int:
    """Give atom i an ellipsoid record (or replace its current one)."""

    j = int(atoms.ellipsoid[i])
    if j >= 0:
        s = np.asarray(shape, dtype=np.float64)
        q = np.asarray(quat, dtype=np.float64)
        if np.any(s <= 0.0):
            raise ValueError("Ellipsoid semi-axes must be positive")
        bonus.shape[j] = s
        bonus.quat[j] = q / np.linalg.norm(q)
        return j
    j = bonus.add(shape, quat)
    atoms.ellipsoid[i] = j
    return j


def random_ellipsoid_gas(
    num_atoms: int,
    box: np.ndarray,
    temperature: float = 1.0,
    axes: tuple[float, float] = (0.5, 1.5),
    mass: float = 1.0,
    dimension: int = 3,
) -> tuple[AtomStore, EllipsoidBonus]:
    """Ellipsoids at random positions and orientations with thermal motion.

    Velocities and angular momenta are drawn so each degree of freedom
    carries roughly ``temperature`` (k_B = 1, unit conversion 1).
    """

    from .inertia import principal_inertia, quat_to_mat
    from .rng import planar_quaternions, random_quaternions

    atoms = allocate_atoms(num_atoms)
    box = np.asarray(box, dtype=np.float64)
    atoms.x[:] = np.random.rand(num_atoms, 3) * box[None, :]
    atoms.rmass[:] = mass
    sigma = np.sqrt(temperature / mass)
    atoms.v[:] = np.random.normal(scale=sigma, size=(num_atoms, 3))

    shapes = np.random.uniform(axes[0], axes[1], size=(num_atoms, 3))
    if dimension == 2:
        atoms.x[:, 2] = 0.0
        atoms.v[:, 2] = 0.0
        quats = planar_quaternions(num_atoms)
    else:
        quats = random_quaternions(num_atoms)
    bonus = EllipsoidBonus(shape=shapes, quat=quats)
    atoms.ellipsoid[:] = np.arange(num_atoms)

    # L = R I w with w_k ~ N(0, T / I_k) in the body frame
    rot = np.empty((3, 3), dtype=np.float64)
    for i in range(num_atoms):
        inertia = np.array(principal_inertia(mass, *shapes[i]))
        wbody = np.random.normal(scale=np.sqrt(temperature / inertia))
        if dimension == 2:
            wbody[:2] = 0.0
        quat_to_mat(quats[i], rot)
        atoms.angmom[i] = rot @ (inertia * wbody)
    return atoms, bonus


def subset_atoms(atoms: AtomStore, bonus: EllipsoidBonus, idx) -> tuple[AtomStore, EllipsoidBonus]:
    """Copy atoms ``idx`` (and their ellipsoid records) into new stores.

    Used to hand each worker its own partition of a particle set.
    """

    idx = np.asarray(idx, dtype=np.int64)
    ell = atoms.ellipsoid[idx]
    extended = ell >= 0
    local_ell = np.full(len(idx), -1, dtype=np.int64)
    local_ell[extended] = np.arange(int(np.count_nonzero(extended)))
    local = AtomStore(
        x=atoms.x[idx].copy(),
        v=atoms.v[idx].copy(),
        angmom=atoms.angmom[idx].copy(),
        rmass=atoms.rmass[idx].copy(),
        mask=atoms.mask[idx].copy(),
        ellipsoid=local_ell,
    )
    local_bonus = EllipsoidBonus(
        shape=bonus.shape[ell[extended]].copy(),
        quat=bonus.quat[ell[extended]].copy(),
    )
    return local, local_bonus
