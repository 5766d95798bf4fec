from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional

import numpy as np

from .comm import Comm, SerialComm
from .fixes import ConstraintRegistry
from .particles import AtomStore, EllipsoidBonus
from .types import Units

if TYPE_CHECKING:
    from .compute import Compute

log = logging.getLogger(__name__)

MAX_GROUPS = 63


class System:
    """Per-worker view of the simulation that temperature computes read from.

    Holds references to the locally owned atoms and their ellipsoid records,
    the named groups (one bit of ``atoms.mask`` each), the active
    constraints, the registered computes and the current step.
    """

    def __init__(
        self,
        atoms: AtomStore,
        bonus: Optional[EllipsoidBonus] = None,
        units: Optional[Units] = None,
        dimension: int = 3,
        comm: Optional[Comm] = None,
    ) -> None:
        if dimension not in (2, 3):
            raise ValueError(f"dimension must be 2 or 3, got {dimension}")
        self.atoms = atoms
        self.bonus = bonus
        self.units = units if units is not None else Units()
        self.dimension = dimension
        self.comm = comm if comm is not None else SerialComm()
        self.fixes = ConstraintRegistry()
        self.step = 0
        self._groups: Dict[str, int] = {"all": 0}
        self._computes: Dict[str, "Compute"] = {}

    # groups

    def add_group(self, name: str, selection) -> int:
        """Create (or extend) group ``name`` from a bool mask or index array."""

        if name not in self._groups:
            if len(self._groups) >= MAX_GROUPS:
                raise ValueError(f"Too many groups (max {MAX_GROUPS})")
            self._groups[name] = len(self._groups)
            log.debug("group %s uses bit %d", name, self._groups[name])
        bit = self.groupbit(name)
        idx = np.asarray(selection)
        if idx.dtype == bool:
            if idx.shape != (self.atoms.nlocal,):
                raise ValueError("bool selection must cover every local atom")
            idx = np.nonzero(idx)[0]
        self.atoms.mask[idx] |= bit
        return bit

    def groupbit(self, name: str) -> int:
        try:
            return 1 << self._groups[name]
        except KeyError:
            raise KeyError(f"Could not find group ID {name!r}") from None

    def count(self, group: str) -> int:
        """Number of atoms in ``group`` summed over all workers."""

        local = np.count_nonzero(self.atoms.mask & self.groupbit(group))
        return int(round(float(self.comm.allreduce_sum([local])[0])))

    # computes

    def add_compute(self, compute: "Compute") -> "Compute":
        if compute.id in self._computes:
            raise ValueError(f"Reuse of compute ID {compute.id!r}")
        self._computes[compute.id] = compute
        return compute

    def find_compute(self, compute_id: str) -> Optional["Compute"]:
        return self._computes.get(compute_id)

    def advance(self, nsteps: int = 1) -> int:
        self.step += nsteps
        return self.step
