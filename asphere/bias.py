"""Translational temperature computes that carry a velocity bias.

Each compute defines the bias velocity of a set of atoms through
``_bias(x, v)``. Removing the bias subtracts it from the atoms' velocities
and remembers what was subtracted; restoring adds exactly that back, so
other computes can strip the bias around their own accumulation pass.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np

from .compute import Compute
from .diagnostics import kinetic_sum, kinetic_tensor
from .system import System
from .types import BiasKind

log = logging.getLogger(__name__)


class BiasCompute(Compute):
    tempflag = True
    tempbias = True
    bias_kind = BiasKind.GENERIC
    size_vector = 6

    def __init__(self, system: System, id: str, group: str = "all") -> None:
        super().__init__(system, id, group)
        self.fix_dof = 0
        self.dof = 0.0
        self.tfactor = 0.0
        # one record per outstanding removal, restored last-in first-out
        self._vbias: List[np.ndarray] = []
        self._vbiasall: List[Tuple[np.ndarray, np.ndarray]] = []

    def _bias(self, x: np.ndarray, v: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _members(self) -> np.ndarray:
        return np.flatnonzero(self.system.atoms.mask & self.groupbit)

    def _thermal_velocities(self, idx: np.ndarray) -> np.ndarray:
        atoms = self.system.atoms
        v = atoms.v[idx]
        return v - self._bias(atoms.x[idx], v)

    def _translational_dof(self) -> int:
        return self.system.dimension - self.dof_remove(None)

    def init(self) -> None:
        self.fix_dof = self.system.fixes.dof(self.group)
        self.dof_compute()

    def dof_compute(self) -> None:
        natoms = self.system.count(self.group)
        nper = self._translational_dof()
        frac = nper / self.system.dimension
        dof = nper * natoms - frac * (self.extra_dof + self.fix_dof)
        self._set_dof(dof)

    def _set_dof(self, dof: float) -> None:
        units = self.system.units
        self.dof = dof
        self.tfactor = units.mvv2e / (dof * units.boltz) if dof > 0 else 0.0

    def compute_scalar(self) -> float:
        idx = self._members()
        vt = self._thermal_velocities(idx)
        t = kinetic_sum(vt, self.system.atoms.rmass[idx])
        total = self.system.comm.allreduce_sum([t])[0]
        if self.dynamic:
            self.dof_compute()
        return self._store_scalar(total * self.tfactor)

    def compute_vector(self) -> np.ndarray:
        idx = self._members()
        vt = self._thermal_velocities(idx)
        t = kinetic_tensor(vt, self.system.atoms.rmass[idx])
        vector = self.system.comm.allreduce_sum(t)
        vector *= self.system.units.mvv2e
        return self._store_vector(vector)

    # bias protocol

    def remove_bias(self, i: int, v: np.ndarray) -> None:
        x = self.system.atoms.x[i]
        vbias = self._bias(x[None, :], np.asarray(v)[None, :])[0]
        self._vbias.append(vbias)
        v -= vbias

    def restore_bias(self, i: int, v: np.ndarray) -> None:
        v += self._vbias.pop()

    def remove_bias_all(self) -> None:
        atoms = self.system.atoms
        idx = self._members()
        vbias = self._bias(atoms.x[idx], atoms.v[idx])
        self._vbiasall.append((idx, vbias))
        atoms.v[idx] -= vbias

    def restore_bias_all(self) -> None:
        idx, vbias = self._vbiasall.pop()
        self.system.atoms.v[idx] += vbias


class TempPartial(BiasCompute):
    """Temperature from a subset of the velocity components.

    Excluded components are the bias: they are zeroed on removal.
    """

    style = "temp/partial"

    def __init__(
        self,
        system: System,
        id: str,
        group: str = "all",
        xflag: bool = True,
        yflag: bool = True,
        zflag: bool = True,
    ) -> None:
        super().__init__(system, id, group)
        if system.dimension == 2 and zflag:
            zflag = False
        self.flags = np.array([xflag, yflag, zflag], dtype=bool)
        self._excluded = (~self.flags).astype(np.float64)
        if system.dimension == 2:
            self._excluded[2] = 0.0

    def dof_remove(self, i: Optional[int] = None) -> int:
        return self.system.dimension - int(np.count_nonzero(self.flags))

    def _bias(self, x: np.ndarray, v: np.ndarray) -> np.ndarray:
        return v * self._excluded[None, :]


class TempRamp(BiasCompute):
    """Temperature after subtracting a linear streaming-velocity profile.

    Velocity component ``vdim`` of the flow ramps from ``vlo`` at
    ``coord_lo`` to ``vhi`` at ``coord_hi`` along axis ``coord_dim`` and is
    held constant beyond either end.
    """

    style = "temp/ramp"

    def __init__(
        self,
        system: System,
        id: str,
        group: str,
        vdim: int,
        vlo: float,
        vhi: float,
        coord_dim: int,
        coord_lo: float,
        coord_hi: float,
    ) -> None:
        super().__init__(system, id, group)
        if coord_hi <= coord_lo:
            raise ValueError("temp/ramp requires coord_hi > coord_lo")
        self.vdim = vdim
        self.vlo = float(vlo)
        self.vhi = float(vhi)
        self.coord_dim = coord_dim
        self.coord_lo = float(coord_lo)
        self.coord_hi = float(coord_hi)

    def _bias(self, x: np.ndarray, v: np.ndarray) -> np.ndarray:
        frac = (x[:, self.coord_dim] - self.coord_lo) / (self.coord_hi - self.coord_lo)
        frac = np.clip(frac, 0.0, 1.0)
        b = np.zeros_like(v, dtype=np.float64)
        b[:, self.vdim] = self.vlo + frac * (self.vhi - self.vlo)
        return b


class TempRegion(BiasCompute):
    """Temperature of the group members currently inside a region.

    Atoms outside the region have their whole velocity treated as bias,
    so each of them removes all of its DOF (``dof_remove(i) == 1``).
    """

    style = "temp/region"
    bias_kind = BiasKind.REGION

    def __init__(self, system: System, id: str, group: str, region) -> None:
        super().__init__(system, id, group)
        self.region = region

    def dof_remove(self, i: Optional[int] = None) -> int:
        if i is None:
            raise ValueError("temp/region reports DOF per atom only")
        return 0 if bool(self.region.match(self.system.atoms.x[i])[0]) else 1

    def dof_remove_count(self, idx: np.ndarray) -> int:
        return int(np.count_nonzero(~self.region.match(self.system.atoms.x[idx])))

    def _bias(self, x: np.ndarray, v: np.ndarray) -> np.ndarray:
        outside = ~self.region.match(x)
        return np.where(outside[:, None], v, 0.0)

    def dof_compute(self) -> None:
        # depends on region membership, settled in compute_scalar
        self.dof = 0.0
        self.tfactor = 0.0

    def compute_scalar(self) -> float:
        atoms = self.system.atoms
        idx = self._members()
        inside = idx[self.region.match(atoms.x[idx])]
        t = kinetic_sum(atoms.v[inside], atoms.rmass[inside])
        count_all, total = self.system.comm.allreduce_sum([len(inside), t])
        self._set_dof(self.system.dimension * count_all - self.extra_dof)
        log.debug("%s: %d atoms in region, dof=%g", self.id, int(count_all), self.dof)
        return self._store_scalar(total * self.tfactor)
