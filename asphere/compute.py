"""Temperature computes and the rotational temperature of ellipsoids.

A compute reads the atoms of one group from a :class:`~asphere.system.System`
and reduces a scalar and/or vector over all workers. Results are stamped
with the step they were computed on so callers evaluating several times in
one step only pay once (see :meth:`Compute.scalar` / :meth:`Compute.vector`).

Temperature computes may also carry a velocity bias (a streaming velocity
that is not thermal motion). Other computes delegate to them through
``remove_bias*`` / ``restore_bias*``; the pair is always called around an
accumulation pass so the velocities end up exactly as they were.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .errors import ConfigurationError, ExtendedParticleError
from .kinetic import asphere_energy, asphere_energy_tensor, find_point_particle
from .system import System
from .types import BiasKind, ComputeSettings

log = logging.getLogger(__name__)


@dataclass
class Memo:
    step: Optional[int] = None
    value: object = None


class Compute:
    """Base class: identity, group, settings and step-stamped results."""

    style = "compute"
    tempflag = False  # computes a temperature
    tempbias = False  # can remove a velocity bias
    bias_kind: Optional[BiasKind] = None
    size_vector = 0

    def __init__(self, system: System, id: str, group: str = "all") -> None:
        self.system = system
        self.id = id
        self.group = group
        self.groupbit = system.groupbit(group)
        self.settings = ComputeSettings()
        self.scalar_memo = Memo()
        self.vector_memo = Memo()

    @property
    def extra_dof(self) -> float:
        if self.settings.extra_dof is None:
            return float(self.system.dimension)
        return float(self.settings.extra_dof)

    @property
    def dynamic(self) -> bool:
        return self.settings.dynamic

    @property
    def invoked_scalar(self) -> Optional[int]:
        return self.scalar_memo.step

    @property
    def invoked_vector(self) -> Optional[int]:
        return self.vector_memo.step

    def modify(self, extra_dof: Optional[float] = None, dynamic: Optional[bool] = None) -> None:
        """Change DOF settings; takes effect at the next ``init()``."""

        if extra_dof is not None:
            self.settings.extra_dof = extra_dof
        if dynamic is not None:
            self.settings.dynamic = bool(dynamic)

    def init(self) -> None:
        pass

    def compute_scalar(self) -> float:
        raise NotImplementedError(f"Compute {self.style} does not compute a scalar")

    def compute_vector(self) -> np.ndarray:
        raise NotImplementedError(f"Compute {self.style} does not compute a vector")

    def scalar(self) -> float:
        """Scalar for the current step, computed at most once per step."""

        if self.scalar_memo.step != self.system.step:
            self.compute_scalar()
        return self.scalar_memo.value

    def vector(self) -> np.ndarray:
        if self.vector_memo.step != self.system.step:
            self.compute_vector()
        return self.vector_memo.value

    def _store_scalar(self, value: float) -> float:
        self.scalar_memo = Memo(self.system.step, float(value))
        return float(value)

    def _store_vector(self, value: np.ndarray) -> np.ndarray:
        self.vector_memo = Memo(self.system.step, value)
        return value

    # velocity bias; no-ops for computes without one

    def dof_remove(self, i: Optional[int] = None) -> int:
        return 0

    def dof_remove_count(self, idx: np.ndarray) -> int:
        """Number of atoms in ``idx`` whose velocity is entirely bias."""

        return sum(1 for i in idx if self.dof_remove(int(i)))

    def remove_bias(self, i: int, v: np.ndarray) -> None:
        pass

    def restore_bias(self, i: int, v: np.ndarray) -> None:
        pass

    def remove_bias_all(self) -> None:
        pass

    def restore_bias_all(self) -> None:
        pass


class ComputeTempAsphere(Compute):
    """Translational + rotational temperature of ellipsoidal particles.

    Each particle contributes 6 DOF in 3d (3 in 2d). The scalar is
    ``mvv2e * sum(m v^2 + I w^2) / (dof * boltz)``; the vector is the
    kinetic tensor (xx, yy, zz, xy, xz, yz) scaled by ``mvv2e`` only.

    If ``bias`` names another temperature compute, its velocity bias is
    removed before accumulating and restored afterwards.
    """

    style = "temp/asphere"
    tempflag = True
    size_vector = 6

    def __init__(
        self,
        system: System,
        id: str,
        group: str = "all",
        bias: Optional[str] = None,
    ) -> None:
        super().__init__(system, id, group)
        if system.bonus is None:
            raise ConfigurationError("Compute temp/asphere requires atom style ellipsoid")
        self.id_bias = bias
        self.tempbias = bias is not None
        self.tbias: Optional[Compute] = None
        self.fix_dof = 0
        self.dof = 0.0
        self.tfactor = 0.0

    @property
    def bias_kind(self) -> Optional[BiasKind]:
        return None if self.tbias is None else self.tbias.bias_kind

    def init(self) -> None:
        atoms = self.system.atoms
        bad = find_point_particle(atoms.mask, self.groupbit, atoms.ellipsoid)
        if bad >= 0:
            # fatal for every worker, not just this one
            log.error("%s: atom %d has no ellipsoid record", self.id, int(bad))
            self.system.comm.abort()
            raise ExtendedParticleError(int(bad), self.id)

        if self.id_bias is not None:
            tbias = self.system.find_compute(self.id_bias)
            if tbias is None:
                raise ConfigurationError(
                    f"Could not find compute ID {self.id_bias!r} for temperature bias"
                )
            if not tbias.tempflag:
                raise ConfigurationError("Bias compute does not calculate temperature")
            if not tbias.tempbias:
                raise ConfigurationError("Bias compute does not calculate a velocity bias")
            if tbias.group != self.group:
                raise ConfigurationError("Bias compute group does not match compute group")
            tbias.init()
            self.tbias = tbias
            log.debug("%s: using %s bias from compute %s", self.id, tbias.bias_kind, tbias.id)

        self.fix_dof = self.system.fixes.dof(self.group)
        self.dof_compute()

    def dof_compute(self) -> None:
        """Recount active DOF and refresh the temperature scale factor.

        Every particle is assumed to rotate freely; use ``modify(extra_dof=)``
        or a constraint to correct for restricted rotation.
        """

        natoms = self.system.count(self.group)
        nper = 6 if self.system.dimension == 3 else 3
        dof = float(nper * natoms)

        if self.tbias is not None:
            if self.tbias.bias_kind is BiasKind.REGION:
                members = np.flatnonzero(self.system.atoms.mask & self.groupbit)
                count = self.tbias.dof_remove_count(members)
                count_all = self.system.comm.allreduce_sum([count])[0]
                dof -= nper * count_all
            else:
                dof -= self.tbias.dof_remove(None) * natoms

        dof -= self.extra_dof + self.fix_dof
        self.dof = dof
        units = self.system.units
        if dof > 0:
            self.tfactor = units.mvv2e / (dof * units.boltz)
        else:
            self.tfactor = 0.0
        log.debug("%s: dof=%g tfactor=%g", self.id, self.dof, self.tfactor)

    def _prepare_bias(self, vector: bool) -> None:
        tbias = self.tbias
        if tbias is None:
            return
        if vector:
            if tbias.invoked_vector != self.system.step:
                tbias.compute_vector()
        elif tbias.invoked_scalar != self.system.step:
            tbias.compute_scalar()
        tbias.remove_bias_all()

    def _kernel_args(self):
        atoms = self.system.atoms
        bonus = self.system.bonus
        return (
            atoms.v,
            atoms.angmom,
            atoms.rmass,
            atoms.mask,
            self.groupbit,
            atoms.ellipsoid,
            bonus.shape,
            bonus.quat,
        )

    def compute_scalar(self) -> float:
        self._prepare_bias(vector=False)
        try:
            t = asphere_energy(*self._kernel_args())
        finally:
            if self.tbias is not None:
                self.tbias.restore_bias_all()

        total = self.system.comm.allreduce_sum([t])[0]
        if self.dynamic or self.bias_kind is BiasKind.REGION:
            self.dof_compute()
        return self._store_scalar(total * self.tfactor)

    def compute_vector(self) -> np.ndarray:
        self._prepare_bias(vector=True)
        try:
            t = asphere_energy_tensor(*self._kernel_args())
        finally:
            if self.tbias is not None:
                self.tbias.restore_bias_all()

        vector = self.system.comm.allreduce_sum(t)
        vector *= self.system.units.mvv2e
        return self._store_vector(vector)

    def dof_remove(self, i: Optional[int] = None) -> int:
        if self.tbias is not None:
            return self.tbias.dof_remove(i)
        return 0

    def dof_remove_count(self, idx: np.ndarray) -> int:
        if self.tbias is not None:
            return self.tbias.dof_remove_count(idx)
        return 0

    def remove_bias(self, i: int, v: np.ndarray) -> None:
        if self.tbias is not None:
            self.tbias.remove_bias(i, v)

    def restore_bias(self, i: int, v: np.ndarray) -> None:
        if self.tbias is not None:
            self.tbias.restore_bias(i, v)

    def remove_bias_all(self) -> None:
        if self.tbias is not None:
            self.tbias.remove_bias_all()

    def restore_bias_all(self) -> None:
        if self.tbias is not None:
            self.tbias.restore_bias_all()
