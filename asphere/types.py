from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class BiasKind(enum.Enum):
    """How a bias compute reports the degrees of freedom it removes."""

    GENERIC = "generic"  # one global count via dof_remove(None)
    REGION = "region"  # per-particle, depends on position


@dataclass(frozen=True)
class Units:
    """Conversion constants for kinetic energy and temperature.

    mvv2e converts mass * velocity^2 into energy units, boltz is the
    Boltzmann constant in energy / temperature units.
    """

    mvv2e: float = 1.0
    boltz: float = 1.0
    style: str = "lj"

    @classmethod
    def from_style(cls, style: str) -> "Units":
        try:
            mvv2e, boltz = _UNIT_STYLES[style]
        except KeyError:
            raise ValueError(f"Unknown unit style {style!r}") from None
        return cls(mvv2e=mvv2e, boltz=boltz, style=style)


_UNIT_STYLES = {
    "lj": (1.0, 1.0),
    "real": (48.88821291 * 48.88821291, 0.0019872067),
    "metal": (1.0364269e-4, 8.617343e-5),
    "si": (1.0, 1.3806504e-23),
}


@dataclass
class ComputeSettings:
    extra_dof: Optional[float] = None  # None: use the simulation dimension
    dynamic: bool = False
