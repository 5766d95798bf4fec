"""Kinetic temperature of rigid ellipsoidal particles.

This package provides a Numba-accelerated temperature compute that combines
translational and rotational kinetic energy of aspherical particles, the
degrees-of-freedom bookkeeping behind it, and a family of biased
temperature computes whose streaming velocity can be stripped around the
accumulation pass. Partial sums are combined across workers through an
injected communicator (serial, threads or MPI).
"""

from .bias import TempPartial, TempRamp, TempRegion
from .comm import MPIComm, SerialComm, ThreadTeam
from .compute import ComputeTempAsphere
from .errors import AsphereError, ConfigurationError, ExtendedParticleError
from .system import System
from .types import BiasKind, Units

__all__ = [
    "__version__",
    "ComputeTempAsphere",
    "TempPartial",
    "TempRamp",
    "TempRegion",
    "System",
    "Units",
    "BiasKind",
    "SerialComm",
    "MPIComm",
    "ThreadTeam",
    "AsphereError",
    "ConfigurationError",
    "ExtendedParticleError",
]

__version__ = "0.1.0"
