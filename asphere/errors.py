from __future__ import annotations


class AsphereError(RuntimeError):
    """Base class for fatal errors raised by temperature computes."""


class ConfigurationError(AsphereError):
    """Invalid setup detected identically on every worker."""


class ExtendedParticleError(AsphereError):
    """A monitored particle owned by this worker has no ellipsoid record.

    Raised by a single worker, but the run cannot continue: the global
    reduction would be missing part of the group.
    """

    def __init__(self, index: int, compute_id: str) -> None:
        super().__init__(
            f"Compute {compute_id} requires extended particles "
            f"(local atom {index} is a point particle)"
        )
        self.index = index
        self.compute_id = compute_id
