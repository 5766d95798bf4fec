"""Collective sum reductions across the workers of a run.

Each worker owns a disjoint slice of the particles and calls
``allreduce_sum`` exactly once per reduction; the call blocks until every
worker has contributed. Three transports are provided:

- SerialComm: a single worker, the reduction is the identity.
- MPIComm: one worker per MPI rank, backed by mpi4py.
- ThreadTeam: several workers as threads of one process, mainly for tests
  and the demonstration driver.
"""

from __future__ import annotations

import threading
from typing import Any, List, Optional, Protocol

import numpy as np


class Comm(Protocol):
    rank: int
    size: int

    def allreduce_sum(self, values) -> np.ndarray:
        ...

    def abort(self) -> None:
        ...


def _as_buffer(values) -> np.ndarray:
    return np.array(values, dtype=np.float64, copy=True)


class SerialComm:
    rank = 0
    size = 1

    def allreduce_sum(self, values) -> np.ndarray:
        return _as_buffer(values)

    def abort(self) -> None:
        # no other worker can be waiting on us
        pass


class MPIComm:
    """Element-wise sum over an mpi4py communicator (COMM_WORLD by default)."""

    def __init__(self, comm: Optional[Any] = None) -> None:
        from mpi4py import MPI

        self._MPI = MPI
        self.comm = MPI.COMM_WORLD if comm is None else comm
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()

    def allreduce_sum(self, values) -> np.ndarray:
        send = _as_buffer(values)
        recv = np.empty_like(send)
        self.comm.Allreduce(send, recv, op=self._MPI.SUM)
        return recv

    def abort(self) -> None:
        """Terminate every rank of the communicator."""

        self.comm.Abort(1)


class ThreadTeam:
    """A fixed-size team of in-process workers sharing a reduction barrier.

    Contributions are summed in rank order, so every member gets a
    bit-identical result.
    """

    def __init__(self, size: int, timeout: Optional[float] = None) -> None:
        if size < 1:
            raise ValueError("ThreadTeam size must be >= 1")
        self.size = size
        self._barrier = threading.Barrier(size, timeout=timeout)
        self._slots: List[Optional[np.ndarray]] = [None] * size

    def comm(self, rank: int) -> "TeamComm":
        if not 0 <= rank < self.size:
            raise ValueError(f"rank {rank} out of range for team of {self.size}")
        return TeamComm(self, rank)

    def abort(self) -> None:
        """Release workers blocked in a reduction (they get BrokenBarrierError)."""

        self._barrier.abort()

    def _allreduce(self, rank: int, buf: np.ndarray) -> np.ndarray:
        self._slots[rank] = buf
        self._barrier.wait()
        if any(c.shape != buf.shape for c in self._slots):
            self._barrier.abort()
            raise ValueError("allreduce_sum buffers differ in shape across workers")
        total = np.zeros_like(buf)
        for contribution in self._slots:
            total += contribution
        # nobody may post the next buffer before everyone has read this one
        self._barrier.wait()
        return total


class TeamComm:
    def __init__(self, team: ThreadTeam, rank: int) -> None:
        self.team = team
        self.rank = rank
        self.size = team.size

    def allreduce_sum(self, values) -> np.ndarray:
        return self.team._allreduce(self.rank, _as_buffer(values))

    def abort(self) -> None:
        self.team.abort()
