from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Protocol


class Constraint(Protocol):
    """Anything that removes degrees of freedom from a group."""

    def dof(self, group: str) -> int:
        ...


@dataclass
class FixedDof:
    """Removes a fixed number of DOF from the atoms of one group.

    Stands in for constraint fixes (bond/angle constraints, frozen
    momentum and the like) that only report a DOF count.
    """

    group: str
    count: int

    def dof(self, group: str) -> int:
        return self.count if group == self.group else 0


class ConstraintRegistry:
    """Ordered set of active constraints."""

    def __init__(self) -> None:
        self._constraints: List[Constraint] = []

    def add(self, constraint: Constraint) -> Constraint:
        self._constraints.append(constraint)
        return constraint

    def remove(self, constraint: Constraint) -> None:
        self._constraints.remove(constraint)

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self._constraints)

    def __len__(self) -> int:
        return len(self._constraints)

    def dof(self, group: str) -> int:
        return sum(int(c.dof(group)) for c in self._constraints)
