"""Fatal resolution errors."""

from __future__ import annotations

from typing import Sequence

from link_order.symbols import DefinedSymbol


class ResolutionError(Exception):
    """Base class for conditions under which no link order can be produced."""


class CyclicDependency(ResolutionError):
    """The inter-library dependency graph contains a cycle."""

    def __init__(self, cycle: Sequence[str] = ()) -> None:
        self.cycle = tuple(cycle)
        message = "Cannot determine dependency order, the dependency graph contains a cycle"
        if self.cycle:
            message += ": " + " -> ".join([*self.cycle, self.cycle[0]])
        super().__init__(message)


class MultipleDefinitions(ResolutionError):
    """A symbol required by some library is defined by two different libraries."""

    def __init__(self, library_a: str, library_b: str, symbol: DefinedSymbol) -> None:
        self.library_a = library_a
        self.library_b = library_b
        self.symbol = symbol
        super().__init__(f"{library_a} and {library_b} define the same symbol {symbol}")

    @property
    def libraries(self) -> frozenset[str]:
        return frozenset((self.library_a, self.library_b))


__all__ = ["ResolutionError", "CyclicDependency", "MultipleDefinitions"]
