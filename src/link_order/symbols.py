"""Symbol value types.

A symbol is identified by its raw bytes. Defined and undefined symbols are
separate types so a lookup can never mix the two roles by accident; crossing
from one role to the other is always an explicit conversion.
"""

from __future__ import annotations

from dataclasses import dataclass


def render_symbol(raw: bytes) -> str:
    """Best-effort text rendering of a symbol name for diagnostics."""

    return raw.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class DefinedSymbol:
    """A symbol some library exports."""

    raw: bytes

    def as_undefined(self) -> "UndefinedSymbol":
        return UndefinedSymbol(self.raw)

    def __str__(self) -> str:
        return render_symbol(self.raw)


@dataclass(frozen=True, slots=True)
class UndefinedSymbol:
    """A symbol some library references but does not supply."""

    raw: bytes

    def as_defined(self) -> DefinedSymbol:
        return DefinedSymbol(self.raw)

    def __str__(self) -> str:
        return render_symbol(self.raw)


__all__ = ["DefinedSymbol", "UndefinedSymbol", "render_symbol"]
