"""Merge per-library symbol information into lookup tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from link_order.analysis.catalog import LibraryDescriptor
from link_order.errors import MultipleDefinitions
from link_order.symbols import DefinedSymbol, UndefinedSymbol

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DuplicateDefinition:
    symbol: DefinedSymbol
    first: LibraryDescriptor
    second: LibraryDescriptor


@dataclass(slots=True)
class SymbolTable:
    """Where every defined symbol lives and who asks for every undefined one."""

    defined: Dict[DefinedSymbol, LibraryDescriptor] = field(default_factory=dict)
    undefined: List[Tuple[UndefinedSymbol, LibraryDescriptor]] = field(default_factory=list)
    duplicates: List[DuplicateDefinition] = field(default_factory=list)

    def definer_of(self, symbol: UndefinedSymbol) -> LibraryDescriptor | None:
        return self.defined.get(symbol.as_defined())


def build_symbol_table(libraries: Iterable[LibraryDescriptor]) -> SymbolTable:
    """
    Build the defined-symbol map and undefined-symbol list for ``libraries``.

    Libraries are visited in name order and the first definition of a symbol wins. A symbol
    defined by more than one library is fatal only if some library needs it: the first such
    conflict raises :class:`MultipleDefinitions`. Unneeded duplicates are kept in
    :attr:`SymbolTable.duplicates`.
    """

    table = SymbolTable()
    candidates: list[DuplicateDefinition] = []

    for library in sorted(libraries, key=lambda lib: lib.name):
        for symbol in sorted(library.defined, key=lambda sym: sym.raw):
            owner = table.defined.setdefault(symbol, library)
            if owner != library:
                candidates.append(DuplicateDefinition(symbol=symbol, first=owner, second=library))
        for symbol in library.undefined:
            table.undefined.append((symbol, library))

    needed = {symbol for symbol, _ in table.undefined}
    for duplicate in candidates:
        if duplicate.symbol.as_undefined() in needed:
            raise MultipleDefinitions(duplicate.first.name, duplicate.second.name, duplicate.symbol)
        table.duplicates.append(duplicate)

    if table.duplicates:
        LOGGER.info("Tolerating %d duplicate definitions that nothing references", len(table.duplicates))
    return table


__all__ = ["DuplicateDefinition", "SymbolTable", "build_symbol_table"]
