"""Extract defined and undefined symbols from the objects inside a static archive."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Iterable, Optional

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import SymbolTableSection

from link_order.io.archive_reader import ArchiveFormatError, ArchiveMember, ArchiveReader
from link_order.io.object_symbols import is_coff, is_macho, read_coff_symbols, read_macho_symbols
from link_order.symbols import DefinedSymbol, UndefinedSymbol

LOGGER = logging.getLogger(__name__)

ELF_MAGIC = b"\x7fELF"

# pyelftools reports aliased enum values under either name
EXPORTED_BINDINGS = frozenset({"STB_GLOBAL", "STB_WEAK", "STB_GNU_UNIQUE", "STB_LOOS"})
DEFINITION_TYPES = frozenset(
    {"STT_NOTYPE", "STT_OBJECT", "STT_FUNC", "STT_COMMON", "STT_TLS", "STT_GNU_IFUNC", "STT_LOOS"}
)


@dataclass(slots=True)
class ObjectSymbols:
    member: str
    defined: set[DefinedSymbol] = field(default_factory=set)
    undefined: list[UndefinedSymbol] = field(default_factory=list)


@dataclass(slots=True)
class ArchiveSymbols:
    """Union of the symbols of every parseable object in one archive."""

    defined: set[DefinedSymbol] = field(default_factory=set)
    undefined: list[UndefinedSymbol] = field(default_factory=list)
    objects_parsed: int = 0
    members_skipped: int = 0

    def add(self, symbols: ObjectSymbols) -> None:
        self.defined.update(symbols.defined)
        self.undefined.extend(symbols.undefined)
        self.objects_parsed += 1


def _raw_name(strings: bytes, offset: int) -> bytes:
    end = strings.find(b"\x00", offset)
    if end == -1:
        end = len(strings)
    return strings[offset:end]


def _is_definition(symbol) -> bool:
    info = symbol["st_info"]
    return info["bind"] in EXPORTED_BINDINGS and info["type"] in DEFINITION_TYPES


def parse_object_symbols(member: ArchiveMember) -> Optional[ObjectSymbols]:
    """
    Classify the symbols of one archive member.

    ELF objects go through pyelftools; Mach-O and COFF objects through their own symbol table
    readers. Returns ``None`` when the member is not a relocatable object in one of those formats
    or cannot be parsed; the caller treats such members as contributing nothing.
    """

    data = member.data
    if data.startswith(ELF_MAGIC):
        return _parse_elf_symbols(member)
    if is_macho(data):
        parsed = read_macho_symbols(data)
    elif is_coff(data):
        parsed = read_coff_symbols(data)
    else:
        return None
    if parsed is None:
        return None
    defined, undefined = parsed
    return ObjectSymbols(member=member.name, defined=defined, undefined=undefined)


def _parse_elf_symbols(member: ArchiveMember) -> Optional[ObjectSymbols]:
    result = ObjectSymbols(member=member.name)
    try:
        elf = ELFFile(BytesIO(member.data))
        if elf["e_type"] != "ET_REL":
            return None
        for section in elf.iter_sections():
            if not isinstance(section, SymbolTableSection) or section["sh_type"] != "SHT_SYMTAB":
                continue
            strings = section.stringtable.data()
            for symbol in section.iter_symbols():
                raw = _raw_name(strings, symbol["st_name"])
                if not raw:
                    continue
                if symbol["st_shndx"] == "SHN_UNDEF":
                    result.undefined.append(UndefinedSymbol(raw))
                elif _is_definition(symbol):
                    result.defined.add(DefinedSymbol(raw))
    except ELFError as exc:
        LOGGER.debug("Failed to parse object %s: %s", member.name, exc)
        return None
    except Exception as exc:  # pragma: no cover - malformed object tripping pyelftools internals
        LOGGER.debug("Failed to parse object %s: %s", member.name, exc)
        return None
    return result


def collect_symbols(members: Iterable[ArchiveMember]) -> ArchiveSymbols:
    """Merge the symbols of every parseable member, skipping the rest."""

    symbols = ArchiveSymbols()
    for member in members:
        parsed = parse_object_symbols(member)
        if parsed is None:
            symbols.members_skipped += 1
            LOGGER.debug("Skipping member %s (not a readable relocatable object)", member.name)
            continue
        symbols.add(parsed)
    return symbols


def extract_archive_symbols(path: Path) -> ArchiveSymbols:
    """Return the symbols of the archive at ``path``; unreadable archives yield an empty result."""

    path = Path(path)
    try:
        with ArchiveReader(path) as reader:
            return collect_symbols(reader)
    except (OSError, ArchiveFormatError) as exc:
        LOGGER.warning("Unable to read archive %s: %s", path, exc)
        return ArchiveSymbols()


__all__ = [
    "ArchiveSymbols",
    "ObjectSymbols",
    "collect_symbols",
    "extract_archive_symbols",
    "parse_object_symbols",
]
