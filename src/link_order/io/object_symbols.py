"""Symbol table readers for Mach-O and COFF relocatable objects."""

from __future__ import annotations

import logging
import struct
from typing import Optional

from link_order.symbols import DefinedSymbol, UndefinedSymbol

LOGGER = logging.getLogger(__name__)

SymbolSets = tuple[set[DefinedSymbol], list[UndefinedSymbol]]

# magic -> (struct byte order, 64-bit)
MACHO_MAGICS = {
    b"\xcf\xfa\xed\xfe": ("<", True),
    b"\xce\xfa\xed\xfe": ("<", False),
    b"\xfe\xed\xfa\xcf": (">", True),
    b"\xfe\xed\xfa\xce": (">", False),
}
MH_OBJECT = 0x1
LC_SYMTAB = 0x2
N_STAB = 0xE0
N_TYPE = 0x0E
N_EXT = 0x01
N_UNDF = 0x0
N_ABS = 0x2
N_INDR = 0xA
N_SECT = 0xE

COFF_MACHINES = frozenset({0x14C, 0x1C0, 0x1C4, 0x8664, 0xAA64})
COFF_HEADER = struct.Struct("<HHIIIHH")
COFF_SYMBOL = struct.Struct("<8sIhHBB")
IMAGE_SYM_CLASS_EXTERNAL = 2
IMAGE_SYM_UNDEFINED = 0
IMAGE_SYM_ABSOLUTE = -1


def _c_string(table: bytes, offset: int) -> bytes:
    if offset <= 0 or offset >= len(table):
        return b""
    end = table.find(b"\x00", offset)
    if end == -1:
        end = len(table)
    return table[offset:end]


def is_macho(data: bytes) -> bool:
    return data[:4] in MACHO_MAGICS


def read_macho_symbols(data: bytes) -> Optional[SymbolSets]:
    """
    Classify the ``LC_SYMTAB`` entries of a Mach-O ``MH_OBJECT``.

    Debugger (stab) and non-external entries are ignored. An external ``N_UNDF`` entry with a
    non-zero value is a common symbol and counts as a definition.
    """

    order, wide = MACHO_MAGICS[data[:4]]
    try:
        _, _, _, filetype, ncmds, _, _ = struct.unpack_from(order + "IiiIIII", data, 0)
        if filetype != MH_OBJECT:
            return None
        offset = 32 if wide else 28
        for _ in range(ncmds):
            cmd, cmdsize = struct.unpack_from(order + "II", data, offset)
            if cmd == LC_SYMTAB:
                symoff, nsyms, stroff, strsize = struct.unpack_from(order + "IIII", data, offset + 8)
                return _read_nlist(data, order, wide, symoff, nsyms, data[stroff : stroff + strsize])
            if cmdsize < 8:
                LOGGER.debug("Load command with invalid size %d", cmdsize)
                return None
            offset += cmdsize
    except struct.error as exc:
        LOGGER.debug("Truncated Mach-O object: %s", exc)
        return None
    return set(), []


def _read_nlist(data: bytes, order: str, wide: bool, symoff: int, nsyms: int, strings: bytes) -> SymbolSets:
    entry = struct.Struct(order + ("IBBHQ" if wide else "IBBHI"))
    defined: set[DefinedSymbol] = set()
    undefined: list[UndefinedSymbol] = []
    for index in range(nsyms):
        n_strx, n_type, _, _, n_value = entry.unpack_from(data, symoff + index * entry.size)
        if n_type & N_STAB or not n_type & N_EXT:
            continue
        raw = _c_string(strings, n_strx)
        if not raw:
            continue
        kind = n_type & N_TYPE
        if kind == N_UNDF:
            if n_value:
                defined.add(DefinedSymbol(raw))
            else:
                undefined.append(UndefinedSymbol(raw))
        elif kind in (N_SECT, N_ABS, N_INDR):
            defined.add(DefinedSymbol(raw))
    return defined, undefined


def is_coff(data: bytes) -> bool:
    if len(data) < COFF_HEADER.size:
        return False
    machine, _, _, _, _, optional_size, _ = COFF_HEADER.unpack_from(data, 0)
    return machine in COFF_MACHINES and optional_size == 0


def read_coff_symbols(data: bytes) -> Optional[SymbolSets]:
    """
    Classify the external symbols of a COFF object (the member format of MinGW archives).

    Auxiliary records are stepped over. Names longer than eight bytes live in the string table
    that directly follows the symbol records.
    """

    _, _, _, symptr, nsyms, _, _ = COFF_HEADER.unpack_from(data, 0)
    strings_at = symptr + nsyms * COFF_SYMBOL.size
    if not symptr or strings_at > len(data):
        if nsyms:
            LOGGER.debug("COFF symbol table runs past the end of the object")
            return None
        return set(), []

    strings = data[strings_at:]
    defined: set[DefinedSymbol] = set()
    undefined: list[UndefinedSymbol] = []
    index = 0
    while index < nsyms:
        short_name, value, section, _, storage, aux_count = COFF_SYMBOL.unpack_from(
            data, symptr + index * COFF_SYMBOL.size
        )
        index += 1 + aux_count
        if storage != IMAGE_SYM_CLASS_EXTERNAL:
            continue
        if short_name[:4] == b"\x00\x00\x00\x00":
            raw = _c_string(strings, int.from_bytes(short_name[4:], "little"))
        else:
            raw = short_name.rstrip(b"\x00")
        if not raw:
            continue
        if section > 0 or section == IMAGE_SYM_ABSOLUTE:
            defined.add(DefinedSymbol(raw))
        elif section == IMAGE_SYM_UNDEFINED:
            if value:
                defined.add(DefinedSymbol(raw))
            else:
                undefined.append(UndefinedSymbol(raw))
    return defined, undefined


__all__ = ["SymbolSets", "is_coff", "is_macho", "read_coff_symbols", "read_macho_symbols"]
