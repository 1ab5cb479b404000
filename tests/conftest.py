"""Shared fixtures: byte-level builders for ELF objects and ar archives."""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Iterable, Sequence

import pytest

from link_order.analysis.catalog import LibraryDescriptor
from link_order.symbols import DefinedSymbol, UndefinedSymbol

ELF_HEADER = struct.Struct("<16sHHIQQQIHHHHHH")
SECTION_HEADER = struct.Struct("<IIQQQQIIQQ")
ELF_SYMBOL = struct.Struct("<IBBHQQ")

ET_REL = 1
EM_X86_64 = 62
STB_LOCAL, STB_GLOBAL, STB_WEAK = 0, 1, 2
STT_NOTYPE, STT_OBJECT, STT_FUNC, STT_SECTION, STT_FILE, STT_TLS = 0, 1, 2, 3, 4, 6
SHN_ABS, SHN_COMMON = 0xFFF1, 0xFFF2
SHT_PROGBITS, SHT_SYMTAB, SHT_STRTAB = 1, 2, 3

MACHO_HEADER = struct.Struct("<IiiIIIII")
MACHO_SYMTAB_COMMAND = struct.Struct("<IIIIII")
MACHO_NLIST = struct.Struct("<IBBHQ")
MH_MAGIC_64 = 0xFEEDFACF
MH_OBJECT, MH_EXECUTE = 1, 2
N_EXT, N_UNDF, N_SECT, N_FUN = 0x01, 0x00, 0x0E, 0x24

COFF_HEADER = struct.Struct("<HHIIIHH")
COFF_SYMBOL = struct.Struct("<8sIhHBB")
IMAGE_FILE_MACHINE_AMD64 = 0x8664
IMAGE_SYM_CLASS_EXTERNAL, IMAGE_SYM_CLASS_STATIC = 2, 3


def _raw(name: str | bytes) -> bytes:
    return name if isinstance(name, bytes) else name.encode("utf-8")


def _pad(buffer: bytearray, boundary: int) -> None:
    while len(buffer) % boundary:
        buffer.append(0)


def build_elf_object(
    defined: Iterable[str | bytes] = (),
    undefined: Iterable[str | bytes] = (),
    *,
    local: Iterable[str | bytes] = (),
    weak: Iterable[str | bytes] = (),
    extra: Iterable[tuple[str | bytes, int, int, int, int]] = (),
    e_type: int = ET_REL,
) -> bytes:
    """
    Minimal little-endian ELF64 object: .text, .symtab, .strtab and .shstrtab.

    ``extra`` holds non-local ``(name, binding, type, section index, size)`` entries appended
    after the regular globals.
    """

    names = bytearray(b"\x00")

    def add_name(name: str | bytes) -> int:
        offset = len(names)
        names.extend(_raw(name) + b"\x00")
        return offset

    symbols = [ELF_SYMBOL.pack(0, 0, 0, 0, 0, 0)]
    for name in local:
        symbols.append(ELF_SYMBOL.pack(add_name(name), (STB_LOCAL << 4) | STT_FUNC, 0, 1, 0, 4))
    first_global = len(symbols)
    for name in defined:
        symbols.append(ELF_SYMBOL.pack(add_name(name), (STB_GLOBAL << 4) | STT_FUNC, 0, 1, 0, 4))
    for name in weak:
        symbols.append(ELF_SYMBOL.pack(add_name(name), (STB_WEAK << 4) | STT_FUNC, 0, 1, 0, 4))
    for name in undefined:
        symbols.append(ELF_SYMBOL.pack(add_name(name), (STB_GLOBAL << 4) | STT_NOTYPE, 0, 0, 0, 0))
    for name, binding, kind, shndx, size in extra:
        symbols.append(ELF_SYMBOL.pack(add_name(name), (binding << 4) | kind, 0, shndx, 0, size))

    section_names = b"\x00.text\x00.symtab\x00.strtab\x00.shstrtab\x00"

    body = bytearray(ELF_HEADER.size)
    text_offset = len(body)
    text = b"\xc3" * 16
    body += text
    _pad(body, 8)
    symtab_offset = len(body)
    symtab = b"".join(symbols)
    body += symtab
    strtab_offset = len(body)
    body += names
    shstrtab_offset = len(body)
    body += section_names
    _pad(body, 8)
    section_offset = len(body)

    sections = [
        SECTION_HEADER.pack(0, 0, 0, 0, 0, 0, 0, 0, 0, 0),
        SECTION_HEADER.pack(
            section_names.index(b".text"), SHT_PROGBITS, 0x6, 0, text_offset, len(text), 0, 0, 16, 0
        ),
        SECTION_HEADER.pack(
            section_names.index(b".symtab"),
            SHT_SYMTAB,
            0,
            0,
            symtab_offset,
            len(symtab),
            3,
            first_global,
            8,
            ELF_SYMBOL.size,
        ),
        SECTION_HEADER.pack(section_names.index(b".strtab"), SHT_STRTAB, 0, 0, strtab_offset, len(names), 0, 0, 1, 0),
        SECTION_HEADER.pack(
            section_names.index(b".shstrtab"), SHT_STRTAB, 0, 0, shstrtab_offset, len(section_names), 0, 0, 1, 0
        ),
    ]
    for section in sections:
        body += section

    ident = b"\x7fELF" + bytes([2, 1, 1, 0]) + bytes(8)
    body[0 : ELF_HEADER.size] = ELF_HEADER.pack(
        ident,
        e_type,
        EM_X86_64,
        1,
        0,
        0,
        section_offset,
        0,
        ELF_HEADER.size,
        0,
        0,
        SECTION_HEADER.size,
        len(sections),
        4,
    )
    return bytes(body)


def build_macho_object(
    defined: Iterable[str | bytes] = (),
    undefined: Iterable[str | bytes] = (),
    *,
    local: Iterable[str | bytes] = (),
    common: Iterable[str | bytes] = (),
    stabs: Iterable[str | bytes] = (),
    filetype: int = MH_OBJECT,
) -> bytes:
    """Little-endian 64-bit Mach-O with a single ``LC_SYMTAB`` load command."""

    strings = bytearray(b"\x00")

    def add_name(name: str | bytes) -> int:
        offset = len(strings)
        strings.extend(_raw(name) + b"\x00")
        return offset

    entries = []
    for name in stabs:
        entries.append(MACHO_NLIST.pack(add_name(name), N_FUN, 1, 0, 0))
    for name in local:
        entries.append(MACHO_NLIST.pack(add_name(name), N_SECT, 1, 0, 0))
    for name in defined:
        entries.append(MACHO_NLIST.pack(add_name(name), N_SECT | N_EXT, 1, 0, 0))
    for name in common:
        entries.append(MACHO_NLIST.pack(add_name(name), N_UNDF | N_EXT, 0, 0, 8))
    for name in undefined:
        entries.append(MACHO_NLIST.pack(add_name(name), N_UNDF | N_EXT, 0, 0, 0))

    symoff = MACHO_HEADER.size + MACHO_SYMTAB_COMMAND.size
    stroff = symoff + MACHO_NLIST.size * len(entries)
    header = MACHO_HEADER.pack(MH_MAGIC_64, 0x01000007, 3, filetype, 1, MACHO_SYMTAB_COMMAND.size, 0, 0)
    command = MACHO_SYMTAB_COMMAND.pack(0x2, MACHO_SYMTAB_COMMAND.size, symoff, len(entries), stroff, len(strings))
    return header + command + b"".join(entries) + bytes(strings)


def build_coff_object(
    defined: Iterable[str | bytes] = (),
    undefined: Iterable[str | bytes] = (),
    *,
    static: Iterable[str | bytes] = (),
    common: Iterable[str | bytes] = (),
) -> bytes:
    """AMD64 COFF object with no sections; static symbols carry one auxiliary record."""

    strings = bytearray()
    records: list[bytes] = []

    def symbol(name: str | bytes, value: int, section: int, storage: int, aux: int = 0) -> None:
        raw = _raw(name)
        if len(raw) <= 8:
            field = raw.ljust(8, b"\x00")
        else:
            field = bytes(4) + (4 + len(strings)).to_bytes(4, "little")
            strings.extend(raw + b"\x00")
        records.append(COFF_SYMBOL.pack(field, value, section, 0, storage, aux))
        records.extend(bytes(COFF_SYMBOL.size) for _ in range(aux))

    for name in static:
        symbol(name, 0, 1, IMAGE_SYM_CLASS_STATIC, aux=1)
    for name in defined:
        symbol(name, 0, 1, IMAGE_SYM_CLASS_EXTERNAL)
    for name in common:
        symbol(name, 16, 0, IMAGE_SYM_CLASS_EXTERNAL)
    for name in undefined:
        symbol(name, 0, 0, IMAGE_SYM_CLASS_EXTERNAL)

    header = COFF_HEADER.pack(IMAGE_FILE_MACHINE_AMD64, 0, 0, COFF_HEADER.size, len(records), 0, 0)
    string_table = (4 + len(strings)).to_bytes(4, "little") + bytes(strings)
    return header + b"".join(records) + string_table


def _member_header(name: bytes, size: int) -> bytes:
    header = (
        name.ljust(16)
        + b"0".ljust(12)
        + b"0".ljust(6)
        + b"0".ljust(6)
        + b"100644".ljust(8)
        + str(size).encode("ascii").ljust(10)
        + b"`\n"
    )
    assert len(header) == 60
    return header


def _member(name: bytes, data: bytes) -> bytes:
    padding = b"\n" if len(data) % 2 else b""
    return _member_header(name, len(data)) + data + padding


def build_archive(members: Sequence[tuple[str, bytes]], *, symbol_table: bool = True) -> bytes:
    """GNU-style archive; names longer than 15 characters go through the ``//`` table."""

    long_names = bytearray()
    entries: list[tuple[bytes, bytes]] = []
    for name, data in members:
        if len(name) > 15:
            reference = f"/{len(long_names)}".encode("ascii")
            long_names.extend(name.encode("utf-8") + b"/\n")
            entries.append((reference, data))
        else:
            entries.append((name.encode("utf-8") + b"/", data))

    archive = bytearray(b"!<arch>\n")
    if symbol_table:
        archive += _member(b"/", b"\x00\x00\x00\x00")
    if long_names:
        archive += _member(b"//", bytes(long_names))
    for name, data in entries:
        archive += _member(name, data)
    return bytes(archive)


def build_bsd_archive(members: Sequence[tuple[str, bytes]]) -> bytes:
    """BSD-style archive with a ``__.SYMDEF SORTED`` table and ``#1/<len>`` long names."""

    archive = bytearray(b"!<arch>\n")
    archive += _member(b"__.SYMDEF SORTED", bytes(8))
    for name, data in members:
        raw = name.encode("utf-8")
        if len(raw) > 16 or b" " in raw:
            padded = raw.ljust((len(raw) + 3) // 4 * 4, b"\x00")
            archive += _member(f"#1/{len(padded)}".encode("ascii"), padded + data)
        else:
            archive += _member(raw, data)
    return bytes(archive)


def build_thin_archive(member_names: Sequence[str], sizes: Sequence[int] | None = None) -> bytes:
    """GNU thin archive referencing external member files by name."""

    sizes = sizes or [0] * len(member_names)
    long_names = bytearray()
    references = []
    for name in member_names:
        references.append(f"/{len(long_names)}".encode("ascii"))
        long_names.extend(name.encode("utf-8") + b"/\n")

    archive = bytearray(b"!<thin>\n")
    archive += _member(b"/", b"\x00\x00\x00\x00")
    archive += _member(b"//", bytes(long_names))
    for reference, size in zip(references, sizes):
        archive += _member_header(reference, size)
    return bytes(archive)


def make_descriptor(
    name: str,
    defined: Iterable[str | bytes] = (),
    undefined: Iterable[str | bytes] = (),
    *,
    directory: Path = Path("/opt/libs"),
) -> LibraryDescriptor:
    return LibraryDescriptor(
        name,
        directory / f"lib{name}.a",
        [DefinedSymbol(_raw(symbol)) for symbol in defined],
        [UndefinedSymbol(_raw(symbol)) for symbol in undefined],
    )


@pytest.fixture
def make_object():
    return build_elf_object


@pytest.fixture
def make_macho_object():
    return build_macho_object


@pytest.fixture
def make_coff_object():
    return build_coff_object


@pytest.fixture
def make_member_header():
    return _member_header


@pytest.fixture
def make_archive():
    return build_archive


@pytest.fixture
def make_bsd_archive():
    return build_bsd_archive


@pytest.fixture
def make_thin_archive():
    return build_thin_archive


@pytest.fixture
def make_library():
    return make_descriptor


@pytest.fixture
def write_library(tmp_path: Path):
    """Write ``lib<name>.a`` holding one object with the given symbols; returns its path."""

    def _write(
        name: str,
        defined: Iterable[str] = (),
        undefined: Iterable[str] = (),
        *,
        directory: Path | None = None,
    ) -> Path:
        target_dir = directory or tmp_path
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / f"lib{name}.a"
        target.write_bytes(build_archive([(f"{name}.o", build_elf_object(defined, undefined))]))
        return target

    return _write
