"""Reader for POSIX ``ar`` archives (static libraries)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator

LOGGER = logging.getLogger(__name__)

GLOBAL_MAGIC = b"!<arch>\n"
THIN_MAGIC = b"!<thin>\n"
HEADER_SIZE = 60
HEADER_TERMINATOR = b"`\n"

LONG_NAME_TABLE = "//"
GNU_SYMBOL_TABLES = frozenset({"/", "/SYM64/"})
BSD_SYMBOL_TABLES = frozenset({"__.SYMDEF", "__.SYMDEF SORTED", "__.SYMDEF_64", "__.SYMDEF_64 SORTED"})
BSD_LONG_NAME_PREFIX = "#1/"


class ArchiveFormatError(ValueError):
    """Raised when a file does not carry an ``ar`` global header."""


@dataclass(frozen=True, slots=True)
class ArchiveMember:
    name: str
    data: bytes


class ArchiveReader:
    """
    Iterate the members of a GNU, BSD or GNU thin ``ar`` archive.

    Symbol tables and the GNU long-name table are consumed internally and never yielded. Long
    names are resolved from either the ``//`` table (GNU) or the ``#1/<len>`` prefix (BSD). Thin
    archive members are loaded from disk relative to the archive's directory.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.thin = False
        self._handle: BinaryIO | None = None
        self._long_names: bytes | None = None

    def __enter__(self) -> "ArchiveReader":
        handle = self.path.open("rb")
        magic = handle.read(len(GLOBAL_MAGIC))
        if magic == THIN_MAGIC:
            self.thin = True
        elif magic != GLOBAL_MAGIC:
            handle.close()
            raise ArchiveFormatError(f"Not an ar archive: {self.path}")
        self._handle = handle
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __iter__(self) -> Iterator[ArchiveMember]:
        if self._handle is None:
            raise RuntimeError("ArchiveReader must be entered before iterating.")
        handle = self._handle

        while True:
            offset = handle.tell()
            header = handle.read(HEADER_SIZE)
            if not header:
                return
            if len(header) < HEADER_SIZE or header[58:60] != HEADER_TERMINATOR:
                LOGGER.debug("Malformed member header in %s at offset %d", self.path, offset)
                return
            try:
                size = int(header[48:58].strip() or b"0")
            except ValueError:
                LOGGER.debug("Invalid member size in %s at offset %d", self.path, offset)
                return
            if size < 0:
                LOGGER.debug("Negative member size %d in %s at offset %d", size, self.path, offset)
                return

            raw_name = header[0:16].decode("ascii", errors="replace").rstrip(" ")
            special = raw_name == LONG_NAME_TABLE or raw_name in GNU_SYMBOL_TABLES

            # thin archives store only the symbol and long-name tables inline
            data = b""
            if not self.thin or special:
                data = handle.read(size)
                if len(data) < size:
                    LOGGER.debug("Truncated member %r in %s", raw_name, self.path)
                    return
                if size % 2:
                    handle.read(1)

            if raw_name == LONG_NAME_TABLE:
                self._long_names = data
                continue
            if raw_name in GNU_SYMBOL_TABLES or raw_name in BSD_SYMBOL_TABLES:
                continue

            name, data = self._resolve_name(raw_name, data)
            if self.thin:
                member = self._load_thin_member(name)
                if member is not None:
                    yield member
                continue
            yield ArchiveMember(name=name, data=data)

    def _resolve_name(self, raw_name: str, data: bytes) -> tuple[str, bytes]:
        if raw_name.startswith(BSD_LONG_NAME_PREFIX):
            try:
                length = int(raw_name[len(BSD_LONG_NAME_PREFIX):])
            except ValueError:
                return raw_name, data
            name = data[:length].rstrip(b"\x00").decode("utf-8", errors="replace")
            return name, data[length:]

        if raw_name.startswith("/") and raw_name[1:].isdigit():
            if self._long_names is None:
                LOGGER.debug("Long name reference %s before name table in %s", raw_name, self.path)
                return raw_name, data
            start = int(raw_name[1:])
            end = self._long_names.find(b"\n", start)
            if end == -1:
                end = len(self._long_names)
            entry = self._long_names[start:end].rstrip(b"/")
            return entry.decode("utf-8", errors="replace"), data

        if raw_name.endswith("/"):
            return raw_name[:-1], data
        return raw_name, data

    def _load_thin_member(self, name: str) -> ArchiveMember | None:
        member_path = Path(name)
        if not member_path.is_absolute():
            member_path = self.path.parent / member_path
        try:
            data = member_path.read_bytes()
        except OSError as exc:
            LOGGER.debug("Skipping thin member %s of %s: %s", name, self.path, exc)
            return None
        return ArchiveMember(name=name, data=data)


def iter_archive_members(path: Path) -> Iterator[ArchiveMember]:
    """Yield every regular member of the archive at ``path``."""

    with ArchiveReader(path) as reader:
        yield from reader


__all__ = ["ArchiveFormatError", "ArchiveMember", "ArchiveReader", "iter_archive_members"]
