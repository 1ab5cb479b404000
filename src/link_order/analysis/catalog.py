"""Discover static archives below a root directory and describe their symbols."""

from __future__ import annotations

import concurrent.futures
import logging
import os
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from link_order.analysis.symbol_extractor import ArchiveSymbols, extract_archive_symbols
from link_order.symbols import DefinedSymbol, UndefinedSymbol

LOGGER = logging.getLogger(__name__)

ARCHIVE_NAME_PATTERN = re.compile(r"lib(?P<name>.+)\.a")


def static_library_name(file_name: str) -> Optional[str]:
    """Strip the ``lib``/``.a`` wrapper from an archive filename, or ``None`` if it has none."""

    match = ARCHIVE_NAME_PATTERN.fullmatch(file_name)
    if match is None:
        return None
    return match.group("name")


def is_static_library(file_name: str) -> bool:
    return static_library_name(file_name) is not None


class LibraryDescriptor:
    """One discovered static archive. Two descriptors are equal when their names are."""

    __slots__ = ("name", "path", "defined", "undefined")

    def __init__(
        self,
        name: str,
        path: Path,
        defined: Iterable[DefinedSymbol] = (),
        undefined: Iterable[UndefinedSymbol] = (),
    ) -> None:
        self.name = name
        self.path = Path(path)
        self.defined = frozenset(defined)
        self.undefined = tuple(undefined)

    @property
    def file_name(self) -> str:
        return self.path.name

    @property
    def directory(self) -> Path:
        return self.path.parent

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LibraryDescriptor):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"LibraryDescriptor(name={self.name!r}, path={str(self.path)!r})"

    def __str__(self) -> str:
        return self.name


@dataclass(slots=True)
class ShadowedArchive:
    name: str
    path: Path
    kept: Path


@dataclass
class LibraryCatalog(Mapping[str, LibraryDescriptor]):
    """Descriptors keyed by library name, iterated in name order."""

    root: Path
    libraries: dict[str, LibraryDescriptor] = field(default_factory=dict)
    shadowed: List[ShadowedArchive] = field(default_factory=list)

    def __getitem__(self, name: str) -> LibraryDescriptor:
        return self.libraries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.libraries))

    def __len__(self) -> int:
        return len(self.libraries)

    def descriptors(self) -> list[LibraryDescriptor]:
        return [self.libraries[name] for name in self]


def discover_archives(root: Path, *, follow_symlinks: bool = False) -> Iterator[Path]:
    """Recursively yield regular files named ``lib<name>.a`` in sorted walk order."""

    root = Path(root)
    visited: set[tuple[int, int]] = set()
    for dirpath, dirnames, filenames in os.walk(root, followlinks=follow_symlinks):
        stat = os.stat(dirpath)
        key = (stat.st_dev, stat.st_ino)
        if key in visited:
            # symlinked directory already walked (or a loop back to an ancestor)
            dirnames[:] = []
            continue
        visited.add(key)
        dirnames.sort()
        for filename in sorted(filenames):
            if not is_static_library(filename):
                continue
            candidate = Path(dirpath) / filename
            if candidate.is_symlink() and not follow_symlinks:
                continue
            if not candidate.is_file():
                continue
            yield candidate


def _unique_archives(paths: Iterable[Path]) -> tuple[dict[str, Path], list[ShadowedArchive]]:
    selected: dict[str, Path] = {}
    shadowed: list[ShadowedArchive] = []
    for path in paths:
        name = static_library_name(path.name)
        if name is None:
            continue
        kept = selected.get(name)
        if kept is not None:
            LOGGER.warning("Ignoring %s: library %r already provided by %s", path, name, kept)
            shadowed.append(ShadowedArchive(name=name, path=path, kept=kept))
            continue
        selected[name] = path
    return selected, shadowed


def _extract_all(paths: list[Path], jobs: int) -> list[ArchiveSymbols]:
    if jobs <= 1 or len(paths) <= 1:
        return [extract_archive_symbols(path) for path in paths]
    max_workers = min(jobs, len(paths))
    with concurrent.futures.ProcessPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(extract_archive_symbols, paths))


def build_catalog(root: Path, *, jobs: int = 1, follow_symlinks: bool = False) -> LibraryCatalog:
    """
    Scan ``root`` for static archives and build one descriptor per distinct library name.

    When two archives share a name the first one found in sorted walk order is kept and the
    others are recorded in :attr:`LibraryCatalog.shadowed`. Archives are parsed only after this
    deduplication; with ``jobs > 1`` parsing is spread over worker processes.
    """

    root = Path(root)
    selected, shadowed = _unique_archives(discover_archives(root, follow_symlinks=follow_symlinks))
    names = list(selected)
    paths = [selected[name] for name in names]
    LOGGER.info("Found %d static libraries under %s", len(paths), root)

    catalog = LibraryCatalog(root=root, shadowed=shadowed)
    for name, path, symbols in zip(names, paths, _extract_all(paths, jobs)):
        catalog.libraries[name] = LibraryDescriptor(name, path, symbols.defined, symbols.undefined)
        if symbols.members_skipped and not symbols.objects_parsed:
            LOGGER.warning(
                "%s: none of its %d members is a readable ELF, Mach-O or COFF object; it contributes no symbols",
                path,
                symbols.members_skipped,
            )
        LOGGER.debug(
            "%s: %d objects, %d skipped members, %d defined, %d undefined",
            path,
            symbols.objects_parsed,
            symbols.members_skipped,
            len(symbols.defined),
            len(symbols.undefined),
        )
    return catalog


__all__ = [
    "ARCHIVE_NAME_PATTERN",
    "LibraryCatalog",
    "LibraryDescriptor",
    "ShadowedArchive",
    "build_catalog",
    "discover_archives",
    "is_static_library",
    "static_library_name",
]
