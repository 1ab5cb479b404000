"""Turn an ordered library list into linker directives."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Sequence

from link_order.analysis.catalog import LibraryDescriptor


class FlagStyle(str, Enum):
    GNU = "gnu"
    CARGO = "cargo"


@dataclass(frozen=True, slots=True)
class LinkDirective:
    search_path: Path
    library: str


def link_directives(ordered: Iterable[LibraryDescriptor]) -> List[LinkDirective]:
    """One search-path/library pair per entry, in link order."""

    return [LinkDirective(search_path=library.directory, library=library.name) for library in ordered]


def render_flags(directives: Sequence[LinkDirective], style: FlagStyle | str = FlagStyle.GNU) -> List[str]:
    """
    Format ``directives`` for a build system.

    ``gnu`` produces ``-L`` flags for each distinct directory (first-seen order) followed by the
    ``-l`` flags in link order. ``cargo`` produces the ``cargo:rustc-link-*`` lines a build script
    prints, one search path and one library per entry.
    """

    style = FlagStyle(style)
    if style is FlagStyle.CARGO:
        lines: List[str] = []
        for directive in directives:
            lines.append(f"cargo:rustc-link-search=native={directive.search_path}")
            lines.append(f"cargo:rustc-link-lib=static={directive.library}")
        return lines

    search_paths: List[str] = []
    for directive in directives:
        flag = f"-L{directive.search_path}"
        if flag not in search_paths:
            search_paths.append(flag)
    return search_paths + [f"-l{directive.library}" for directive in directives]


__all__ = ["FlagStyle", "LinkDirective", "link_directives", "render_flags"]
