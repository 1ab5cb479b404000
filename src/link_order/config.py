"""Configuration primitives for a resolution run."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True)
class ResolverConfig:
    """Settings guiding one scan-and-resolve run."""

    root: Path
    jobs: int = 1
    follow_symlinks: bool = False

    @classmethod
    def from_root(
        cls,
        root: Path,
        *,
        jobs: int | None = None,
        follow_symlinks: bool = False,
    ) -> "ResolverConfig":
        """Factory helper that normalises the root path and worker count."""

        if jobs is None or jobs <= 0:
            jobs = os.cpu_count() or 1
        return cls(
            root=Path(root).expanduser().resolve(),
            jobs=jobs,
            follow_symlinks=follow_symlinks,
        )
