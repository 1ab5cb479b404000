"""Core package for the static library link-order resolver."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("link-order")
except PackageNotFoundError:  # pragma: no cover - package metadata absent in dev mode
    __version__ = "0.0.0"

__all__ = ["__version__"]
