"""site-connectors: Uniform publishing and content access across remote sites."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("site-connectors")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = ["__version__"]
