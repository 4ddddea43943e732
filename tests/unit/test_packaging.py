"""Packaging and version metadata tests."""

from __future__ import annotations

import importlib.metadata
import tomllib
from pathlib import Path

from site_connectors import __version__


def _load_pyproject() -> dict[str, object]:
    pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
    with pyproject.open("rb") as f:
        return tomllib.load(f)


def test_console_entrypoint_is_configured() -> None:
    data = _load_pyproject()
    scripts = data["project"]["scripts"]
    assert scripts["site-connectors"] == "site_connectors.cli:main"


def test_module_version_matches_pyproject() -> None:
    data = _load_pyproject()
    expected = data["project"]["version"]
    assert __version__ == expected


def test_importlib_metadata_version_matches_when_installed() -> None:
    data = _load_pyproject()
    expected = data["project"]["version"]
    try:
        installed_version = importlib.metadata.version("site-connectors")
    except importlib.metadata.PackageNotFoundError:
        installed_version = expected
    assert installed_version == expected


def test_runtime_dependencies_are_declared() -> None:
    data = _load_pyproject()
    declared = {
        dep.split(">")[0].split("=")[0].split("[")[0].strip().lower()
        for dep in data["project"]["dependencies"]
    }
    for name in ("httpx", "pydantic", "pyyaml", "structlog", "tenacity", "typer"):
        assert name in declared
