"""Load site records from a YAML file.

Site records are owned by the caller. This loader serves the operator CLI
and scripts that keep their sites in a file shaped like::

    sites:
      - name: blog
        type: wordpress
        url: https://blog.example.com
        apiToken: ${BLOG_TOKEN}
        config: {}

``${VAR}`` references are expanded from the environment so tokens can be
kept out of the file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from site_connectors.exceptions import ConnectorConfigurationError
from site_connectors.models import SiteConfig

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def _expand(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [_expand(item) for item in value]
    if isinstance(value, dict):
        return {key: _expand(item) for key, item in value.items()}
    return value


def parse_sites(data: Any, source: str = "<memory>") -> list[SiteConfig]:
    """Build site records from already-loaded YAML data.

    Accepts either a mapping with a ``sites`` list or a bare list.

    Raises:
        ConnectorConfigurationError: If the data is not a list of valid sites.
    """
    entries = data.get("sites") if isinstance(data, dict) else data
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConnectorConfigurationError(f"{source}: 'sites' must be a list")

    sites: list[SiteConfig] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConnectorConfigurationError(
                f"{source}: site #{index + 1} must be a mapping"
            )
        try:
            site = SiteConfig.model_validate(_expand(entry))
        except ValidationError as exc:
            raise ConnectorConfigurationError(
                f"{source}: site #{index + 1} is invalid: {exc}"
            ) from exc
        sites.append(site)
    return sites


def load_sites(path: str | Path) -> list[SiteConfig]:
    """Read site records from a YAML file.

    Args:
        path: File containing a ``sites:`` list.

    Returns:
        The parsed sites, in file order.

    Raises:
        ConnectorConfigurationError: If the file is missing, is not valid
            YAML or holds an invalid site.
    """
    file_path = Path(path)
    try:
        raw = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConnectorConfigurationError(
            f"Cannot read sites file {file_path}: {exc}"
        ) from exc
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConnectorConfigurationError(
            f"Invalid YAML in sites file {file_path}: {exc}"
        ) from exc

    sites = parse_sites(data, source=str(file_path))
    logger.debug("sites_loaded", path=str(file_path), count=len(sites))
    return sites


def find_site(sites: list[SiteConfig], name: str) -> SiteConfig:
    """Return the site called ``name``.

    Raises:
        ConnectorConfigurationError: If no site has that name.
    """
    for site in sites:
        if site.name == name:
            return site
    known = ", ".join(site.name for site in sites if site.name) or "none"
    raise ConnectorConfigurationError(f"Unknown site {name!r} (available: {known})")
