"""Provider adapters: WordPress plugin, generic REST API and Git static sites.

Each adapter is an independent class satisfying :class:`SiteConnector`.
"""

from __future__ import annotations

from site_connectors.connectors.base import SiteConnector
from site_connectors.connectors.generic_api import (
    GENERIC_API_DESCRIPTOR,
    GenericApiConnector,
)
from site_connectors.connectors.git import GIT_DESCRIPTOR, GitConnector
from site_connectors.connectors.wordpress import (
    WORDPRESS_DESCRIPTOR,
    WordPressConnector,
)

__all__ = [
    "GENERIC_API_DESCRIPTOR",
    "GIT_DESCRIPTOR",
    "WORDPRESS_DESCRIPTOR",
    "GenericApiConnector",
    "GitConnector",
    "SiteConnector",
    "WordPressConnector",
]
