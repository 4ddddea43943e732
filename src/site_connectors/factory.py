"""Resolve a site's declared type to a connector instance.

The registry maps each type string to a descriptor and a constructor. It
is fixed when the factory is built: ``with_connector`` returns a new
factory rather than mutating this one. Connector instances carry no
per-site state, so one instance per type is cached and shared between
calls and threads.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import structlog

from site_connectors.config import Settings
from site_connectors.connectors import (
    GENERIC_API_DESCRIPTOR,
    GIT_DESCRIPTOR,
    WORDPRESS_DESCRIPTOR,
    GenericApiConnector,
    GitConnector,
    SiteConnector,
    WordPressConnector,
)
from site_connectors.exceptions import ConnectorConfigurationError
from site_connectors.executor import RequestExecutor

if TYPE_CHECKING:
    import httpx

    from site_connectors.models import (
        ConfigurationField,
        ConnectorDescriptor,
        SiteConfig,
    )

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

ConnectorConstructor = Callable[[RequestExecutor, Settings], SiteConnector]


@dataclass(frozen=True)
class ConnectorRegistration:
    """Catalog entry plus the constructor for one connector type."""

    descriptor: ConnectorDescriptor
    build: ConnectorConstructor

    @property
    def type(self) -> str:
        return self.descriptor.type


DEFAULT_REGISTRATIONS: tuple[ConnectorRegistration, ...] = (
    ConnectorRegistration(
        WORDPRESS_DESCRIPTOR,
        lambda executor, settings: WordPressConnector(executor, settings.wordpress),
    ),
    ConnectorRegistration(
        GENERIC_API_DESCRIPTOR,
        lambda executor, settings: GenericApiConnector(
            executor, settings.generic_api
        ),
    ),
    ConnectorRegistration(
        GIT_DESCRIPTOR,
        lambda executor, settings: GitConnector(executor, settings.git),
    ),
)


class ConnectorFactory:
    """Registry of connector types with a shared executor.

    Args:
        executor: Request executor handed to every connector.
        settings: Resolved settings; per-adapter sections are passed on.
        registrations: Connector types to register. A later entry with the
            same type replaces an earlier one.
    """

    def __init__(
        self,
        executor: RequestExecutor,
        settings: Settings | None = None,
        registrations: Iterable[ConnectorRegistration] = DEFAULT_REGISTRATIONS,
    ) -> None:
        self._executor = executor
        self._settings = settings or Settings()
        registry: dict[str, ConnectorRegistration] = {}
        for registration in registrations:
            registry[registration.type] = registration
        self._registry = MappingProxyType(registry)
        self._instances: dict[str, SiteConnector] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: httpx.Client | None = None,
        **executor_options: Any,
    ) -> ConnectorFactory:
        """Build a factory and its executor from resolved settings."""
        executor = RequestExecutor.from_settings(
            settings.connector, client, **executor_options
        )
        return cls(executor, settings)

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def registered_types(self) -> tuple[str, ...]:
        return tuple(self._registry)

    def close(self) -> None:
        self._executor.close()

    def __enter__(self) -> ConnectorFactory:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    # -- resolution -----------------------------------------------------------

    def has_connector(self, connector_type: str) -> bool:
        return connector_type in self._registry

    def _registration(self, connector_type: str) -> ConnectorRegistration:
        registration = self._registry.get(connector_type)
        if registration is None:
            known = ", ".join(sorted(self._registry)) or "none"
            raise ConnectorConfigurationError(
                f"No connector registered for site type {connector_type!r} "
                f"(available: {known})"
            )
        return registration

    def resolve_type(self, connector_type: str) -> SiteConnector:
        """Return the (cached) connector for a type string.

        Raises:
            ConnectorConfigurationError: If the type is not registered. No
                connector is built and no request is sent in that case.
        """
        registration = self._registration(connector_type)
        with self._lock:
            connector = self._instances.get(connector_type)
            if connector is None:
                connector = registration.build(self._executor, self._settings)
                self._instances[connector_type] = connector
                logger.debug("connector_created", type=connector_type)
            return connector

    def resolve(self, site: SiteConfig) -> SiteConnector:
        """Return the connector serving ``site`` according to its ``type``.

        Raises:
            ConnectorConfigurationError: If ``site.type`` is not registered.
        """
        return self.resolve_type(site.type)

    # -- catalog --------------------------------------------------------------

    def catalog(self) -> list[ConnectorDescriptor]:
        """Descriptors of every registered type, in registration order."""
        return [registration.descriptor for registration in self._registry.values()]

    def configuration_fields(
        self, connector_type: str
    ) -> tuple[ConfigurationField, ...]:
        return self._registration(connector_type).descriptor.configuration_fields

    def validate(self, site: SiteConfig) -> list[str]:
        """Check ``site`` against its own adapter's configuration schema."""
        if not self.has_connector(site.type):
            known = ", ".join(sorted(self._registry)) or "none"
            return [
                f"type: unknown connector type {site.type!r} (available: {known})"
            ]
        return self._registry[site.type].descriptor.validate_site(site)

    def with_connector(
        self, descriptor: ConnectorDescriptor, build: ConnectorConstructor
    ) -> ConnectorFactory:
        """Return a new factory with one more (or one replaced) connector type.

        The new factory shares this factory's executor and settings.
        """
        registrations = (
            *self._registry.values(),
            ConnectorRegistration(descriptor, build),
        )
        return ConnectorFactory(self._executor, self._settings, registrations)
