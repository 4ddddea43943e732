"""Centralized exception hierarchy for the site-connectors package.

All domain-specific exceptions inherit from ``SiteConnectorError`` so
callers can catch the entire family with a single ``except`` clause.
Request failures are classified by cause (not by adapter) into an
``ErrorKind`` taxonomy, each kind with a fixed user-facing message.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

Locale = Literal["fr", "en"]


class SiteConnectorError(Exception):
    """Base exception for all site-connectors errors."""


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConnectorConfigurationError(SiteConnectorError):
    """Raised when a site configuration cannot be served by any adapter.

    Covers unknown site types, missing required configuration fields and
    unsupported Git providers. Always raised before any HTTP call.
    """


# ---------------------------------------------------------------------------
# Request errors
# ---------------------------------------------------------------------------


class ErrorKind(StrEnum):
    """Cause of a failed outbound request."""

    TIMEOUT = "timeout"
    CONNECTION = "connection_error"
    INVALID_TOKEN = "invalid_token"
    ACCESS_FORBIDDEN = "access_forbidden"
    ENDPOINT_NOT_FOUND = "endpoint_not_found"
    SERVER_ERROR = "server_error"
    INVALID_RESPONSE = "invalid_response"
    HTTP_ERROR = "http_error"
    UNKNOWN = "unknown_error"


RETRYABLE_KINDS = frozenset(
    {ErrorKind.TIMEOUT, ErrorKind.CONNECTION, ErrorKind.SERVER_ERROR}
)

USER_MESSAGES: dict[Locale, dict[ErrorKind, str]] = {
    "fr": {
        ErrorKind.TIMEOUT: (
            "Le site distant ne repond pas. Verifiez que le site est accessible."
        ),
        ErrorKind.CONNECTION: (
            "Impossible de se connecter au site distant. Verifiez l'URL."
        ),
        ErrorKind.INVALID_TOKEN: (
            "Le token API est invalide ou expire. Verifiez la configuration."
        ),
        ErrorKind.ACCESS_FORBIDDEN: (
            "Acces refuse. Verifiez les permissions du token."
        ),
        ErrorKind.ENDPOINT_NOT_FOUND: (
            "L'endpoint API n'existe pas. Verifiez que le plugin est active."
        ),
        ErrorKind.SERVER_ERROR: (
            "Erreur serveur du site distant. Contactez l'administrateur du site."
        ),
        ErrorKind.INVALID_RESPONSE: (
            "Reponse invalide du site distant. Le plugin est-il installe ?"
        ),
        ErrorKind.HTTP_ERROR: "Erreur de communication avec le site distant.",
        ErrorKind.UNKNOWN: "Une erreur inconnue est survenue.",
    },
    "en": {
        ErrorKind.TIMEOUT: (
            "The remote site is not responding. Check that the site is reachable."
        ),
        ErrorKind.CONNECTION: "Cannot connect to the remote site. Check the URL.",
        ErrorKind.INVALID_TOKEN: (
            "The API token is invalid or expired. Check the configuration."
        ),
        ErrorKind.ACCESS_FORBIDDEN: "Access denied. Check the token permissions.",
        ErrorKind.ENDPOINT_NOT_FOUND: (
            "The API endpoint does not exist. Check that the plugin is active."
        ),
        ErrorKind.SERVER_ERROR: (
            "The remote site returned a server error. Contact the site administrator."
        ),
        ErrorKind.INVALID_RESPONSE: (
            "Invalid response from the remote site. Is the plugin installed?"
        ),
        ErrorKind.HTTP_ERROR: "Communication error with the remote site.",
        ErrorKind.UNKNOWN: "An unknown error occurred.",
    },
}


class ConnectorRequestError(SiteConnectorError):
    """Base exception for failed outbound requests.

    ``str(exc)`` is the internal diagnostic message (URL, status, body
    excerpt). :meth:`user_message` is the deterministic message shown to
    end users.

    Attributes:
        kind: Classified cause of the failure.
        url: The requested URL.
        status_code: HTTP status when a response was received.
        body: Raw response body excerpt when a response was received.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body = body

    @property
    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def user_message(self, locale: Locale = "fr") -> str:
        """Return the user-facing message for this error kind.

        Args:
            locale: Message language; unknown locales fall back to French.

        Returns:
            A fixed, human-readable message without URLs or response bodies.
        """
        table = USER_MESSAGES.get(locale, USER_MESSAGES["fr"])
        return table[self.kind]


class RequestTimeoutError(ConnectorRequestError):
    """Raised when the remote site did not answer within the timeout."""

    kind = ErrorKind.TIMEOUT


class ConnectionFailedError(ConnectorRequestError):
    """Raised on DNS failures, refused or reset connections."""

    kind = ErrorKind.CONNECTION


class InvalidTokenError(ConnectorRequestError):
    """Raised on HTTP 401."""

    kind = ErrorKind.INVALID_TOKEN


class AccessForbiddenError(ConnectorRequestError):
    """Raised on HTTP 403."""

    kind = ErrorKind.ACCESS_FORBIDDEN


class EndpointNotFoundError(ConnectorRequestError):
    """Raised on HTTP 404."""

    kind = ErrorKind.ENDPOINT_NOT_FOUND


class ServerError(ConnectorRequestError):
    """Raised on HTTP 5xx."""

    kind = ErrorKind.SERVER_ERROR


class InvalidResponseError(ConnectorRequestError):
    """Raised when a body expected to be JSON is malformed."""

    kind = ErrorKind.INVALID_RESPONSE


class HttpError(ConnectorRequestError):
    """Raised on any other 4xx status or unclassified transport failure."""

    kind = ErrorKind.HTTP_ERROR


class UnknownRequestError(ConnectorRequestError):
    """Fallback when no cause could be determined."""

    kind = ErrorKind.UNKNOWN
