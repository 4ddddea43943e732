"""Bounded-retry request executor shared by every connector.

Wraps each outbound call in a tenacity retry loop: a fixed per-attempt
timeout, ``max_attempts`` attempts in total and an incrementing wait of
``attempt * backoff_seconds`` between them. Failures are classified into
the :class:`~site_connectors.exceptions.ErrorKind` taxonomy; only
timeouts, connection failures and 5xx responses are retried. A malformed
JSON body is never retried.
"""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from site_connectors.exceptions import (
    AccessForbiddenError,
    ConnectionFailedError,
    ConnectorRequestError,
    EndpointNotFoundError,
    HttpError,
    InvalidResponseError,
    InvalidTokenError,
    RequestTimeoutError,
    ServerError,
    UnknownRequestError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from site_connectors.config import ConnectorSettings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_ATTEMPTS = 2
DEFAULT_BACKOFF_SECONDS = 0.5

_BODY_EXCERPT_CHARS = 500


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def extract_error_message(body: str) -> str:
    """Pull a readable message out of an error response body.

    Tries JSON ``message`` then ``error``, falling back to the raw text.
    """
    try:
        data = json.loads(body)
    except ValueError:
        return body or "No error message provided"
    if isinstance(data, dict):
        for key in ("message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return body or "No error message provided"


def classify_status(status_code: int, body: str, url: str) -> ConnectorRequestError:
    """Build the taxonomy error for an HTTP error status.

    Args:
        status_code: Response status (>= 400).
        body: Raw response body.
        url: Requested URL, included in the diagnostic message.

    Returns:
        The exception instance to raise.
    """
    message = extract_error_message(body)
    excerpt = body[:_BODY_EXCERPT_CHARS]
    context: dict[str, Any] = {"url": url, "status_code": status_code, "body": excerpt}

    if status_code == 401:
        return InvalidTokenError(f"Invalid API token for {url}: {message}", **context)
    if status_code == 403:
        return AccessForbiddenError(
            f"Access forbidden for {url}: {message}", **context
        )
    if status_code == 404:
        return EndpointNotFoundError(f"Endpoint not found: {url}", **context)
    if status_code >= 500:
        return ServerError(
            f"Server error ({status_code}) from {url}: {message}", **context
        )
    return HttpError(f"HTTP error {status_code} from {url}: {message}", **context)


def decode_json(response: httpx.Response, url: str) -> Any:
    """Decode a JSON body; empty bodies and ``null`` decode to ``{}``.

    Raises:
        InvalidResponseError: If the body is not valid JSON.
    """
    if not response.content.strip():
        return {}
    try:
        data = response.json()
    except ValueError as exc:
        raise InvalidResponseError(
            f"Invalid JSON response from {url}: {exc}",
            url=url,
            status_code=response.status_code,
            body=response.text[:_BODY_EXCERPT_CHARS],
        ) from exc
    return {} if data is None else data


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ConnectorRequestError) and exc.is_retryable


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "request_attempt_failed",
        url=getattr(exc, "url", ""),
        attempt=retry_state.attempt_number,
        kind=getattr(exc, "kind", None),
        status=getattr(exc, "status_code", None),
        error=str(exc),
    )


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class RequestExecutor:
    """Send HTTP requests with bounded retry and error classification.

    Holds no per-call state, so one instance (and its ``httpx.Client``)
    can be shared by every connector and used from several threads.

    Attributes:
        timeout: Per-attempt timeout in seconds.
        max_attempts: Total attempts per call, first one included.
        backoff_seconds: Base of the ``attempt * backoff_seconds`` wait.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None
        self._sleep = sleep
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    @classmethod
    def from_settings(
        cls,
        settings: ConnectorSettings,
        client: httpx.Client | None = None,
        **kwargs: Any,
    ) -> RequestExecutor:
        return cls(
            client,
            timeout=settings.timeout,
            max_attempts=settings.max_attempts,
            backoff_seconds=settings.backoff_seconds,
            **kwargs,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> RequestExecutor:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    # -- public API ---------------------------------------------------------

    def request_json(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and decode its JSON body.

        Args:
            method: HTTP method.
            url: Absolute URL.
            headers: Extra headers; they override the default ``Accept``.
            params: Query parameters.
            json: JSON request body.

        Returns:
            The decoded JSON document (``{}`` for an empty body).

        Raises:
            ConnectorRequestError: Classified failure after the retry policy.
        """
        response = self._send(
            method,
            url,
            headers=headers,
            params=params,
            json=json,
            accept="application/json",
        )
        return decode_json(response, url)

    def request_text(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> str:
        """Send a request and return the raw body text."""
        response = self._send(
            method, url, headers=headers, params=params, json=None, accept="*/*"
        )
        return response.text

    # -- internals ------------------------------------------------------------

    def _send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None,
        params: Mapping[str, Any] | None,
        json: Any,
        accept: str,
    ) -> httpx.Response:
        merged_headers = {"Accept": accept, **(headers or {})}
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(
                start=self.backoff_seconds, increment=self.backoff_seconds
            ),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            return retrying(
                self._attempt,
                method,
                url,
                headers=merged_headers,
                params=params,
                json=json,
            )
        except ConnectorRequestError as exc:
            logger.error(
                "request_failed",
                method=method,
                url=url,
                kind=exc.kind,
                status=exc.status_code,
                error=str(exc),
            )
            raise

    def _attempt(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        params: Mapping[str, Any] | None,
        json: Any,
    ) -> httpx.Response:
        try:
            response = self._client.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(
                f"Connection timeout to {url}: {exc}", url=url
            ) from exc
        except (httpx.NetworkError, httpx.RemoteProtocolError) as exc:
            raise ConnectionFailedError(
                f"Cannot connect to {url}: {exc}", url=url
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise HttpError(f"HTTP error for {url}: {exc}", url=url) from exc
        except Exception as exc:
            raise UnknownRequestError(
                f"Unexpected error for {url}: {exc}", url=url
            ) from exc

        if response.status_code >= 400:
            raise classify_status(response.status_code, response.text, url)
        return response
