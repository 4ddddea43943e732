"""structlog configuration and per-operation logging context.

Provides structured log configuration for console and JSON output with
optional file logging, and a context manager that binds the site being
served to every log entry emitted during a connector call.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from site_connectors.models import SiteConfig

# ---------------------------------------------------------------------------
# structlog configuration
# ---------------------------------------------------------------------------


_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_SECRET_KEYS = frozenset(
    {"api_token", "token", "authorization", "password", "x-api-key", "private-token"}
)
_REDACTED = "***"


def _redact(values: dict[str, Any]) -> dict[str, Any]:
    redacted: dict[str, Any] = {}
    for key, value in values.items():
        if str(key).lower() in _SECRET_KEYS:
            redacted[key] = _REDACTED
        elif isinstance(value, dict):
            redacted[key] = _redact(value)
        else:
            redacted[key] = value
    return redacted


def redact_secrets(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Mask site credentials in an event, including nested header mappings."""
    return _redact(event_dict)


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    log_file: str | Path | None = None,
) -> None:
    """Configure structlog for the application.

    Sets up structlog with shared processors and a format-specific
    renderer. Configures the stdlib logging root to respect the given
    level and optionally adds a file handler. Credential fields such as
    ``api_token`` or an ``Authorization`` header are masked before rendering.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: Output format: ``"console"`` for human-readable or
            ``"json"`` for machine-parseable.
        log_file: Optional file path for log output (in addition to stderr).

    Raises:
        ValueError: If ``level`` is not a recognized log level.
    """
    level_upper = level.upper()
    if level_upper not in _VALID_LEVELS:
        msg = f"Invalid log level: {level!r}. Must be one of {sorted(_VALID_LEVELS)}"
        raise ValueError(msg)

    numeric_level = getattr(logging, level_upper)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates on re-configuration
    root_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(numeric_level)
    root_logger.addHandler(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setLevel(numeric_level)
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    for handler in root_logger.handlers:
        handler.setFormatter(formatter)


# ---------------------------------------------------------------------------
# Site operation context manager
# ---------------------------------------------------------------------------


@contextmanager
def site_logging_context(
    site: SiteConfig,
    operation: str,
    **extra: Any,
) -> Iterator[structlog.stdlib.BoundLogger]:
    """Bind the served site and operation to structlog for one connector call.

    Logs operation start and end, and logs any escaping exception before
    re-raising it. Previously bound values are restored on exit, so nested
    calls (``test_connection`` wrapping a stats fetch) keep the outer
    operation name afterwards.

    Args:
        site: The site the operation targets. Its token is never bound.
        operation: Connector operation name (e.g. ``"publish"``).
        **extra: Additional key-value pairs to bind.

    Yields:
        A bound structlog logger with site context.

    Example::

        with site_logging_context(site, "publish", title=article.title) as log:
            log.info("publishing_article")
    """
    with structlog.contextvars.bound_contextvars(
        site=site.name,
        site_type=site.type,
        operation=operation,
        **extra,
    ):
        log: structlog.stdlib.BoundLogger = structlog.get_logger(
            f"site_connectors.{site.type}"
        )
        log.debug("operation_start")
        try:
            yield log
        except Exception as exc:
            log.warning("operation_error", error=str(exc))
            raise
        finally:
            log.debug("operation_end")
