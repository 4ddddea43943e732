"""Configuration with 4-layer resolution: defaults -> YAML -> env -> overrides.

Uses pydantic-settings with YamlConfigSettingsSource for layered configuration.
Supports ``.env`` file loading, ``SITE_CONNECTORS_`` prefixed env vars, and
nested delimiter ``__`` for overriding sub-model fields.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Literal

import structlog
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class ConnectorSettings(BaseModel):
    """Outbound request policy shared by every adapter."""

    timeout: float = Field(
        default=30.0, gt=0.0, description="Per-attempt timeout in seconds."
    )
    max_attempts: int = Field(default=2, ge=1, le=10)
    backoff_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Wait before retry N is N * backoff_seconds.",
    )
    locale: Literal["fr", "en"] = Field(
        default="fr", description="Language of user-facing error messages."
    )


class WordPressSettings(BaseModel):
    """Remote WordPress plugin API."""

    rest_prefix: str = "wp-json"
    namespace: str = "ma-plateforme/v1"
    max_per_page: int = Field(default=100, gt=0)


class GenericApiSettings(BaseModel):
    """User-configured REST APIs."""

    max_per_page: int = Field(default=100, gt=0)


class GitSettings(BaseModel):
    """Git hosting providers and static-site defaults."""

    github_api_url: str = "https://api.github.com"
    gitlab_api_url: str = "https://gitlab.com/api/v4"
    default_branch: str = "main"
    default_content_path: str = "content/posts"
    default_generator: str = "hugo"
    max_per_page: int = Field(default=100, gt=0)


class LoggingSettings(BaseModel):
    """Logging / observability configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Main Settings (4-layer resolution)
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Top-level library settings.

    Resolution order (last wins):
        1. Field defaults (defined above)
        2. YAML config file (``site-connectors.yaml`` or ``--config`` path)
        3. Environment variables (prefixed ``SITE_CONNECTORS_``)
        4. Programmatic overrides (CLI flags, tests)
    """

    model_config = SettingsConfigDict(
        env_prefix="SITE_CONNECTORS_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="site-connectors.yaml",
        yaml_file_encoding="utf-8",
        extra="ignore",
    )

    _config_path_override: ClassVar[Path | None] = None

    connector: ConnectorSettings = Field(default_factory=ConnectorSettings)
    wordpress: WordPressSettings = Field(default_factory=WordPressSettings)
    generic_api: GenericApiSettings = Field(default_factory=GenericApiSettings)
    git: GitSettings = Field(default_factory=GitSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings source priority.

        Resolution order (first = highest priority):
            init_settings > env_settings > dotenv (.env) > yaml > defaults
        """
        yaml_file = cls._config_path_override or settings_cls.model_config.get(
            "yaml_file", "site-connectors.yaml"
        )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
        )

    @classmethod
    def load(cls, config_path: Path | None = None, **overrides: Any) -> Settings:
        """Load settings with optional config path and overrides.

        Args:
            config_path: Optional path to a YAML config file.
            **overrides: Key-value overrides applied at highest priority.

        Returns:
            Fully-resolved Settings instance.

        Raises:
            ValidationError: If any setting value fails validation.
        """
        cls._config_path_override = config_path
        try:
            return cls(**overrides)
        finally:
            cls._config_path_override = None


def format_validation_error(exc: ValidationError) -> str:
    """Format a Pydantic ValidationError into a user-friendly message.

    Args:
        exc: The validation error to format.

    Returns:
        A multi-line string with each error on its own line.
    """
    lines: list[str] = []
    for error in exc.errors():
        loc = " -> ".join(str(part) for part in error["loc"])
        msg = error["msg"]
        raw_input = error.get("input")
        if raw_input is not None:
            lines.append(f"  {loc}: {msg} (got {raw_input!r})")
        else:
            lines.append(f"  {loc}: {msg}")
    return "Configuration error:\n" + "\n".join(lines)
