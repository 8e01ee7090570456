"""Environment-sourced configuration for the calendar facade.

Recognized variables:

- ``GOOGLE_CALENDAR_CREDENTIALS_JSON`` or ``GOOGLE_OAUTH_CLIENT_ID`` /
  ``GOOGLE_OAUTH_CLIENT_SECRET`` / ``GOOGLE_REFRESH_TOKEN`` (+ optional
  ``GOOGLE_OAUTH_SCOPES``): OAuth credentials, see
  :func:`calendar_facade.auth.load_credentials_from_env`.
- ``CALENDAR_API_BASE_URL``: Google Calendar v3 base URL override.
- ``CALENDAR_HTTP_TIMEOUT_SECONDS``: ``httpx`` client timeout.
- ``CALENDAR_LOG_LEVEL`` / ``CALENDAR_LOG_FORMAT``: logging setup.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from calendar_facade.auth import GoogleOAuthCredentials, load_credentials_from_env
from calendar_facade.errors import CalendarCredentialError

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0

ENV_API_BASE_URL = "CALENDAR_API_BASE_URL"
ENV_HTTP_TIMEOUT_SECONDS = "CALENDAR_HTTP_TIMEOUT_SECONDS"
ENV_LOG_LEVEL = "CALENDAR_LOG_LEVEL"
ENV_LOG_FORMAT = "CALENDAR_LOG_FORMAT"

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(Exception):
    """Raised when facade configuration is missing, malformed, or invalid."""


class CalendarFacadeConfig(BaseModel):
    """Validated facade settings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    credentials: GoogleOAuthCredentials
    api_base_url: str = GOOGLE_CALENDAR_API_BASE_URL
    http_timeout_seconds: float = Field(default=DEFAULT_HTTP_TIMEOUT_SECONDS, gt=0)
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"

    @field_validator("api_base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized.startswith(("https://", "http://")):
            raise ValueError("api_base_url must be an http(s) URL")
        return normalized

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in _VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}")
        return normalized


def load_config(env: Mapping[str, str] | None = None) -> CalendarFacadeConfig:
    """Build a :class:`CalendarFacadeConfig` from ``env`` (defaults to ``os.environ``).

    Raises
    ------
    ConfigError
        If credentials cannot be resolved or any setting fails validation.
    """
    source = os.environ if env is None else env

    try:
        credentials = load_credentials_from_env(source)
    except CalendarCredentialError as exc:
        raise ConfigError(str(exc)) from exc

    settings: dict[str, object] = {"credentials": credentials}
    if base_url := source.get(ENV_API_BASE_URL, "").strip():
        settings["api_base_url"] = base_url
    if timeout := source.get(ENV_HTTP_TIMEOUT_SECONDS, "").strip():
        settings["http_timeout_seconds"] = timeout
    if level := source.get(ENV_LOG_LEVEL, "").strip():
        settings["log_level"] = level
    if fmt := source.get(ENV_LOG_FORMAT, "").strip():
        settings["log_format"] = fmt.lower()

    try:
        config = CalendarFacadeConfig.model_validate(settings)
    except ValidationError as exc:
        raise ConfigError(f"Invalid calendar facade configuration: {exc}") from exc

    logger.debug(
        "Loaded calendar facade config (base_url=%s, timeout=%.1fs)",
        config.api_base_url,
        config.http_timeout_seconds,
    )
    return config
