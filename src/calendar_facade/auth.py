"""Google OAuth access-token provider used to authorize calendar requests.

The facade only depends on :class:`AccessTokenProvider`; any object with a
matching ``get_access_token`` coroutine can authorize calls.
:class:`GoogleOAuthClient` is the stock implementation: it exchanges a
long-lived refresh token for short-lived access tokens and caches them until
shortly before expiry.

Secret material (client_secret, refresh_token, access tokens) is never logged.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from calendar_facade.errors import (
    CalendarCredentialError,
    CalendarTokenRefreshError,
    safe_google_error_message,
)

logger = logging.getLogger(__name__)

GOOGLE_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
DEFAULT_EXPIRES_IN_SECONDS = 3600
# Refresh this many seconds before the reported expiry.
TOKEN_EXPIRY_MARGIN_SECONDS = 60
MIN_TOKEN_TTL_SECONDS = 30

# Environment variable names for credential lookup.
KEY_CLIENT_ID = "GOOGLE_OAUTH_CLIENT_ID"
KEY_CLIENT_SECRET = "GOOGLE_OAUTH_CLIENT_SECRET"
KEY_REFRESH_TOKEN = "GOOGLE_REFRESH_TOKEN"
KEY_SCOPES = "GOOGLE_OAUTH_SCOPES"
GOOGLE_CALENDAR_CREDENTIALS_ENV = "GOOGLE_CALENDAR_CREDENTIALS_JSON"


@runtime_checkable
class AccessTokenProvider(Protocol):
    """Capability that authorizes outbound calendar requests."""

    async def get_access_token(self, *, force_refresh: bool = False) -> str: ...


class GoogleOAuthCredentials(BaseModel):
    """OAuth client credentials required for the refresh-token exchange."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)
    scope: str | None = None

    @field_validator("client_id", "client_secret", "refresh_token")
    @classmethod
    def _normalize_non_empty(cls, value: str, info: ValidationInfo) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{info.field_name} must be a non-empty string")
        return normalized

    @field_validator("scope")
    @classmethod
    def _normalize_scope(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    def __repr__(self) -> str:
        return (
            f"GoogleOAuthCredentials("
            f"client_id={self.client_id!r}, "
            f"client_secret=<REDACTED>, "
            f"refresh_token=<REDACTED>, "
            f"scope={self.scope!r})"
        )

    # Pydantic's default __str__ would expose field values verbatim.
    __str__ = __repr__

    @classmethod
    def from_json(cls, raw_value: str) -> GoogleOAuthCredentials:
        """Parse credentials from JSON.

        Accepts the flat ``{"client_id": ..., ...}`` shape as well as Google's
        downloaded client-secret files, which nest the client under
        ``installed`` or ``web``.
        """
        try:
            payload = json.loads(raw_value)
        except json.JSONDecodeError as exc:
            raise CalendarCredentialError(f"Credential JSON must be valid JSON: {exc.msg}") from exc

        if not isinstance(payload, dict):
            raise CalendarCredentialError("Credential JSON must decode to a JSON object")

        credential_data = {
            "client_id": _extract_google_credential_value(payload, "client_id"),
            "client_secret": _extract_google_credential_value(payload, "client_secret"),
            "refresh_token": _extract_google_credential_value(payload, "refresh_token"),
        }

        missing = sorted(key for key, value in credential_data.items() if value is None)
        if missing:
            field_list = ", ".join(missing)
            raise CalendarCredentialError(
                f"Credential JSON is missing required field(s): {field_list}"
            )

        invalid = sorted(
            key
            for key, value in credential_data.items()
            if not isinstance(value, str) or not value.strip()
        )
        if invalid:
            field_list = ", ".join(invalid)
            raise CalendarCredentialError(
                f"Credential JSON must contain non-empty string field(s): {field_list}"
            )

        scope = _extract_google_credential_value(payload, "scope")
        return cls(
            client_id=str(credential_data["client_id"]),
            client_secret=str(credential_data["client_secret"]),
            refresh_token=str(credential_data["refresh_token"]),
            scope=scope if isinstance(scope, str) else None,
        )


def _extract_google_credential_value(payload: dict[str, Any], key: str) -> Any:
    if key in payload:
        return payload[key]

    for nested_key in ("installed", "web"):
        nested = payload.get(nested_key)
        if isinstance(nested, dict) and key in nested:
            return nested[key]
    return None


def load_credentials_from_env(env: Mapping[str, str]) -> GoogleOAuthCredentials:
    """Resolve Google OAuth credentials from environment-style variables.

    Resolution:
    1. ``GOOGLE_CALENDAR_CREDENTIALS_JSON`` when set.
    2. ``GOOGLE_OAUTH_CLIENT_ID`` / ``GOOGLE_OAUTH_CLIENT_SECRET`` /
       ``GOOGLE_REFRESH_TOKEN`` (plus optional ``GOOGLE_OAUTH_SCOPES``).

    Raises
    ------
    CalendarCredentialError
        If neither source yields a complete credential set.  The message names
        missing variables but never includes secret values.
    """
    raw_json = env.get(GOOGLE_CALENDAR_CREDENTIALS_ENV, "").strip()
    if raw_json:
        logger.debug("Resolved Google credentials from %s", GOOGLE_CALENDAR_CREDENTIALS_ENV)
        return GoogleOAuthCredentials.from_json(raw_json)

    values = {
        KEY_CLIENT_ID: env.get(KEY_CLIENT_ID, "").strip(),
        KEY_CLIENT_SECRET: env.get(KEY_CLIENT_SECRET, "").strip(),
        KEY_REFRESH_TOKEN: env.get(KEY_REFRESH_TOKEN, "").strip(),
    }
    missing = sorted(name for name, value in values.items() if not value)
    if missing:
        raise CalendarCredentialError(
            "Google OAuth credentials are not configured; missing environment "
            f"variable(s): {', '.join(missing)}"
        )

    try:
        credentials = GoogleOAuthCredentials(
            client_id=values[KEY_CLIENT_ID],
            client_secret=values[KEY_CLIENT_SECRET],
            refresh_token=values[KEY_REFRESH_TOKEN],
            scope=env.get(KEY_SCOPES),
        )
    except ValidationError as exc:
        raise CalendarCredentialError(f"Google OAuth credentials are invalid: {exc}") from exc
    logger.debug("Resolved Google credentials from individual environment variables")
    return credentials


def _cache_ttl_seconds(expires_in: Any) -> int:
    """Seconds to reuse a token whose response reported ``expires_in``.

    Missing, non-numeric or non-positive values fall back to the service
    default.  The result is shortened by the expiry margin but never drops
    below the minimum TTL.
    """
    lifetime = DEFAULT_EXPIRES_IN_SECONDS
    if isinstance(expires_in, int | float) and not isinstance(expires_in, bool) and expires_in > 0:
        lifetime = int(expires_in)
    return max(lifetime - TOKEN_EXPIRY_MARGIN_SECONDS, MIN_TOKEN_TTL_SECONDS)


@dataclass(frozen=True)
class _CachedToken:
    value: str
    expires_at: datetime

    def is_fresh(self) -> bool:
        return datetime.now(UTC) < self.expires_at


class GoogleOAuthClient:
    """Exchanges the refresh token for access tokens and reuses them until near expiry.

    Concurrent callers share a single in-flight exchange.
    """

    def __init__(
        self,
        credentials: GoogleOAuthCredentials,
        http_client: httpx.AsyncClient,
        *,
        token_url: str = GOOGLE_OAUTH_TOKEN_URL,
    ) -> None:
        self._credentials = credentials
        self._http_client = http_client
        self._token_url = token_url
        self._cached: _CachedToken | None = None
        self._refresh_lock = asyncio.Lock()

    async def get_access_token(self, *, force_refresh: bool = False) -> str:
        token = None if force_refresh else self._reusable_token()
        if token is not None:
            return token

        async with self._refresh_lock:
            # Another caller may have refreshed while this one waited.
            token = None if force_refresh else self._reusable_token()
            if token is None:
                self._cached = await self._exchange_refresh_token()
                token = self._cached.value
            return token

    def _reusable_token(self) -> str | None:
        if self._cached is not None and self._cached.is_fresh():
            return self._cached.value
        return None

    async def _exchange_refresh_token(self) -> _CachedToken:
        payload = await self._post_refresh_grant()

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token.strip():
            raise CalendarTokenRefreshError(
                "Google OAuth token response is missing a non-empty access_token"
            )

        ttl_seconds = _cache_ttl_seconds(payload.get("expires_in"))
        logger.debug("Refreshed Google OAuth access token (ttl=%ds)", ttl_seconds)
        return _CachedToken(
            value=access_token.strip(),
            expires_at=datetime.now(UTC) + timedelta(seconds=ttl_seconds),
        )

    async def _post_refresh_grant(self) -> dict[str, Any]:
        form = {
            "client_id": self._credentials.client_id,
            "client_secret": self._credentials.client_secret,
            "refresh_token": self._credentials.refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            response = await self._http_client.post(
                self._token_url,
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise CalendarTokenRefreshError(
                f"Google OAuth token refresh request failed: {exc}"
            ) from exc

        if not response.is_success:
            raise CalendarTokenRefreshError(
                "Google OAuth token refresh failed "
                f"({response.status_code}): {safe_google_error_message(response)}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise CalendarTokenRefreshError(
                "Google OAuth token endpoint returned invalid JSON"
            ) from exc
        return payload if isinstance(payload, dict) else {}
