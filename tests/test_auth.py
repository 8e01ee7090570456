"""Tests for Google OAuth credentials and the refresh-token access-token provider.

Covers:
- GoogleOAuthCredentials validation and secret-free repr
- from_json() for flat and downloaded client-secret shapes
- load_credentials_from_env() resolution order and error messages
- GoogleOAuthClient caching, forced refresh, and failure modes
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import httpx
import pytest
from pydantic import ValidationError

from calendar_facade.auth import (
    GOOGLE_CALENDAR_CREDENTIALS_ENV,
    GOOGLE_OAUTH_TOKEN_URL,
    AccessTokenProvider,
    GoogleOAuthClient,
    GoogleOAuthCredentials,
    _cache_ttl_seconds,
    load_credentials_from_env,
)
from calendar_facade.errors import CalendarCredentialError, CalendarTokenRefreshError

pytestmark = pytest.mark.unit

_CLIENT_SECRET = "SUPER-SECRET-CLIENT-SECRET-ABC-67890"
_REFRESH_TOKEN = "1//SUPER-SECRET-REFRESH-TOKEN-XYZ"


@pytest.fixture()
def fake_creds() -> GoogleOAuthCredentials:
    return GoogleOAuthCredentials(
        client_id="client-id-123.apps.googleusercontent.com",
        client_secret=_CLIENT_SECRET,
        refresh_token=_REFRESH_TOKEN,
        scope="https://www.googleapis.com/auth/calendar",
    )


def _token_response(mock_response, payload: dict | None = None, **kwargs) -> httpx.Response:
    kwargs.setdefault("status_code", 200)
    if payload is None and "text" not in kwargs:
        payload = {"access_token": "ya29.access-1", "expires_in": 3599, "token_type": "Bearer"}
    return mock_response(url=GOOGLE_OAUTH_TOKEN_URL, method="POST", json_body=payload, **kwargs)


# ---------------------------------------------------------------------------
# GoogleOAuthCredentials
# ---------------------------------------------------------------------------


class TestGoogleOAuthCredentials:
    def test_strips_whitespace_from_required_fields(self) -> None:
        creds = GoogleOAuthCredentials(
            client_id="  cid  ", client_secret=" secret ", refresh_token=" rt ", scope="  "
        )
        assert creds.client_id == "cid"
        assert creds.client_secret == "secret"
        assert creds.refresh_token == "rt"
        assert creds.scope is None

    @pytest.mark.parametrize("field", ["client_id", "client_secret", "refresh_token"])
    def test_blank_required_field_raises(self, field: str) -> None:
        values = {"client_id": "cid", "client_secret": "secret", "refresh_token": "rt"}
        values[field] = "   "
        with pytest.raises(ValidationError, match=field):
            GoogleOAuthCredentials(**values)

    def test_extra_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GoogleOAuthCredentials(
                client_id="cid", client_secret="secret", refresh_token="rt", redirect_uri="x"
            )

    def test_repr_and_str_do_not_leak_secrets(self, fake_creds: GoogleOAuthCredentials) -> None:
        for rendered in (repr(fake_creds), str(fake_creds)):
            assert _CLIENT_SECRET not in rendered
            assert _REFRESH_TOKEN not in rendered
            assert "client-id-123.apps.googleusercontent.com" in rendered
            assert "<REDACTED>" in rendered


class TestFromJson:
    def test_flat_shape(self) -> None:
        creds = GoogleOAuthCredentials.from_json(
            json.dumps(
                {
                    "client_id": "cid",
                    "client_secret": "secret",
                    "refresh_token": "rt",
                    "scope": "https://www.googleapis.com/auth/calendar",
                }
            )
        )
        assert creds.client_id == "cid"
        assert creds.scope == "https://www.googleapis.com/auth/calendar"

    @pytest.mark.parametrize("nesting", ["installed", "web"])
    def test_downloaded_client_secret_shape(self, nesting: str) -> None:
        creds = GoogleOAuthCredentials.from_json(
            json.dumps(
                {
                    nesting: {"client_id": "cid", "client_secret": "secret"},
                    "refresh_token": "rt",
                }
            )
        )
        assert creds.client_id == "cid"
        assert creds.client_secret == "secret"
        assert creds.refresh_token == "rt"

    def test_invalid_json(self) -> None:
        with pytest.raises(CalendarCredentialError, match="valid JSON"):
            GoogleOAuthCredentials.from_json("{not json")

    def test_non_object_json(self) -> None:
        with pytest.raises(CalendarCredentialError, match="JSON object"):
            GoogleOAuthCredentials.from_json('["cid", "secret"]')

    def test_missing_fields_are_named(self) -> None:
        with pytest.raises(CalendarCredentialError) as exc_info:
            GoogleOAuthCredentials.from_json(json.dumps({"client_id": "cid"}))
        message = str(exc_info.value)
        assert "client_secret" in message
        assert "refresh_token" in message

    def test_blank_values_rejected_without_echoing_them(self) -> None:
        with pytest.raises(CalendarCredentialError) as exc_info:
            GoogleOAuthCredentials.from_json(
                json.dumps(
                    {"client_id": "cid", "client_secret": _CLIENT_SECRET, "refresh_token": ""}
                )
            )
        assert "refresh_token" in str(exc_info.value)
        assert _CLIENT_SECRET not in str(exc_info.value)


# ---------------------------------------------------------------------------
# load_credentials_from_env
# ---------------------------------------------------------------------------


class TestLoadCredentialsFromEnv:
    def test_individual_variables(self) -> None:
        creds = load_credentials_from_env(
            {
                "GOOGLE_OAUTH_CLIENT_ID": "cid",
                "GOOGLE_OAUTH_CLIENT_SECRET": "secret",
                "GOOGLE_REFRESH_TOKEN": "rt",
                "GOOGLE_OAUTH_SCOPES": "https://www.googleapis.com/auth/calendar",
            }
        )
        assert creds.client_id == "cid"
        assert creds.scope == "https://www.googleapis.com/auth/calendar"

    def test_json_variable_takes_precedence(self) -> None:
        creds = load_credentials_from_env(
            {
                GOOGLE_CALENDAR_CREDENTIALS_ENV: json.dumps(
                    {"client_id": "json-cid", "client_secret": "s", "refresh_token": "rt"}
                ),
                "GOOGLE_OAUTH_CLIENT_ID": "env-cid",
            }
        )
        assert creds.client_id == "json-cid"

    def test_missing_variables_are_named(self) -> None:
        with pytest.raises(CalendarCredentialError) as exc_info:
            load_credentials_from_env({"GOOGLE_OAUTH_CLIENT_ID": "cid"})
        message = str(exc_info.value)
        assert "GOOGLE_OAUTH_CLIENT_SECRET" in message
        assert "GOOGLE_REFRESH_TOKEN" in message
        assert "GOOGLE_OAUTH_CLIENT_ID" not in message

    def test_blank_variables_count_as_missing(self) -> None:
        with pytest.raises(CalendarCredentialError, match="GOOGLE_REFRESH_TOKEN"):
            load_credentials_from_env(
                {
                    "GOOGLE_OAUTH_CLIENT_ID": "cid",
                    "GOOGLE_OAUTH_CLIENT_SECRET": "secret",
                    "GOOGLE_REFRESH_TOKEN": "   ",
                }
            )

    def test_empty_environment(self) -> None:
        with pytest.raises(CalendarCredentialError, match="not configured"):
            load_credentials_from_env({})


# ---------------------------------------------------------------------------
# GoogleOAuthClient
# ---------------------------------------------------------------------------


class TestCacheTtlSeconds:
    @pytest.mark.parametrize(
        ("expires_in", "expected"),
        [
            (3599, 3539),
            (7200.9, 7140),
            (75, 30),
            (0, 3540),
            (-5, 3540),
            (None, 3540),
            ("3600", 3540),
            (True, 3540),
        ],
    )
    def test_margin_default_and_floor(self, expires_in, expected: int) -> None:
        assert _cache_ttl_seconds(expires_in) == expected


class TestGoogleOAuthClient:
    def test_satisfies_access_token_provider(self, fake_creds: GoogleOAuthCredentials) -> None:
        assert isinstance(GoogleOAuthClient(fake_creds, AsyncMock()), AccessTokenProvider)

    async def test_refresh_posts_refresh_token_grant(
        self, fake_creds: GoogleOAuthCredentials, mock_response
    ) -> None:
        http_client = AsyncMock()
        http_client.post.return_value = _token_response(mock_response)
        oauth = GoogleOAuthClient(fake_creds, http_client)

        token = await oauth.get_access_token()

        assert token == "ya29.access-1"
        assert http_client.post.await_args.args == (GOOGLE_OAUTH_TOKEN_URL,)
        assert http_client.post.await_args.kwargs["data"] == {
            "client_id": "client-id-123.apps.googleusercontent.com",
            "client_secret": _CLIENT_SECRET,
            "refresh_token": _REFRESH_TOKEN,
            "grant_type": "refresh_token",
        }

    async def test_token_is_cached_until_expiry(
        self, fake_creds: GoogleOAuthCredentials, mock_response
    ) -> None:
        http_client = AsyncMock()
        http_client.post.return_value = _token_response(mock_response)
        oauth = GoogleOAuthClient(fake_creds, http_client)

        assert await oauth.get_access_token() == "ya29.access-1"
        assert await oauth.get_access_token() == "ya29.access-1"

        assert http_client.post.await_count == 1

    async def test_expired_token_is_refreshed(
        self, fake_creds: GoogleOAuthCredentials, mock_response
    ) -> None:
        http_client = AsyncMock()
        http_client.post.side_effect = [
            _token_response(mock_response, {"access_token": "ya29.first", "expires_in": 3600}),
            _token_response(mock_response, {"access_token": "ya29.second", "expires_in": 3600}),
        ]
        oauth = GoogleOAuthClient(fake_creds, http_client)

        assert await oauth.get_access_token() == "ya29.first"
        assert oauth._cached is not None
        oauth._cached = replace(oauth._cached, expires_at=datetime.now(UTC) - timedelta(seconds=1))
        assert await oauth.get_access_token() == "ya29.second"

    async def test_force_refresh_bypasses_cache(
        self, fake_creds: GoogleOAuthCredentials, mock_response
    ) -> None:
        http_client = AsyncMock()
        http_client.post.side_effect = [
            _token_response(mock_response, {"access_token": "ya29.first"}),
            _token_response(mock_response, {"access_token": "ya29.second"}),
        ]
        oauth = GoogleOAuthClient(fake_creds, http_client)

        assert await oauth.get_access_token() == "ya29.first"
        assert await oauth.get_access_token(force_refresh=True) == "ya29.second"
        assert await oauth.get_access_token() == "ya29.second"
        assert http_client.post.await_count == 2

    async def test_transport_failure(self, fake_creds: GoogleOAuthCredentials) -> None:
        http_client = AsyncMock()
        http_client.post.side_effect = httpx.ConnectTimeout("timed out")

        with pytest.raises(CalendarTokenRefreshError, match="request failed"):
            await GoogleOAuthClient(fake_creds, http_client).get_access_token()

    async def test_rejected_grant_is_reported_without_secrets(
        self, fake_creds: GoogleOAuthCredentials, mock_response
    ) -> None:
        http_client = AsyncMock()
        http_client.post.return_value = _token_response(
            mock_response,
            {
                "error": "invalid_grant",
                "error_description": f"Bad refresh_token={_REFRESH_TOKEN}",
            },
            status_code=400,
        )

        with pytest.raises(CalendarTokenRefreshError) as exc_info:
            await GoogleOAuthClient(fake_creds, http_client).get_access_token()

        message = str(exc_info.value)
        assert "(400)" in message
        assert "invalid_grant" in message
        assert _REFRESH_TOKEN not in message

    async def test_invalid_json(self, fake_creds: GoogleOAuthCredentials, mock_response) -> None:
        http_client = AsyncMock()
        http_client.post.return_value = _token_response(mock_response, text="<html></html>")

        with pytest.raises(CalendarTokenRefreshError, match="invalid JSON"):
            await GoogleOAuthClient(fake_creds, http_client).get_access_token()

    async def test_missing_access_token(
        self, fake_creds: GoogleOAuthCredentials, mock_response
    ) -> None:
        http_client = AsyncMock()
        http_client.post.return_value = _token_response(mock_response, {"token_type": "Bearer"})

        with pytest.raises(CalendarTokenRefreshError, match="access_token"):
            await GoogleOAuthClient(fake_creds, http_client).get_access_token()

    async def test_refresh_does_not_log_secrets(
        self,
        fake_creds: GoogleOAuthCredentials,
        mock_response,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        http_client = AsyncMock()
        http_client.post.return_value = _token_response(mock_response)

        with caplog.at_level(logging.DEBUG, logger="calendar_facade.auth"):
            await GoogleOAuthClient(fake_creds, http_client).get_access_token()

        assert "Refreshed Google OAuth access token" in caplog.text
        assert "ya29.access-1" not in caplog.text
        assert _REFRESH_TOKEN not in caplog.text
        assert _CLIENT_SECRET not in caplog.text
