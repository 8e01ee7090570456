"""Shared fixtures for the calendar facade test suite."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from calendar_facade import GoogleCalendarClient
from calendar_facade.config import GOOGLE_CALENDAR_API_BASE_URL


class StaticTokenProvider:
    """Access-token provider that hands out numbered tokens and records refreshes."""

    def __init__(self) -> None:
        self.calls: list[bool] = []
        self._issued = 0

    async def get_access_token(self, *, force_refresh: bool = False) -> str:
        self.calls.append(force_refresh)
        if force_refresh or self._issued == 0:
            self._issued += 1
        return f"token-{self._issued}"


def _mock_response(
    *,
    status_code: int,
    url: str = GOOGLE_CALENDAR_API_BASE_URL,
    method: str = "GET",
    json_body: dict | list | None = None,
    text: str = "",
) -> httpx.Response:
    request = httpx.Request(method, url)
    if json_body is not None:
        return httpx.Response(status_code=status_code, json=json_body, request=request)
    return httpx.Response(status_code=status_code, text=text, request=request)


@pytest.fixture
def mock_response() -> Callable[..., httpx.Response]:
    return _mock_response


@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider()


@pytest.fixture
def http_client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def calendar_client(
    token_provider: StaticTokenProvider,
    http_client: AsyncMock,
) -> GoogleCalendarClient:
    return GoogleCalendarClient(token_provider, http_client=http_client)
