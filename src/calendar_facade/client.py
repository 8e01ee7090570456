"""Async facade over the Google Calendar v3 REST API.

:class:`GoogleCalendarClient` exposes one coroutine per remote operation.
Each call validates its input shape, issues one or more authorized requests,
follows continuation tokens where the endpoint pages, and normalizes every
returned resource through :mod:`calendar_facade.mapping`.

The client holds no state between calls apart from the access-token provider
and the HTTP client, so independent operations may run concurrently.  Remote
failures propagate as :class:`~calendar_facade.errors.CalendarRequestError`
subclasses; nothing is retried or masked here.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from types import TracebackType
from typing import Any
from urllib.parse import quote

import httpx

from calendar_facade.auth import AccessTokenProvider, GoogleOAuthClient
from calendar_facade.config import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    GOOGLE_CALENDAR_API_BASE_URL,
    load_config,
)
from calendar_facade.errors import (
    CalendarResponseError,
    CalendarTransportError,
    classify_response_error,
)
from calendar_facade.mapping import (
    build_event_body,
    build_patch_body,
    map_calendar,
    map_event,
    map_free_busy,
)
from calendar_facade.models import (
    CalendarInfo,
    EventInfo,
    EventInput,
    EventPatch,
    FreeBusyRequest,
    FreeBusyResult,
    ListEventsOptions,
)

logger = logging.getLogger(__name__)

# conferenceDataVersion=1 tells the service to honour conferenceData in bodies.
CONFERENCE_DATA_VERSION = 1


def _segment(value: str) -> str:
    return quote(value, safe="")


def _coerce_options(options: ListEventsOptions | Mapping[str, Any] | None) -> ListEventsOptions:
    if options is None:
        return ListEventsOptions()
    if isinstance(options, ListEventsOptions):
        return options
    return ListEventsOptions.model_validate(options)


class GoogleCalendarClient:
    """Authorized access point to the Google Calendar API."""

    def __init__(
        self,
        auth: AccessTokenProvider,
        *,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = GOOGLE_CALENDAR_API_BASE_URL,
        owns_http_client: bool | None = None,
    ) -> None:
        self._auth = auth
        if owns_http_client is None:
            owns_http_client = http_client is None
        self._owns_http_client = owns_http_client
        if http_client is None:
            http_client = httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT_SECONDS)
        self._http_client = http_client
        self._base_url = base_url.rstrip("/")

    async def __aenter__(self) -> GoogleCalendarClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release the HTTP client when this facade created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    async def _request_google_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._request_with_bearer(
            method=method,
            path=path,
            params=params,
            json_body=json_body,
        )

        if response.status_code < 200 or response.status_code >= 300:
            raise classify_response_error(response)

        if response.status_code == 204 or not response.content:
            return {}

        try:
            payload = response.json()
        except ValueError as exc:
            raise CalendarResponseError(
                "Google Calendar API returned invalid JSON for a successful response"
            ) from exc

        if not isinstance(payload, dict):
            raise CalendarResponseError(
                "Google Calendar API returned an unexpected JSON payload shape"
            )
        return payload

    async def _request_with_bearer(
        self,
        *,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        normalized_path = path if path.startswith("/") else f"/{path}"
        url = f"{self._base_url}{normalized_path}"
        logger.debug("Calendar API %s %s", method, normalized_path)

        response = await self._request_once(
            method=method,
            url=url,
            params=params,
            json_body=json_body,
            force_refresh=False,
        )

        if response.status_code == 401:
            # The cached token was revoked or expired early; refresh once.
            logger.info(
                "Calendar API rejected access token for %s %s; forcing refresh",
                method,
                normalized_path,
            )
            response = await self._request_once(
                method=method,
                url=url,
                params=params,
                json_body=json_body,
                force_refresh=True,
            )

        return response

    async def _request_once(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        json_body: dict[str, Any] | None,
        force_refresh: bool,
    ) -> httpx.Response:
        access_token = await self._auth.get_access_token(force_refresh=force_refresh)
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            return await self._http_client.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise CalendarTransportError(f"Google Calendar request failed: {exc}") from exc

    async def _collect_pages(
        self,
        path: str,
        *,
        params: dict[str, Any],
        max_results: int | None,
    ) -> list[dict[str, Any]]:
        """Accumulate ``items`` across pages, then trim to ``max_results``.

        Stops when the service returns no ``nextPageToken`` or once the
        accumulated count reaches ``max_results``; the last page may overshoot
        and is trimmed locally.
        """
        items: list[dict[str, Any]] = []
        page_token: str | None = None
        page_number = 0

        while True:
            page_params = dict(params)
            if page_token is not None:
                page_params["pageToken"] = page_token

            payload = await self._request_google_json("GET", path, params=page_params)
            page_number += 1

            raw_items = payload.get("items")
            if isinstance(raw_items, list):
                items.extend(item for item in raw_items if isinstance(item, dict))

            next_token = payload.get("nextPageToken")
            page_token = next_token if isinstance(next_token, str) and next_token else None
            logger.debug(
                "Fetched page %d of %s (%d items so far, more=%s)",
                page_number,
                path,
                len(items),
                page_token is not None,
            )

            if page_token is None:
                break
            if max_results is not None and len(items) >= max_results:
                break

        if max_results is not None:
            del items[max_results:]
        return items

    # ------------------------------------------------------------------
    # Calendars
    # ------------------------------------------------------------------

    async def list_calendars(self) -> list[CalendarInfo]:
        items = await self._collect_pages(
            "/users/me/calendarList",
            params={},
            max_results=None,
        )
        return [map_calendar(item) for item in items]

    async def get_calendar(self, calendar_id: str) -> CalendarInfo:
        payload = await self._request_google_json(
            "GET",
            f"/users/me/calendarList/{_segment(calendar_id)}",
        )
        return map_calendar(payload)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def list_events(
        self,
        calendar_id: str,
        options: ListEventsOptions | Mapping[str, Any] | None = None,
    ) -> list[EventInfo]:
        """List events in start-time order with recurring events expanded.

        ``time_min``/``time_max``/``query`` are passed through unmodified.
        ``max_results`` caps the returned count.
        """
        opts = _coerce_options(options)
        params: dict[str, Any] = {"singleEvents": True, "orderBy": "startTime"}
        if opts.time_min is not None:
            params["timeMin"] = opts.time_min
        if opts.time_max is not None:
            params["timeMax"] = opts.time_max
        if opts.query is not None:
            params["q"] = opts.query

        items = await self._collect_pages(
            f"/calendars/{_segment(calendar_id)}/events",
            params=params,
            max_results=opts.max_results,
        )
        return [map_event(item) for item in items]

    async def get_event(self, calendar_id: str, event_id: str) -> EventInfo:
        payload = await self._request_google_json(
            "GET",
            f"/calendars/{_segment(calendar_id)}/events/{_segment(event_id)}",
        )
        return map_event(payload)

    async def create_event(
        self,
        calendar_id: str,
        event: EventInput | Mapping[str, Any],
    ) -> EventInfo:
        payload = event if isinstance(event, EventInput) else EventInput.model_validate(event)
        response_payload = await self._request_google_json(
            "POST",
            f"/calendars/{_segment(calendar_id)}/events",
            params=self._conference_params(payload.add_meet_link),
            json_body=build_event_body(payload),
        )
        created = map_event(response_payload)
        logger.info("Created calendar event %s on %s", created.id, calendar_id)
        return created

    async def update_event(
        self,
        calendar_id: str,
        event_id: str,
        event: EventInput | Mapping[str, Any],
    ) -> EventInfo:
        """Replace an event; fields omitted from ``event`` are cleared remotely."""
        payload = event if isinstance(event, EventInput) else EventInput.model_validate(event)
        response_payload = await self._request_google_json(
            "PUT",
            f"/calendars/{_segment(calendar_id)}/events/{_segment(event_id)}",
            params=self._conference_params(payload.add_meet_link),
            json_body=build_event_body(payload),
        )
        updated = map_event(response_payload)
        logger.info("Replaced calendar event %s on %s", event_id, calendar_id)
        return updated

    async def patch_event(
        self,
        calendar_id: str,
        event_id: str,
        patch: EventPatch | Mapping[str, Any],
    ) -> EventInfo:
        """Apply only the fields present in ``patch``."""
        payload = patch if isinstance(patch, EventPatch) else EventPatch.model_validate(patch)
        response_payload = await self._request_google_json(
            "PATCH",
            f"/calendars/{_segment(calendar_id)}/events/{_segment(event_id)}",
            params=self._conference_params(payload.add_meet_link),
            json_body=build_patch_body(payload),
        )
        patched = map_event(response_payload)
        logger.info("Patched calendar event %s on %s", event_id, calendar_id)
        return patched

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        """Delete an event.

        Not idempotent: deleting an already-deleted event raises
        ``CalendarNotFoundError`` exactly as the service reports it.
        """
        await self._request_google_json(
            "DELETE",
            f"/calendars/{_segment(calendar_id)}/events/{_segment(event_id)}",
        )
        logger.info("Deleted calendar event %s on %s", event_id, calendar_id)

    async def move_event(
        self,
        calendar_id: str,
        event_id: str,
        destination_calendar_id: str,
    ) -> EventInfo:
        payload = await self._request_google_json(
            "POST",
            f"/calendars/{_segment(calendar_id)}/events/{_segment(event_id)}/move",
            params={"destination": destination_calendar_id},
        )
        moved = map_event(payload)
        logger.info(
            "Moved calendar event %s from %s to %s", event_id, calendar_id, destination_calendar_id
        )
        return moved

    async def quick_add(self, calendar_id: str, text: str) -> EventInfo:
        """Create an event from free text; the service does all date inference."""
        payload = await self._request_google_json(
            "POST",
            f"/calendars/{_segment(calendar_id)}/events/quickAdd",
            params={"text": text},
        )
        created = map_event(payload)
        logger.info("Quick-added calendar event %s on %s", created.id, calendar_id)
        return created

    async def list_instances(
        self,
        calendar_id: str,
        event_id: str,
        options: ListEventsOptions | Mapping[str, Any] | None = None,
    ) -> list[EventInfo]:
        """List concrete occurrences of a recurring event master."""
        opts = _coerce_options(options)
        if opts.query is not None:
            logger.debug("Ignoring query for list_instances of %s; not supported", event_id)

        params: dict[str, Any] = {}
        if opts.time_min is not None:
            params["timeMin"] = opts.time_min
        if opts.time_max is not None:
            params["timeMax"] = opts.time_max

        items = await self._collect_pages(
            f"/calendars/{_segment(calendar_id)}/events/{_segment(event_id)}/instances",
            params=params,
            max_results=opts.max_results,
        )
        return [map_event(item) for item in items]

    # ------------------------------------------------------------------
    # Free/busy
    # ------------------------------------------------------------------

    async def free_busy(self, request: FreeBusyRequest | Mapping[str, Any]) -> FreeBusyResult:
        payload = (
            request
            if isinstance(request, FreeBusyRequest)
            else FreeBusyRequest.model_validate(request)
        )
        body: dict[str, Any] = {
            "timeMin": payload.time_min,
            "timeMax": payload.time_max,
            "items": [{"id": item.id} for item in payload.items],
        }
        if payload.time_zone is not None:
            body["timeZone"] = payload.time_zone

        response_payload = await self._request_google_json("POST", "/freeBusy", json_body=body)
        return map_free_busy(response_payload)

    @staticmethod
    def _conference_params(add_meet_link: bool) -> dict[str, Any] | None:
        if not add_meet_link:
            return None
        return {"conferenceDataVersion": CONFERENCE_DATA_VERSION}


def create_calendar_client(
    auth: AccessTokenProvider,
    *,
    http_client: httpx.AsyncClient | None = None,
    base_url: str = GOOGLE_CALENDAR_API_BASE_URL,
) -> GoogleCalendarClient:
    """Return a calendar facade authorized by ``auth``."""
    return GoogleCalendarClient(auth, http_client=http_client, base_url=base_url)


def create_calendar_client_from_env(
    env: Mapping[str, str] | None = None,
) -> GoogleCalendarClient:
    """Build a facade from environment configuration.

    The returned client owns its HTTP client (shared with the OAuth token
    exchange); close it with ``aclose()`` or ``async with``.

    Raises
    ------
    ConfigError
        If credentials or settings are missing or invalid.
    """
    config = load_config(os.environ if env is None else env)
    http_client = httpx.AsyncClient(timeout=config.http_timeout_seconds)
    oauth = GoogleOAuthClient(config.credentials, http_client)
    return GoogleCalendarClient(
        oauth,
        http_client=http_client,
        base_url=config.api_base_url,
        owns_http_client=True,
    )
