"""Translation between Google Calendar wire payloads and facade records.

Normalizers (``map_*``) accept whatever the service sent and always return a
fully-defaulted record.  Body builders (``build_*``) turn caller input into
request bodies; ``None`` values are omitted rather than sent as null except
where a patch explicitly asks for a clear.
"""

from __future__ import annotations

import uuid
from typing import Any

from calendar_facade.models import (
    Attendee,
    BusyInterval,
    CalendarInfo,
    EventDateTime,
    EventInfo,
    EventInput,
    EventPatch,
    FreeBusyCalendar,
    FreeBusyResult,
    ReminderOverride,
    Reminders,
)

MEET_CONFERENCE_SOLUTION_TYPE = "hangoutsMeet"


def _text(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _optional_text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _flag(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return value


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


# ---------------------------------------------------------------------------
# Normalizers
# ---------------------------------------------------------------------------


def map_calendar(payload: Any) -> CalendarInfo:
    data = _as_dict(payload)
    return CalendarInfo(
        id=_text(data.get("id")),
        summary=_text(data.get("summary")),
        description=_text(data.get("description")),
        time_zone=_text(data.get("timeZone")),
        primary=_flag(data.get("primary"), False),
    )


def _map_boundary(payload: Any) -> EventDateTime:
    data = _as_dict(payload)
    date_time = _optional_text(data.get("dateTime"))
    # A boundary never carries both; the exact timestamp wins.
    date_value = None if date_time is not None else _optional_text(data.get("date"))
    return EventDateTime(
        date_time=date_time,
        date=date_value,
        time_zone=_optional_text(data.get("timeZone")),
    )


def _map_attendees(payload: Any) -> list[Attendee]:
    attendees: list[Attendee] = []
    for entry in _as_list(payload):
        if not isinstance(entry, dict):
            continue
        attendees.append(
            Attendee(
                email=_text(entry.get("email")),
                display_name=_optional_text(entry.get("displayName")),
                response_status=_optional_text(entry.get("responseStatus")),
            )
        )
    return attendees


def _map_reminders(payload: Any) -> Reminders:
    data = _as_dict(payload)
    overrides_raw = data.get("overrides")
    overrides: list[ReminderOverride] | None = None
    if isinstance(overrides_raw, list):
        overrides = []
        for entry in overrides_raw:
            item = _as_dict(entry)
            overrides.append(
                ReminderOverride(
                    method=_text(item.get("method")),
                    minutes=_int(item.get("minutes")),
                )
            )
    return Reminders(use_default=_flag(data.get("useDefault"), True), overrides=overrides)


def map_event(payload: Any) -> EventInfo:
    """Normalize a raw Google event resource.

    Absent strings become ``""``, absent sequences ``[]``, absent boundaries an
    empty ``EventDateTime`` and absent reminders ``Reminders(use_default=True)``.
    """
    data = _as_dict(payload)
    return EventInfo(
        id=_text(data.get("id")),
        summary=_text(data.get("summary")),
        description=_text(data.get("description")),
        location=_text(data.get("location")),
        start=_map_boundary(data.get("start")),
        end=_map_boundary(data.get("end")),
        attendees=_map_attendees(data.get("attendees")),
        recurrence=[rule for rule in _as_list(data.get("recurrence")) if isinstance(rule, str)],
        status=_text(data.get("status")),
        color_id=_text(data.get("colorId")),
        hangout_link=_text(data.get("hangoutLink")),
        html_link=_text(data.get("htmlLink")),
        reminders=_map_reminders(data.get("reminders")),
    )


def map_free_busy(payload: Any) -> FreeBusyResult:
    """Normalize a freeBusy response; calendars the service omitted stay omitted."""
    calendars: dict[str, FreeBusyCalendar] = {}
    for calendar_id, raw in _as_dict(_as_dict(payload).get("calendars")).items():
        entry = _as_dict(raw)
        busy = [
            BusyInterval(start=_text(interval.get("start")), end=_text(interval.get("end")))
            for interval in _as_list(entry.get("busy"))
            if isinstance(interval, dict)
        ]
        errors_raw = entry.get("errors")
        errors = (
            [_text(_as_dict(error).get("reason")) for error in errors_raw]
            if isinstance(errors_raw, list)
            else None
        )
        calendars[calendar_id] = FreeBusyCalendar(busy=busy, errors=errors)
    return FreeBusyResult(calendars=calendars)


# ---------------------------------------------------------------------------
# Request body builders
# ---------------------------------------------------------------------------


def new_conference_create_request() -> dict[str, Any]:
    """Return a Meet conference create request with a fresh request id."""
    return {
        "createRequest": {
            "requestId": str(uuid.uuid4()),
            "conferenceSolutionKey": {"type": MEET_CONFERENCE_SOLUTION_TYPE},
        }
    }


def _attendees_to_google(attendees: list[Any]) -> list[dict[str, str]]:
    # displayName is populated by the service on read; never sent.
    return [{"email": attendee.email} for attendee in attendees]


def build_event_body(event: EventInput) -> dict[str, Any]:
    """Translate an ``EventInput`` into an insert/update event body."""
    body: dict[str, Any] = {}

    if event.summary is not None:
        body["summary"] = event.summary
    if event.description is not None:
        body["description"] = event.description
    if event.location is not None:
        body["location"] = event.location
    if event.color_id is not None:
        body["colorId"] = str(event.color_id)

    body["start"] = event.start.to_wire(time_zone=event.time_zone)
    body["end"] = event.end.to_wire(time_zone=event.time_zone)

    if event.attendees is not None:
        body["attendees"] = _attendees_to_google(event.attendees)
    if event.recurrence is not None:
        body["recurrence"] = list(event.recurrence)
    if event.reminders is not None:
        body["reminders"] = event.reminders.to_wire()
    if event.add_meet_link:
        body["conferenceData"] = new_conference_create_request()

    return body


def build_patch_body(patch: EventPatch) -> dict[str, Any]:
    """Translate an ``EventPatch`` into a partial event body.

    Fields are included by presence, not truthiness: ``""`` and ``[]`` are
    sent as given, and an explicit ``None`` is sent as null.
    """
    body: dict[str, Any] = {}

    for field_name in ("summary", "description", "location"):
        if patch.is_set(field_name):
            body[field_name] = getattr(patch, field_name)

    if patch.is_set("color_id"):
        body["colorId"] = str(patch.color_id) if patch.color_id is not None else None

    for field_name in ("start", "end"):
        if patch.is_set(field_name):
            boundary = getattr(patch, field_name)
            body[field_name] = (
                boundary.to_wire(time_zone=patch.time_zone) if boundary is not None else None
            )

    if patch.is_set("attendees"):
        body["attendees"] = (
            _attendees_to_google(patch.attendees) if patch.attendees is not None else None
        )
    if patch.is_set("recurrence"):
        body["recurrence"] = list(patch.recurrence) if patch.recurrence is not None else None
    if patch.is_set("reminders"):
        body["reminders"] = patch.reminders.to_wire() if patch.reminders is not None else None
    if patch.add_meet_link:
        body["conferenceData"] = new_conference_create_request()

    return body
