"""Typed records exchanged with callers of the calendar facade.

Output records (``CalendarInfo``, ``EventInfo``, ``FreeBusyResult``) are
fully defaulted: the normalizers in :mod:`calendar_facade.mapping` never
leave a field missing.  Input records (``EventInput``, ``EventPatch``,
``ListEventsOptions``, ``FreeBusyRequest``) validate shape only; semantic
validity such as end-before-start is left to the remote service.

Attribute names are snake_case; the Google wire names are kept as aliases so
raw payloads can be validated directly and either name is accepted on input.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _to_camel(name: str) -> str:
    head, *tail = name.split("_")
    return head + "".join(part.capitalize() for part in tail)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)


class EventColor(StrEnum):
    """Google Calendar event colour codes."""

    lavender = "1"
    sage = "2"
    grape = "3"
    flamingo = "4"
    banana = "5"
    tangerine = "6"
    peacock = "7"
    graphite = "8"
    blueberry = "9"
    basil = "10"
    tomato = "11"

    @classmethod
    def from_code(cls, code: str | None) -> EventColor | None:
        """Return the colour for ``code``, or ``None`` for empty or unknown codes."""
        if not code:
            return None
        try:
            return cls(code.strip())
        except ValueError:
            return None


# ---------------------------------------------------------------------------
# Normalized output records
# ---------------------------------------------------------------------------


class CalendarInfo(_WireModel):
    """A calendar as listed on the user's calendar list."""

    id: str = ""
    summary: str = ""
    description: str = ""
    time_zone: str = ""
    primary: bool = False


class EventDateTime(_WireModel):
    """Event boundary: either an exact ``date_time`` or an all-day ``date``."""

    date_time: str | None = None
    date: str | None = None
    time_zone: str | None = None

    @model_validator(mode="after")
    def _validate_exclusive(self) -> EventDateTime:
        if self.date_time is not None and self.date is not None:
            raise ValueError("an event boundary carries either date_time or date, not both")
        return self

    @property
    def is_all_day(self) -> bool:
        return self.date is not None and self.date_time is None

    def to_wire(self, *, time_zone: str | None = None) -> dict[str, Any]:
        """Serialize to the Google shape, optionally overriding the zone."""
        body = self.model_dump(by_alias=True, exclude_none=True)
        if time_zone is not None:
            body["timeZone"] = time_zone
        return body


class Attendee(_WireModel):
    email: str = ""
    display_name: str | None = None
    response_status: str | None = None


class ReminderOverride(_WireModel):
    method: str = ""
    minutes: int = 0


class Reminders(_WireModel):
    use_default: bool = True
    overrides: list[ReminderOverride] | None = None


class EventInfo(_WireModel):
    """Normalized event record; see ``calendar_facade.mapping.map_event``."""

    id: str = ""
    summary: str = ""
    description: str = ""
    location: str = ""
    start: EventDateTime = Field(default_factory=EventDateTime)
    end: EventDateTime = Field(default_factory=EventDateTime)
    attendees: list[Attendee] = Field(default_factory=list)
    recurrence: list[str] = Field(default_factory=list)
    status: str = ""
    color_id: str = ""
    hangout_link: str = ""
    html_link: str = ""
    reminders: Reminders = Field(default_factory=Reminders)

    @property
    def color(self) -> EventColor | None:
        return EventColor.from_code(self.color_id)

    @property
    def is_recurring(self) -> bool:
        return bool(self.recurrence)


class BusyInterval(_WireModel):
    start: str = ""
    end: str = ""


class FreeBusyCalendar(_WireModel):
    busy: list[BusyInterval] = Field(default_factory=list)
    errors: list[str] | None = None


class FreeBusyResult(_WireModel):
    calendars: dict[str, FreeBusyCalendar] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Caller-supplied inputs
# ---------------------------------------------------------------------------


class AttendeeInput(_WireModel):
    """Attendee on input; only ``email`` is ever sent to the service."""

    model_config = ConfigDict(extra="ignore")

    email: str = Field(min_length=1)
    display_name: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_bare_email(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"email": value}
        return value

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("email must be a non-empty string")
        return normalized


class ReminderOverrideInput(_WireModel):
    model_config = ConfigDict(extra="forbid")

    method: Literal["email", "popup"]
    minutes: int = Field(ge=0)


class RemindersInput(_WireModel):
    model_config = ConfigDict(extra="forbid")

    use_default: bool
    overrides: list[ReminderOverrideInput] | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class EventInput(_WireModel):
    """Complete event definition used by create and replace operations."""

    model_config = ConfigDict(extra="forbid")

    start: EventDateTime
    end: EventDateTime
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    attendees: list[AttendeeInput] | None = None
    time_zone: str | None = None
    recurrence: list[str] | None = None
    color_id: EventColor | str | None = None
    reminders: RemindersInput | None = None
    add_meet_link: bool = False


class EventPatch(_WireModel):
    """Partial event update.

    Only fields the caller actually supplied (``model_fields_set``) reach the
    request body.  ``EventPatch(location="")`` clears the location remotely;
    ``EventPatch()`` leaves it untouched.
    """

    model_config = ConfigDict(extra="forbid")

    start: EventDateTime | None = None
    end: EventDateTime | None = None
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    attendees: list[AttendeeInput] | None = None
    time_zone: str | None = None
    recurrence: list[str] | None = None
    color_id: EventColor | str | None = None
    reminders: RemindersInput | None = None
    add_meet_link: bool = False

    def is_set(self, field_name: str) -> bool:
        return field_name in self.model_fields_set


class ListEventsOptions(_WireModel):
    """Listing filters.

    ``time_min``/``time_max`` and ``query`` are passed through unmodified;
    bound inclusivity and query matching follow the remote service.
    ``max_results`` caps the returned count, not the page size.
    """

    model_config = ConfigDict(extra="forbid")

    time_min: str | None = None
    time_max: str | None = None
    query: str | None = None
    max_results: int | None = Field(default=None, ge=1)


class FreeBusyItem(_WireModel):
    id: str = Field(min_length=1)


class FreeBusyRequest(_WireModel):
    model_config = ConfigDict(extra="forbid")

    time_min: str = Field(min_length=1)
    time_max: str = Field(min_length=1)
    items: list[FreeBusyItem] = Field(default_factory=list)
    time_zone: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _expand_calendar_ids(cls, value: Any) -> Any:
        if isinstance(value, dict) and "calendar_ids" in value:
            data = dict(value)
            calendar_ids = data.pop("calendar_ids")
            items = list(data.get("items") or [])
            items.extend({"id": calendar_id} for calendar_id in calendar_ids)
            data["items"] = items
            return data
        return value
