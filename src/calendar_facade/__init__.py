"""calendar-facade: a typed async facade over the Google Calendar API."""

from calendar_facade.auth import AccessTokenProvider, GoogleOAuthClient, GoogleOAuthCredentials
from calendar_facade.client import (
    GoogleCalendarClient,
    create_calendar_client,
    create_calendar_client_from_env,
)
from calendar_facade.config import CalendarFacadeConfig, ConfigError, load_config
from calendar_facade.errors import (
    CalendarCredentialError,
    CalendarError,
    CalendarForbiddenError,
    CalendarInvalidArgumentError,
    CalendarNotFoundError,
    CalendarRateLimitedError,
    CalendarRequestError,
    CalendarResponseError,
    CalendarTokenRefreshError,
    CalendarTransientError,
    CalendarTransportError,
    CalendarUnauthorizedError,
)
from calendar_facade.logging import configure_logging
from calendar_facade.models import (
    Attendee,
    AttendeeInput,
    BusyInterval,
    CalendarInfo,
    EventColor,
    EventDateTime,
    EventInfo,
    EventInput,
    EventPatch,
    FreeBusyCalendar,
    FreeBusyRequest,
    FreeBusyResult,
    ListEventsOptions,
    ReminderOverride,
    ReminderOverrideInput,
    Reminders,
    RemindersInput,
)

__all__ = [
    "AccessTokenProvider",
    "Attendee",
    "AttendeeInput",
    "BusyInterval",
    "CalendarCredentialError",
    "CalendarError",
    "CalendarFacadeConfig",
    "CalendarForbiddenError",
    "CalendarInfo",
    "CalendarInvalidArgumentError",
    "CalendarNotFoundError",
    "CalendarRateLimitedError",
    "CalendarRequestError",
    "CalendarResponseError",
    "CalendarTokenRefreshError",
    "CalendarTransientError",
    "CalendarTransportError",
    "CalendarUnauthorizedError",
    "ConfigError",
    "EventColor",
    "EventDateTime",
    "EventInfo",
    "EventInput",
    "EventPatch",
    "FreeBusyCalendar",
    "FreeBusyRequest",
    "FreeBusyResult",
    "GoogleCalendarClient",
    "GoogleOAuthClient",
    "GoogleOAuthCredentials",
    "ListEventsOptions",
    "ReminderOverride",
    "ReminderOverrideInput",
    "Reminders",
    "RemindersInput",
    "configure_logging",
    "create_calendar_client",
    "create_calendar_client_from_env",
    "load_config",
]
