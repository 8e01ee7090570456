"""Error taxonomy for the calendar facade.

Every failure surfaced by the facade derives from ``CalendarError``.  Remote
failures are raised as ``CalendarRequestError`` subclasses chosen from the
HTTP status code and the Google error ``reason``, so callers can tell
retryable failures from terminal ones without parsing messages.

The facade never recovers from any of these locally.
"""

from __future__ import annotations

import re
from typing import Any

import httpx

# Google reports some quota failures as 403 with one of these reasons.
RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded", "quotaExceeded"})
ERROR_MESSAGE_MAX_LENGTH = 200


class CalendarError(RuntimeError):
    """Base error raised by the calendar facade and its auth helpers."""


class CalendarCredentialError(CalendarError):
    """Raised when Google OAuth credentials are missing or invalid."""


class CalendarTokenRefreshError(CalendarError):
    """Raised when the refresh-token exchange fails."""


class CalendarTransportError(CalendarError):
    """Raised when the HTTP layer fails before a response is received."""


class CalendarResponseError(CalendarError):
    """Raised when a successful response carries an unusable payload."""


class CalendarRequestError(CalendarError):
    """Raised when the Google Calendar API answers with a non-2xx status."""

    retryable = False

    def __init__(self, *, status_code: int, message: str, reason: str | None = None) -> None:
        self.status_code = status_code
        self.message = message
        self.reason = reason
        super().__init__(f"Google Calendar API request failed ({status_code}): {message}")


class CalendarInvalidArgumentError(CalendarRequestError):
    """The service rejected the request as malformed (400)."""


class CalendarUnauthorizedError(CalendarRequestError):
    """The service rejected the access token even after a forced refresh (401)."""


class CalendarForbiddenError(CalendarRequestError):
    """The credential lacks the scope or permission for the resource (403)."""


class CalendarNotFoundError(CalendarRequestError):
    """The calendar or event identifier does not resolve (404/410)."""


class CalendarRateLimitedError(CalendarRequestError):
    """The service is throttling this caller (429 or quota 403)."""

    retryable = True


class CalendarTransientError(CalendarRequestError):
    """The service failed on its side (5xx)."""

    retryable = True


def _error_payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def safe_google_error_message(response: httpx.Response) -> str:
    """Return a short, whitespace-normalized, credential-redacted error message."""
    payload = _error_payload(response)
    message: str | None = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            raw = error_payload.get("message")
            if isinstance(raw, str) and raw.strip():
                message = raw
        elif isinstance(error_payload, str) and error_payload.strip():
            message = error_payload
            description = payload.get("error_description")
            if isinstance(description, str) and description.strip():
                message = f"{error_payload}: {description}"

    if message is None:
        message = response.text.strip() or "Request failed without an error payload"

    redacted = redact_credential_values(message)
    return " ".join(redacted.split())[:ERROR_MESSAGE_MAX_LENGTH]


def google_error_reason(response: httpx.Response) -> str | None:
    """Extract ``error.errors[0].reason`` from a Google error payload."""
    payload = _error_payload(response)
    if not isinstance(payload, dict):
        return None
    error_payload = payload.get("error")
    if not isinstance(error_payload, dict):
        return None
    errors = error_payload.get("errors")
    if isinstance(errors, list):
        for entry in errors:
            if isinstance(entry, dict):
                reason = entry.get("reason")
                if isinstance(reason, str) and reason.strip():
                    return reason.strip()
    status = error_payload.get("status")
    if isinstance(status, str) and status.strip():
        return status.strip()
    return None


def classify_response_error(response: httpx.Response) -> CalendarRequestError:
    """Build the ``CalendarRequestError`` subclass matching a failed response."""
    status_code = response.status_code
    reason = google_error_reason(response)
    message = safe_google_error_message(response)

    error_cls: type[CalendarRequestError]
    if status_code == 400:
        error_cls = CalendarInvalidArgumentError
    elif status_code == 401:
        error_cls = CalendarUnauthorizedError
    elif status_code == 403:
        if reason in RATE_LIMIT_REASONS:
            error_cls = CalendarRateLimitedError
        else:
            error_cls = CalendarForbiddenError
    elif status_code in (404, 410):
        error_cls = CalendarNotFoundError
    elif status_code == 429:
        error_cls = CalendarRateLimitedError
    elif status_code >= 500:
        error_cls = CalendarTransientError
    else:
        error_cls = CalendarRequestError

    return error_cls(status_code=status_code, message=message, reason=reason)


def redact_credential_values(message: str) -> str:
    """Redact OAuth secrets and bearer tokens from an arbitrary message."""
    redacted = message
    # key=value style pairs
    redacted = re.sub(
        r"(?i)\b(client_secret|refresh_token|access_token|token)\s*=\s*([^\s,;&]+)",
        r"\1=[REDACTED]",
        redacted,
    )
    # JSON/Python dict style quoted values
    redacted = re.sub(
        r"""(?i)(['"]?(?:client_secret|refresh_token|access_token|token)['"]?\s*:\s*)(['"]).*?\2""",
        r'\1"[REDACTED]"',
        redacted,
    )
    # key: value style pairs
    redacted = re.sub(
        r"(?i)\b(client_secret|refresh_token|access_token|token)\s*:\s*([^\s,;'\"]+)",
        r"\1: [REDACTED]",
        redacted,
    )
    # Authorization headers
    redacted = re.sub(r"(?i)\b(Bearer)\s+[A-Za-z0-9._~+/=-]+", r"\1 [REDACTED]", redacted)
    return redacted
