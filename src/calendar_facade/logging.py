"""Structured logging for the calendar facade.

Uses structlog's ProcessorFormatter to upgrade every existing
``logging.getLogger(__name__)`` call site, so library code never imports
structlog directly.

Two output formats:
- ``text``: colored, human-readable console output (dev default)
- ``json``: machine-parseable JSON lines (production / log aggregation)

OTel trace context is injected when the caller runs inside an active span,
and a :class:`CredentialRedactionFilter` scrubs OAuth secrets and bearer
tokens from every record before it is rendered.
"""

from __future__ import annotations

import logging
import sys

import structlog
from opentelemetry import trace

from calendar_facade.errors import redact_credential_values

_NOISE_LOGGERS = (
    "httpx",
    "httpcore",
)


# ---------------------------------------------------------------------------
# Structlog processors
# ---------------------------------------------------------------------------


def add_otel_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Inject ``trace_id`` and ``span_id`` from the current OTel span."""
    span = trace.get_current_span()
    ctx = span.get_span_context()
    if ctx and ctx.trace_id:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    else:
        event_dict["trace_id"] = "0" * 32
        event_dict["span_id"] = "0" * 16
    return event_dict


def _build_processors(time_fmt: str) -> list[structlog.types.Processor]:
    """Build the pre-chain processor list with the given timestamp format."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_otel_context,
        structlog.stdlib.ExtraAdder(),
    ]


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------


class CredentialRedactionFilter(logging.Filter):
    """Rewrite log records so OAuth secrets never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        # structlog-native records carry the event dict as ``msg``; the
        # ProcessorFormatter needs it to stay a dict.
        if isinstance(record.msg, dict):
            for key, value in record.msg.items():
                if isinstance(value, str):
                    record.msg[key] = redact_credential_values(value)
            return True

        message = record.getMessage()
        redacted = redact_credential_values(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


# ---------------------------------------------------------------------------
# configure_logging()
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure structured logging for the process.

    Parameters
    ----------
    level:
        Root log level (e.g. "DEBUG", "INFO", "WARNING").
    fmt:
        Output format: ``"text"`` for colored console, ``"json"`` for JSON lines.
    """
    if fmt == "json":
        processors = _build_processors(time_fmt="iso")
        renderer = structlog.processors.JSONRenderer()
    else:
        # Console: compact HH:MM:SS, no microseconds
        processors = _build_processors(time_fmt="%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=processors,
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(CredentialRedactionFilter())

    root = logging.getLogger()
    # Remove existing handlers to avoid duplicate output on reconfiguration
    root.handlers.clear()
    root.addHandler(console_handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Configure structlog itself (for direct structlog.get_logger() usage)
    structlog.configure(
        processors=[
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
