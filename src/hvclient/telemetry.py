"""Tracing and structured logging for hvclient.

Every HTTP attempt runs inside an ``hvca_request`` span and every login
inside an ``hvca_login`` span. Log events go through structlog; once
``configure_telemetry`` has run they are rendered as JSON with credential
fields masked.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import Iterator, MutableMapping

    from .config import TelemetryConfig

INSTRUMENTATION_NAME = "hvclient"
INSTRUMENTATION_VERSION = "1.0.0"

REQUEST_SPAN = "hvca_request"
LOGIN_SPAN = "hvca_login"

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = frozenset(
    {"api_secret", "access_token", "authorization", "key_passphrase", "token"}
)

_tracer: trace.Tracer | None = None
_logger: structlog.BoundLogger | None = None


def get_tracer() -> trace.Tracer:
    """Tracer for hvclient spans, created on first use."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(INSTRUMENTATION_NAME, INSTRUMENTATION_VERSION)
    return _tracer


def get_logger() -> structlog.BoundLogger:
    """Logger for hvclient events, created on first use."""
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(INSTRUMENTATION_NAME)
    return _logger


def redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking credential fields in an event."""
    for key in event_dict.keys() & SENSITIVE_KEYS:
        event_dict[key] = REDACTED
    return event_dict


def configure_telemetry(config: TelemetryConfig) -> None:
    """Apply a telemetry configuration process-wide.

    With telemetry disabled, spans become no-ops and logging is left as it
    is. Otherwise log events are filtered at ``config.log_level`` and
    rendered as JSON lines.

    Args:
        config: Telemetry configuration.
    """
    global _tracer, _logger

    if not config.enabled:
        _tracer = trace.NoOpTracer()
        return

    level = logging.getLevelNamesMapping().get(config.log_level.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_secrets,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _tracer = trace.get_tracer(config.service_name, INSTRUMENTATION_VERSION)
    _logger = structlog.get_logger(config.service_name)


@contextmanager
def trace_operation(
    name: str,
    *,
    attributes: dict[str, Any] | None = None,
) -> Iterator[trace.Span]:
    """Run a block inside a span, marking the span failed if the block raises.

    Args:
        name: Span name.
        attributes: Initial span attributes.

    Yields:
        The active span.
    """
    with get_tracer().start_as_current_span(name, attributes=attributes) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def request_span(
    method: str, route: str, operation: str, attempt: int
) -> Any:
    """Span around one HTTP attempt of an HVCA operation."""
    return trace_operation(
        REQUEST_SPAN,
        attributes={
            "http.method": method,
            "http.route": route,
            "hvca.operation": operation,
            "hvca.attempt": attempt,
        },
    )


def login_span() -> Any:
    """Span around one login handshake."""
    return trace_operation(LOGIN_SPAN)
