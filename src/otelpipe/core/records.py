"""Helper functions for creating Record objects."""

import logging
import secrets
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field

from otelpipe.core.models import AttributeValue, Record, RecordKind, SpanData

logger = logging.getLogger(__name__)

_current_span: ContextVar["SpanContext | None"] = ContextVar(
    "otelpipe_current_span", default=None
)


@dataclass(frozen=True)
class SpanContext:
    """Identifiers of the span currently open in this context."""

    trace_id: str
    span_id: str


def current_span() -> SpanContext | None:
    """Return the innermost span opened with ``timed_span`` in this context."""
    return _current_span.get()


def new_trace_id() -> str:
    return secrets.token_hex(16)


def new_span_id() -> str:
    return secrets.token_hex(8)


def log(
    level: str,
    message: str,
    **attributes: AttributeValue,
) -> Record:
    """Create a LOG record with automatic timestamp.

    When called inside ``timed_span``, the record carries the span's
    ``trace_id`` and ``span_id`` attributes so logs correlate with traces.

    Args:
        level: Log level (e.g., "INFO", "ERROR", "DEBUG")
        message: The log message
        **attributes: Additional structured fields

    Returns:
        Record with current timestamp

    Raises:
        TypeError: If an attribute value is not a str, int, float or bool.
        ValueError: If a float attribute is NaN or infinite.
    """
    span = _current_span.get()
    if span is not None:
        attributes = {"trace_id": span.trace_id, "span_id": span.span_id, **attributes}
    return Record(
        timestamp=time.time(),
        kind=RecordKind.LOG,
        severity=level.upper(),
        message=message,
        attributes=attributes,
    )


def info(message: str, **attributes: AttributeValue) -> Record:
    """Create an INFO log record."""
    return log("INFO", message, **attributes)


def error(message: str, **attributes: AttributeValue) -> Record:
    """Create an ERROR log record."""
    return log("ERROR", message, **attributes)


def debug(message: str, **attributes: AttributeValue) -> Record:
    """Create a DEBUG log record."""
    return log("DEBUG", message, **attributes)


def warn(message: str, **attributes: AttributeValue) -> Record:
    """Create a WARN log record."""
    return log("WARN", message, **attributes)


@dataclass
class TimedSpanResult:
    """Result object for timed_span context manager.

    ``attributes`` may be updated inside the block; ``record`` is set once
    the block exits.
    """

    context: SpanContext
    attributes: dict[str, AttributeValue] = field(default_factory=dict)
    record: Record | None = None


@contextmanager
def timed_span(
    name: str,
    **attributes: AttributeValue,
) -> Iterator[TimedSpanResult]:
    """Context manager that measures a block and builds a SPAN record.

    Nested calls share the outer span's trace id and record it as parent.
    If the block raises, the span gets ERROR severity plus ``exc_type`` and
    ``exc_message`` attributes, and the exception propagates. If an attribute
    value is invalid, ``record`` stays None.

    Args:
        name: Span name
        **attributes: Additional structured fields

    Yields:
        TimedSpanResult whose ``record`` is populated on exit
    """
    parent = _current_span.get()
    context = SpanContext(
        trace_id=parent.trace_id if parent else new_trace_id(),
        span_id=new_span_id(),
    )
    result = TimedSpanResult(context=context, attributes=dict(attributes))
    token = _current_span.set(context)
    start = time.time()
    severity = "INFO"
    try:
        yield result
    except BaseException as e:
        severity = "ERROR"
        result.attributes["exc_type"] = type(e).__name__
        result.attributes["exc_message"] = str(e)
        raise
    finally:
        _current_span.reset(token)
        end = time.time()
        try:
            result.record = Record(
                timestamp=end,
                kind=RecordKind.SPAN,
                severity=severity,
                message=name,
                attributes={**result.attributes, "duration_ms": (end - start) * 1000},
                span=SpanData(
                    trace_id=context.trace_id,
                    span_id=context.span_id,
                    start_time=start,
                    end_time=end,
                    parent_span_id=parent.span_id if parent else None,
                ),
            )
        except (TypeError, ValueError):
            logger.debug("discarding span %r with invalid attributes", name, exc_info=True)
