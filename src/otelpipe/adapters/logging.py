"""Python logging handler adapter for otelpipe.

This adapter bridges Python's standard library logging module to a
TelemetryPipeline, so existing ``logger.info(...)`` calls are exported
without code changes.
"""

import logging
import traceback

from otelpipe.core.models import AttributeValue, Record, RecordKind, is_attribute_value
from otelpipe.core.records import current_span
from otelpipe.runtime.pipeline import TelemetryPipeline

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


# Default attributes to extract from LogRecord
_DEFAULT_INCLUDE_ATTRS = ["module", "funcName", "lineno", "pathname"]

# Our own diagnostics must not be fed back into the pipeline
_INTERNAL_LOGGER_PREFIX = "otelpipe"


class PipelineHandler(logging.Handler):
    """Logging handler that emits log records into a TelemetryPipeline.

    Example:
        ```python
        from otelpipe import PipelineHandler, TelemetryPipeline

        pipeline = TelemetryPipeline.from_env()
        logging.getLogger().addHandler(PipelineHandler(pipeline))
        ```
    """

    def __init__(
        self,
        pipeline: TelemetryPipeline,
        level: int = logging.NOTSET,
        include_attrs: list[str] | None = None,
    ) -> None:
        """Initialize the handler with a pipeline.

        Args:
            pipeline: Pipeline records are submitted to.
            level: Minimum level handled.
            include_attrs: List of LogRecord attributes to include. Defaults to
                ["module", "funcName", "lineno", "pathname"].
        """
        super().__init__(level)
        self._pipeline = pipeline
        self._include_attrs = include_attrs or _DEFAULT_INCLUDE_ATTRS

    def emit(self, record: logging.LogRecord) -> None:
        """Submit a log record to the pipeline.

        Args:
            record: The log record to emit.
        """
        if record.name == _INTERNAL_LOGGER_PREFIX or record.name.startswith(
            _INTERNAL_LOGGER_PREFIX + "."
        ):
            return
        try:
            self._pipeline.submit(self._to_record(record))
        except Exception:
            self.handleError(record)

    def _to_record(self, record: logging.LogRecord) -> Record:
        # Map of attribute names to their values from LogRecord
        attr_mapping: dict[str, AttributeValue] = {
            "module": record.name,
            "funcName": record.funcName or "",
            "lineno": record.lineno,
            "pathname": record.pathname,
        }

        # Build attributes based on include_attrs configuration
        attributes: dict[str, AttributeValue] = {
            key: attr_mapping[key] for key in self._include_attrs if key in attr_mapping
        }

        span = current_span()
        if span is not None:
            attributes["trace_id"] = span.trace_id
            attributes["span_id"] = span.span_id

        # Add any extra attributes passed via logging call
        for key, value in record.__dict__.items():
            if key not in _STANDARD_LOGRECORD_ATTRS and is_attribute_value(value):
                attributes[key] = value

        # Extract exception info if present
        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            if exc_type is not None:
                attributes["exc_type"] = exc_type.__name__
            if exc_value is not None:
                attributes["exc_message"] = str(exc_value)
            if exc_tb is not None:
                attributes["exc_traceback"] = "".join(
                    traceback.format_exception(exc_type, exc_value, exc_tb)
                )

        return Record(
            timestamp=record.created,
            kind=RecordKind.LOG,
            severity=record.levelname,
            message=record.getMessage(),
            attributes=attributes,
        )
