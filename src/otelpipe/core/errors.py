"""Error taxonomy for the export pipeline.

Producers never see these: ``emit`` and ``enqueue`` report acceptance as a
boolean. They are raised by configuration parsing and by exporters, and used
to classify what the scheduler logs and counts. Queue overflow is not an
exception at all: it shows up as a False return and the ``dropped_overflow``
counter.
"""


class OtelPipeError(Exception):
    """Base class for all otelpipe errors."""


class ConfigurationError(OtelPipeError, ValueError):
    """Invalid pipeline or resource configuration."""


class ExportError(OtelPipeError):
    """An export attempt failed."""


class ExportTransientError(ExportError):
    """Retryable export failure (connection refused, timeout, 5xx)."""


class ExportPermanentError(ExportError):
    """Non-retryable export failure; the batch is dropped."""


class ShutdownTimeout(OtelPipeError):
    """Draining did not complete within the shutdown grace period."""
