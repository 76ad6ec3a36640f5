"""TelemetryPipeline: the one object an application holds to emit telemetry.

Wires Resource Tagger -> Record Queue -> Batcher -> Export Scheduler ->
Exporter. Construct it once at process start, pass it to whatever needs to
emit telemetry, and shut it down once at process end.
"""

import atexit
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType

from otelpipe.core.batcher import Batcher
from otelpipe.core.config import PipelineConfig
from otelpipe.core.metrics import PipelineStats
from otelpipe.core.models import (
    Attributes,
    AttributeValue,
    MetricSample,
    Record,
    RecordKind,
    Resource,
    SpanData,
)
from otelpipe.core.ports import ExporterPort
from otelpipe.core.queue import RecordQueue
from otelpipe.core.records import TimedSpanResult, log, timed_span
from otelpipe.core.resource import ResourceTagger, resource_from_env
from otelpipe.core.scheduler import ExportScheduler, SchedulerState, ShutdownReport

logger = logging.getLogger(__name__)


class TelemetryPipeline:
    """Batching export pipeline for logs and spans.

    Example:
        ```python
        from otelpipe import HttpExporter, PipelineConfig, Resource, TelemetryPipeline

        config = PipelineConfig(endpoint="http://collector:4318/v1/logs")
        with TelemetryPipeline(config, HttpExporter(config.endpoint)) as pipeline:
            pipeline.log("INFO", "service started", port=8080)
        ```
    """

    def __init__(
        self,
        config: PipelineConfig,
        exporter: ExporterPort,
        resource: Resource | None = None,
        start: bool = True,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Validated pipeline configuration.
            exporter: Transport used for every batch.
            resource: Process identity. ``Resource.create()`` when omitted.
            start: Start the export worker immediately.
        """
        config.validate()
        self._config = config
        self._stats = PipelineStats()
        self._tagger = ResourceTagger(resource or Resource.create())
        self._queue = RecordQueue(
            capacity=config.queue_capacity,
            policy=config.overflow_policy,
            enqueue_timeout=config.enqueue_timeout,
            stats=self._stats,
        )
        self._batcher = Batcher(self._queue, config.max_batch_size, config.schedule_delay)
        self._scheduler = ExportScheduler(
            self._queue, self._batcher, exporter, config, self._stats
        )
        self._exit_hook_registered = False
        if start:
            self.start()

    @classmethod
    def from_env(cls, start: bool = True) -> "TelemetryPipeline":
        """Build a pipeline exporting over HTTP, configured from OTEL_* variables."""
        from otelpipe.adapters.exporters.http import HttpExporter

        config = PipelineConfig.from_env()
        exporter = HttpExporter(config.endpoint, headers=config.headers)
        return cls(config, exporter, resource_from_env(), start=start)

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def resource(self) -> Resource:
        return self._tagger.resource

    @property
    def stats(self) -> PipelineStats:
        return self._stats

    @property
    def state(self) -> SchedulerState:
        return self._scheduler.state

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    def start(self) -> None:
        self._scheduler.start()
        logger.debug(
            "telemetry pipeline started for %s, exporting to %s",
            self.resource.service_name,
            self._config.endpoint,
        )

    # --- ingestion ---

    def emit(
        self,
        kind: RecordKind,
        message: str,
        attributes: Attributes | None = None,
        severity: str = "INFO",
        span: SpanData | None = None,
    ) -> bool:
        """Tag and enqueue a record.

        Never raises: drops are reported through the return value and the
        overflow counters.

        Returns:
            True if the record was accepted.
        """
        try:
            record = Record(
                timestamp=time.time(),
                kind=kind,
                severity=severity,
                message=message,
                attributes=attributes or {},
                span=span,
            )
        except (TypeError, ValueError):
            logger.debug("discarding malformed record %r", message, exc_info=True)
            return False
        return self.submit(record)

    def submit(self, record: Record, block: bool = True) -> bool:
        """Tag and enqueue an already-built record.

        Args:
            record: Record to submit.
            block: Under the BLOCK overflow policy, wait up to
                ``enqueue_timeout`` for space. Callers running on an event
                loop pass False to reject immediately instead.
        """
        return self._queue.enqueue(self._tagger.tag(record), block=block)

    def log(self, level: str, message: str, **attributes: AttributeValue) -> bool:
        """Emit a LOG record. Returns False if an attribute value is invalid."""
        try:
            record = log(level, message, **attributes)
        except (TypeError, ValueError):
            logger.debug("discarding malformed record %r", message, exc_info=True)
            return False
        return self.submit(record)

    @contextmanager
    def span(self, name: str, **attributes: AttributeValue) -> Iterator[TimedSpanResult]:
        """Time a block and emit it as a SPAN record when it exits.

        The span is emitted even when the block raises; it then has ERROR
        severity and the exception propagates. A span whose attributes are
        invalid is discarded.
        """
        result: TimedSpanResult | None = None
        try:
            with timed_span(name, **attributes) as result:
                yield result
        finally:
            if result is not None and result.record is not None:
                self.submit(result.record)

    def metrics(self) -> list[MetricSample]:
        """Current counters as metric samples, plus a queue size gauge."""
        return self._stats.to_samples(queue_size=len(self._queue))

    # --- lifecycle ---

    def force_flush(self, timeout: float | None = None) -> bool:
        """Export everything queued now. Returns False on timeout."""
        return self._scheduler.force_flush(timeout)

    def shutdown(self, timeout: float | None = None) -> ShutdownReport:
        """Drain and stop. Records emitted afterwards are rejected."""
        report = self._scheduler.shutdown(timeout)
        if self._exit_hook_registered:
            atexit.unregister(self.shutdown)
            self._exit_hook_registered = False
        return report

    def install_shutdown_hook(self) -> None:
        """Shut the pipeline down when the interpreter exits."""
        if not self._exit_hook_registered:
            atexit.register(self.shutdown)
            self._exit_hook_registered = True

    def __enter__(self) -> "TelemetryPipeline":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()
