"""Export scheduler: drives the batch/export cycle on one worker thread.

The scheduler owns the pipeline lifecycle::

    RUNNING  --shutdown()-->  DRAINING  --drained or timed out-->  STOPPED

While RUNNING, the worker waits for a batch trigger (size or age), cuts
batches and exports them one at a time. Transient failures are retried with
exponential backoff; permanent failures drop the batch. On shutdown the
queue is closed, queued and in-flight batches are exported within the grace
period, and whatever is left is discarded and reported as lost.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum

from otelpipe.core.batcher import Batcher
from otelpipe.core.config import PipelineConfig
from otelpipe.core.errors import (
    ExportPermanentError,
    ExportTransientError,
    ShutdownTimeout,
)
from otelpipe.core.metrics import PipelineStats
from otelpipe.core.models import Batch, ExportResult
from otelpipe.core.ports import ExporterPort
from otelpipe.core.queue import RecordQueue

logger = logging.getLogger(__name__)

# Extra time shutdown() waits for the worker beyond the grace period
# before abandoning it.
_JOIN_SLACK = 1.0


class SchedulerState(str, Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ShutdownReport:
    """Outcome of a shutdown.

    Attributes:
        completed: True if every queued and in-flight record was resolved
            (exported, or dropped by the retry policy) before the deadline.
        exported: Records successfully exported while draining.
        lost: Records discarded because the grace period ran out.
        elapsed: Seconds spent draining.
    """

    completed: bool
    exported: int
    lost: int
    elapsed: float

    def raise_for_loss(self) -> None:
        """Raise ShutdownTimeout if any record was lost while draining."""
        if not self.completed:
            raise ShutdownTimeout(
                f"shutdown grace period expired: {self.lost} records lost "
                f"after {self.elapsed:.2f}s"
            )


class ExportScheduler:
    """Runs the export loop for one pipeline.

    Args:
        queue: Queue producers write to.
        batcher: Batcher cutting batches from ``queue``.
        exporter: Transport used for every batch.
        config: Retry, timeout and shutdown tunables.
        stats: Counters to update. A private instance when omitted.
    """

    def __init__(
        self,
        queue: RecordQueue,
        batcher: Batcher,
        exporter: ExporterPort,
        config: PipelineConfig,
        stats: PipelineStats | None = None,
    ) -> None:
        self._queue = queue
        self._batcher = batcher
        self._exporter = exporter
        self._config = config
        self._stats = stats or PipelineStats()
        self._state = SchedulerState.RUNNING
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._flush_requests: list[threading.Event] = []
        self._deadline: float | None = None
        self._drain_started = 0.0
        self._exported_before_drain = 0
        self._in_flight: Batch | None = None
        self._cut_short = 0
        self._wakeup = threading.Event()
        self._abandoned = threading.Event()
        self._done = threading.Event()
        self._report: ShutdownReport | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def stats(self) -> PipelineStats:
        return self._stats

    def start(self) -> None:
        """Start the worker thread. Calling it twice is a no-op."""
        with self._lock:
            if self._thread is not None or self._state is SchedulerState.STOPPED:
                return
            self._thread = threading.Thread(
                target=self._run, name="otelpipe-export", daemon=True
            )
            self._thread.start()
        logger.debug("export worker started")

    # --- worker ---

    def _run(self) -> None:
        try:
            while self._state is SchedulerState.RUNNING:
                self._batcher.wait_until_ready()
                self._export_ready_batches()
                self._serve_flush_requests()
            self._drain()
        except Exception:
            logger.exception("export worker failed")
            self._finish_abandoned()
        finally:
            self._release_flush_waiters()
            try:
                self._exporter.shutdown()
            except Exception:
                logger.exception("exporter shutdown failed")

    def _export_ready_batches(self) -> None:
        while (batch := self._batcher.next_batch()) is not None:
            self._export(batch)

    def _serve_flush_requests(self) -> None:
        with self._lock:
            requests, self._flush_requests = self._flush_requests, []
        if not requests:
            return
        # Records enqueued after this point belong to the next flush.
        pending = len(self._queue)
        while (batch := self._batcher.next_batch(force=True, limit=pending)) is not None:
            pending -= len(batch)
            self._export(batch)
        for event in requests:
            event.set()

    def _drain(self) -> None:
        while not self._abandoned.is_set():
            deadline = self._deadline
            if deadline is not None and time.monotonic() >= deadline:
                break
            batch = self._batcher.next_batch(force=True)
            if batch is None:
                break
            if not self._export(batch):
                break
        if self._abandoned.is_set():
            return
        self._finish(self._cut_short + self._queue.discard_all())

    def _export(self, batch: Batch) -> bool:
        """Export one batch, retrying transient failures.

        Returns:
            True if the batch was resolved (exported, or dropped by the
            retry policy); False if the drain deadline cut it short, in
            which case its records count as lost.
        """
        self._in_flight = batch
        resolved = self._export_with_retries(batch)
        self._in_flight = None
        if not resolved:
            self._cut_short += len(batch)
        return resolved

    def _export_with_retries(self, batch: Batch) -> bool:
        attempt = 0
        while True:
            timeout = self._config.export_timeout
            deadline = self._deadline
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                timeout = min(timeout, remaining)

            result = self._attempt(batch, timeout)
            if result.ok:
                self._stats.increment("exported_batches")
                self._stats.increment("exported_records", len(batch))
                return True
            if not result.retryable:
                logger.error(
                    "dropping batch %d (%d records): export rejected: %s",
                    batch.sequence,
                    len(batch),
                    result.error,
                )
                self._stats.increment("dropped_permanent", len(batch))
                return True
            if attempt >= self._config.max_retries:
                logger.error(
                    "dropping batch %d (%d records) after %d retries: %s",
                    batch.sequence,
                    len(batch),
                    attempt,
                    result.error,
                )
                self._stats.increment("dropped_retries_exhausted", len(batch))
                return True

            delay = self._backoff_delay(attempt)
            attempt += 1
            logger.warning(
                "export of batch %d failed (%s), retry %d/%d in %.2fs",
                batch.sequence,
                result.error,
                attempt,
                self._config.max_retries,
                delay,
            )
            self._stats.increment("export_retries")
            if not self._sleep(delay):
                return False

    def _attempt(self, batch: Batch, timeout: float) -> ExportResult:
        try:
            return self._exporter.export(batch, timeout)
        except ExportTransientError as e:
            return ExportResult.transient(str(e))
        except ExportPermanentError as e:
            return ExportResult.permanent(str(e))
        except Exception as e:
            logger.exception("exporter raised while exporting batch %d", batch.sequence)
            return ExportResult.permanent(f"{type(e).__name__}: {e}")

    def _backoff_delay(self, attempt: int) -> float:
        config = self._config
        delay = config.initial_backoff * config.backoff_multiplier**attempt
        return min(delay, config.max_backoff)

    def _sleep(self, delay: float) -> bool:
        """Wait before a retry.

        Returns False if the drain deadline would pass before the retry.
        """
        end = time.monotonic() + delay
        while True:
            deadline = self._deadline
            if self._abandoned.is_set() or (deadline is not None and end >= deadline):
                return False
            remaining = end - time.monotonic()
            if remaining <= 0:
                return True
            if self._wakeup.wait(remaining):
                self._wakeup.clear()

    def _finish(self, lost: int) -> None:
        with self._lock:
            if self._report is not None:
                return
            exported = self._stats.exported_records - self._exported_before_drain
            self._report = ShutdownReport(
                completed=lost == 0,
                exported=exported,
                lost=lost,
                elapsed=time.monotonic() - self._drain_started,
            )
            self._state = SchedulerState.STOPPED
        if lost:
            self._stats.increment("lost_on_shutdown", lost)
            logger.warning("shutdown incomplete: %d records lost", lost)
        else:
            logger.debug("shutdown complete: %d records exported while draining", exported)
        self._done.set()

    def _finish_abandoned(self) -> None:
        self._abandoned.set()
        self._wakeup.set()
        self._queue.close()
        if not self._drain_started:
            self._drain_started = time.monotonic()
        in_flight = self._in_flight
        lost = self._cut_short + self._queue.discard_all()
        if in_flight is not None:
            lost += len(in_flight)
        self._finish(lost)

    def _release_flush_waiters(self) -> None:
        with self._lock:
            requests, self._flush_requests = self._flush_requests, []
        for event in requests:
            event.set()

    # --- control ---

    def force_flush(self, timeout: float | None = None) -> bool:
        """Export the records queued when the flush is requested.

        Records enqueued while the flush runs are left for the regular
        triggers, so steady production cannot stall a flush.

        Args:
            timeout: Seconds to wait. None waits indefinitely.

        Returns:
            True if the flush completed in time; False on timeout or when
            the scheduler is no longer running.
        """
        event = threading.Event()
        with self._lock:
            if self._state is not SchedulerState.RUNNING or self._thread is None:
                return False
            self._flush_requests.append(event)
        self._queue.wake()
        return event.wait(timeout)

    def shutdown(self, timeout: float | None = None) -> ShutdownReport:
        """Stop accepting records, drain, and report the outcome.

        Args:
            timeout: Grace period in seconds. Defaults to
                ``config.shutdown_timeout``.

        Returns:
            ShutdownReport. Calling shutdown again returns the same report.
        """
        grace = self._config.shutdown_timeout if timeout is None else timeout
        with self._lock:
            first = self._state is SchedulerState.RUNNING
            if first:
                self._state = SchedulerState.DRAINING
                self._drain_started = time.monotonic()
                self._deadline = self._drain_started + grace
                self._exported_before_drain = self._stats.exported_records
            needs_worker = self._thread is None
        if first:
            logger.debug("shutting down export pipeline (grace %.2fs)", grace)
            self._queue.close()
            self._wakeup.set()
            if needs_worker:
                self._start_drain_worker()

        if not self._done.wait(grace + _JOIN_SLACK):
            logger.error("export worker did not stop within %.2fs, abandoning it", grace)
            self._finish_abandoned()
        assert self._report is not None
        return self._report

    def _start_drain_worker(self) -> None:
        with self._lock:
            self._thread = threading.Thread(
                target=self._run, name="otelpipe-export", daemon=True
            )
            self._thread.start()
