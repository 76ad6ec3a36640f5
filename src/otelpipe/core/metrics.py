"""Pipeline counters and helpers for turning them into MetricSample objects."""

import threading
import time

from otelpipe.core.models import MetricSample

METRIC_PREFIX = "otelpipe_"


def counter(
    name: str,
    value: float = 1.0,
    labels: dict[str, str] | None = None,
) -> MetricSample:
    """Create a counter metric sample.

    Args:
        name: Metric name (e.g., "otelpipe_exported_records_total")
        value: Counter value (default: 1.0)
        labels: Optional dimension labels

    Returns:
        MetricSample with current timestamp
    """
    return MetricSample(
        name=name,
        timestamp=time.time(),
        value=value,
        labels=labels or {},
    )


def gauge(
    name: str,
    value: float,
    labels: dict[str, str] | None = None,
) -> MetricSample:
    """Create a gauge metric sample.

    Args:
        name: Metric name (e.g., "otelpipe_queue_size")
        value: Current gauge value
        labels: Optional dimension labels

    Returns:
        MetricSample with current timestamp
    """
    return MetricSample(
        name=name,
        timestamp=time.time(),
        value=value,
        labels=labels or {},
    )


class PipelineStats:
    """Thread-safe counters describing what happened to every record.

    Counters:
        enqueued: Records accepted by the queue.
        dropped_overflow: Records rejected or evicted by the overflow policy.
        rejected_closed: Records refused because the pipeline was shutting down.
        exported_batches / exported_records: Successful exports.
        export_retries: Retry attempts after transient failures.
        dropped_permanent: Records in batches rejected by the endpoint.
        dropped_retries_exhausted: Records in batches that ran out of retries.
        lost_on_shutdown: Records discarded when the drain grace period expired.
    """

    FIELDS = (
        "enqueued",
        "dropped_overflow",
        "rejected_closed",
        "exported_batches",
        "exported_records",
        "export_retries",
        "dropped_permanent",
        "dropped_retries_exhausted",
        "lost_on_shutdown",
    )

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts = dict.fromkeys(self.FIELDS, 0)

    def increment(self, name: str, amount: int = 1) -> None:
        if name not in self._counts:
            raise KeyError(f"unknown counter: {name}")
        with self._lock:
            self._counts[name] += amount

    def __getattr__(self, name: str) -> int:
        counts = self.__dict__.get("_counts")
        if counts is None or name not in counts:
            raise AttributeError(name)
        return counts[name]

    def snapshot(self) -> dict[str, int]:
        """Return a consistent copy of all counters."""
        with self._lock:
            return dict(self._counts)

    def to_samples(self, queue_size: int | None = None) -> list[MetricSample]:
        """Render counters as MetricSample objects.

        Args:
            queue_size: Current queue length, emitted as a gauge when given.

        Returns:
            One ``otelpipe_<counter>_total`` sample per counter.
        """
        samples = [
            counter(f"{METRIC_PREFIX}{name}_total", float(value))
            for name, value in self.snapshot().items()
        ]
        if queue_size is not None:
            samples.append(gauge(f"{METRIC_PREFIX}queue_size", float(queue_size)))
        return samples
