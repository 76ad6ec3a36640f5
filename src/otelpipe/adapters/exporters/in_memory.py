"""In-memory exporter that keeps every batch it receives."""

import threading

from otelpipe.core.models import Batch, ExportResult, Record


class InMemoryExporter:
    """In-memory implementation of ExporterPort.

    Stores exported batches in a list. Suitable for testing and for
    running an application without a collector.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._batches: list[Batch] = []
        self.shutdown_called = False

    def export(self, batch: Batch, timeout: float) -> ExportResult:
        """Record the batch and report success."""
        with self._lock:
            self._batches.append(batch)
        return ExportResult.success()

    def shutdown(self) -> None:
        self.shutdown_called = True

    @property
    def batches(self) -> list[Batch]:
        """Exported batches in export order."""
        with self._lock:
            return list(self._batches)

    @property
    def records(self) -> list[Record]:
        """All exported records, flattened in export order."""
        return [record for batch in self.batches for record in batch.records]

    def clear(self) -> None:
        with self._lock:
            self._batches.clear()
