"""Test doubles and helpers shared across test modules."""

import threading
import time
from collections import deque
from collections.abc import Callable, Iterable

from otelpipe.core.models import Batch, ExportResult, Record, RecordKind


def make_record(i: int, severity: str = "INFO") -> Record:
    """Build a LOG record whose message identifies its position."""
    return Record(
        timestamp=1000.0 + i,
        kind=RecordKind.LOG,
        severity=severity,
        message=f"msg {i}",
    )


def messages(records: Iterable[Record]) -> list[str]:
    return [record.message for record in records]


def wait_until(
    predicate: Callable[[], bool],
    timeout: float = 2.0,
    interval: float = 0.005,
) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedExporter:
    """Exporter returning scripted results, then success.

    Scripted items may be ExportResult objects or exceptions to raise.
    ``delay`` simulates a slow endpoint; a call whose timeout is shorter
    than the delay waits for the timeout and fails transiently, like a
    real client would.
    """

    def __init__(
        self,
        results: Iterable[ExportResult | Exception] = (),
        delay: float = 0.0,
    ) -> None:
        self._results = deque(results)
        self._lock = threading.Lock()
        self.delay = delay
        self.calls: list[Batch] = []
        self.exported: list[Batch] = []
        self.active = 0
        self.max_active = 0
        self.shutdown_called = False

    def export(self, batch: Batch, timeout: float) -> ExportResult:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.calls.append(batch)
            scripted = self._results.popleft() if self._results else None
        try:
            if self.delay:
                time.sleep(min(self.delay, timeout))
                if timeout < self.delay:
                    return ExportResult.transient("timed out")
            if isinstance(scripted, Exception):
                raise scripted
            result = scripted or ExportResult.success()
            if result.ok:
                with self._lock:
                    self.exported.append(batch)
            return result
        finally:
            with self._lock:
                self.active -= 1

    def shutdown(self) -> None:
        self.shutdown_called = True

    @property
    def records(self) -> list[Record]:
        with self._lock:
            return [record for batch in self.exported for record in batch.records]
