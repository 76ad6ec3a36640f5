"""Bounded record queue shared by producers and the export worker.

Stores records in a fixed-capacity deque. What happens when the queue is
full is decided by the configured OverflowPolicy; the queue never grows
past its capacity.
"""

import logging
import threading
import time
from collections import deque
from collections.abc import Callable

from otelpipe.core.config import OverflowPolicy
from otelpipe.core.metrics import PipelineStats
from otelpipe.core.models import Record

logger = logging.getLogger(__name__)


class RecordQueue:
    """Thread-safe FIFO of pending records with a fixed capacity.

    Many producers may call ``enqueue`` concurrently; a single consumer
    drains it. Each entry remembers its monotonic enqueue time so the
    consumer can tell how long the oldest record has been waiting.

    Args:
        capacity: Maximum number of queued records.
        policy: Overflow policy applied when the queue is full.
        enqueue_timeout: Seconds a producer waits for space under BLOCK.
        stats: Counters to update. A private instance when omitted.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        capacity: int,
        policy: OverflowPolicy = OverflowPolicy.DROP_NEWEST,
        enqueue_timeout: float = 0.1,
        stats: PipelineStats | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._policy = policy
        self._enqueue_timeout = enqueue_timeout
        self._stats = stats or PipelineStats()
        self._clock = clock
        self._entries: deque[tuple[float, Record]] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)
        self._closed = False
        self._woken = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def policy(self) -> OverflowPolicy:
        return self._policy

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def enqueue(self, record: Record, block: bool = True) -> bool:
        """Add a record, applying the overflow policy if the queue is full.

        Args:
            record: Record to queue. It must not be mutated afterwards.
            block: Under BLOCK, wait up to ``enqueue_timeout`` for space.
                When False a full queue rejects the record at once.

        Returns:
            True if the record was accepted, False if it was rejected
            (queue closed, or full under DROP_NEWEST / BLOCK).
        """
        with self._lock:
            if self._closed:
                self._stats.increment("rejected_closed")
                return False
            if len(self._entries) >= self._capacity:
                if not self._make_room(block):
                    self._stats.increment("dropped_overflow")
                    return False
            self._entries.append((self._clock(), record))
            self._stats.increment("enqueued")
            self._not_empty.notify()
            return True

    def _make_room(self, block: bool) -> bool:
        """Free a slot according to the policy. Called with the lock held."""
        if self._policy is OverflowPolicy.DROP_OLDEST:
            self._entries.popleft()
            self._stats.increment("dropped_overflow")
            return True
        if self._policy is OverflowPolicy.BLOCK and block:
            deadline = time.monotonic() + self._enqueue_timeout
            while len(self._entries) >= self._capacity and not self._closed:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._not_full.wait(remaining)
            if self._closed:
                return False
            return len(self._entries) < self._capacity
        return False

    def drain_up_to(self, n: int) -> list[Record]:
        """Remove and return at most ``n`` records in FIFO order."""
        with self._lock:
            count = min(n, len(self._entries))
            drained = [self._entries.popleft()[1] for _ in range(count)]
            if drained:
                self._not_full.notify_all()
            return drained

    def oldest_age(self) -> float | None:
        """Seconds the head record has been queued, or None if empty."""
        with self._lock:
            if not self._entries:
                return None
            return self._clock() - self._entries[0][0]

    def wait_for(
        self,
        min_count: int,
        max_age: float,
        timeout: float | None = None,
    ) -> None:
        """Block until a flush trigger fires.

        Returns when at least ``min_count`` records are queued, the oldest
        record has waited ``max_age`` seconds, ``wake()`` or ``close()`` was
        called, or ``timeout`` elapsed. Triggers are evaluated under the
        lock, so a record enqueued between checks is never missed.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            while not self._woken and not self._closed:
                if len(self._entries) >= min_count:
                    break
                wait: float | None = None
                if self._entries:
                    wait = self._entries[0][0] + max_age - self._clock()
                    if wait <= 0:
                        break
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    wait = remaining if wait is None else min(wait, remaining)
                self._not_empty.wait(wait)
            self._woken = False

    def wake(self) -> None:
        """Interrupt a pending ``wait_for`` call."""
        with self._lock:
            self._woken = True
            self._not_empty.notify_all()

    def close(self) -> None:
        """Refuse further records. Queued records stay drainable."""
        with self._lock:
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()
        logger.debug("record queue closed with %d records pending", len(self))

    def discard_all(self) -> int:
        """Drop every queued record and return how many were dropped."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._not_full.notify_all()
            return count
