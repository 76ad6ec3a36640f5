"""Groups queued records into batches on size or age triggers."""

import itertools

from otelpipe.core.models import Batch
from otelpipe.core.queue import RecordQueue


class Batcher:
    """Cuts batches from a RecordQueue.

    Records stay in the queue until a batch is cut, so the queue's
    capacity and overflow policy bound everything not yet handed to the
    exporter. A batch is ready when either trigger fires:

    - the number of queued records reaches ``max_batch_size``;
    - the oldest queued record has waited ``schedule_delay`` seconds.

    Batches are cut from the head of the queue, so records keep their
    enqueue order across batches.

    Args:
        queue: Queue to drain.
        max_batch_size: Maximum records per batch.
        schedule_delay: Maximum seconds a record waits for a size trigger.
    """

    def __init__(self, queue: RecordQueue, max_batch_size: int, schedule_delay: float) -> None:
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        self._queue = queue
        self._max_batch_size = max_batch_size
        self._schedule_delay = schedule_delay
        self._sequence = itertools.count(1)

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    @property
    def schedule_delay(self) -> float:
        return self._schedule_delay

    def ready(self) -> bool:
        """Return True if either flush trigger has fired."""
        if len(self._queue) >= self._max_batch_size:
            return True
        age = self._queue.oldest_age()
        return age is not None and age >= self._schedule_delay

    def wait_until_ready(self, timeout: float | None = None) -> None:
        """Block until a batch is ready, the queue is woken, or timeout."""
        self._queue.wait_for(self._max_batch_size, self._schedule_delay, timeout)

    def next_batch(self, force: bool = False, limit: int | None = None) -> Batch | None:
        """Cut the next batch.

        Args:
            force: Cut whatever is queued even if no trigger fired
                   (used by flush and shutdown).
            limit: Cut at most this many records, if smaller than
                   ``max_batch_size``.

        Returns:
            The next batch, or None if nothing is ready. Flushing an empty
            queue is a no-op and returns None.
        """
        if not force and not self.ready():
            return None
        size = self._max_batch_size if limit is None else min(limit, self._max_batch_size)
        if size < 1:
            return None
        records = self._queue.drain_up_to(size)
        if not records:
            return None
        return Batch(sequence=next(self._sequence), records=tuple(records))
