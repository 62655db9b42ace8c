"""Queue-backed continuation trigger.

Instead of re-invoking the handler directly, a continuation is enqueued as
a new unit of work; a worker (see ``adapters.inbound.continuation_worker``)
drains the queue and runs the next invocation.

Usage:
    trigger = QueueContinuationTrigger(maxsize=1000)
    service = ChecksumService(store, trigger)
    ...
    event = trigger.get(timeout=1.0)
"""

from __future__ import annotations

import queue

from object_checksum.domain.value_objects import (
    ACCEPTED_STATUS,
    InvocationEvent,
    TriggerResult,
)


QUEUE_FULL_STATUS = 429
CLOSED_STATUS = 503


class QueueContinuationTrigger:
    """In-process implementation of ContinuationTriggerPort."""

    def __init__(self, maxsize: int = 0) -> None:
        """Initialize the trigger.

        Args:
            maxsize: Maximum number of pending continuations (0 = unbounded).
        """
        self._queue: queue.Queue[InvocationEvent] = queue.Queue(maxsize=maxsize)
        self._closed = False

    def trigger(self, event: InvocationEvent) -> TriggerResult:
        """Enqueue an equivalent event; never blocks."""
        if self._closed:
            return TriggerResult(status_code=CLOSED_STATUS, error="Trigger closed")

        continuation = InvocationEvent.from_payload(event.to_payload())
        try:
            self._queue.put_nowait(continuation)
        except queue.Full:
            return TriggerResult(status_code=QUEUE_FULL_STATUS, error="Continuation queue full")
        return TriggerResult(status_code=ACCEPTED_STATUS)

    def get(self, timeout: float | None = None) -> InvocationEvent | None:
        """Take the next pending continuation, or None on timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    def close(self) -> None:
        """Reject further continuations."""
        self._closed = True

    @property
    def pending(self) -> int:
        return self._queue.qsize()
