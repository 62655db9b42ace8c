"""Background worker that drives queued continuations.

The worker plays the role of the invocation platform for continuations
scheduled through :class:`QueueContinuationTrigger`: each queued event is
one new invocation of the checksum service. I/O failures are retried,
since nothing was persisted for the failed chunk; other errors are logged
and the event is dropped.
"""

from __future__ import annotations

import threading

from object_checksum.adapters.outbound.queue_continuation import QueueContinuationTrigger
from object_checksum.domain.errors import ChecksumError, ChecksumIOError
from object_checksum.domain.value_objects import ChecksumResult, InvocationEvent
from object_checksum.infrastructure.logging import get_logger
from object_checksum.ports.inbound import ChecksumServicePort


logger = get_logger(__name__)


class ContinuationWorker:
    """Runs queued continuations against the checksum service.

    Usage:
        worker = ContinuationWorker(service, trigger)
        worker.start()
        ...
        worker.stop()
    """

    def __init__(
        self,
        service: ChecksumServicePort,
        trigger: QueueContinuationTrigger,
        max_attempts: int = 3,
        poll_interval: float = 0.5,
    ) -> None:
        """Initialize the worker.

        Args:
            service: Service invoked for each continuation.
            trigger: Queue the continuations are read from.
            max_attempts: Attempts per event for retryable I/O errors.
            poll_interval: Seconds to wait for an event before re-checking stop.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self._service = service
        self._trigger = trigger
        self._max_attempts = max_attempts
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._draining = False
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start draining the queue in a daemon thread.

        If a previous thread is still finishing an event after a timed-out
        stop, it keeps draining and no second thread is started.
        """
        with self._lock:
            self._stop.clear()
            if self._draining:
                return
            self._draining = True
            self._thread = threading.Thread(
                target=self._run, name="checksum-continuation-worker", daemon=True
            )
            self._thread.start()
        logger.info("continuation_worker_started")

    def stop(self, timeout: float | None = 5.0) -> bool:
        """Signal the worker to stop and wait for the current event.

        Returns:
            False if the thread was still busy when the timeout expired.
        """
        self._stop.set()
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("continuation_worker_stop_timeout", timeout=timeout)
            return False
        self._thread = None
        logger.info("continuation_worker_stopped")
        return True

    def run_until_idle(self) -> list[ChecksumResult]:
        """Process continuations synchronously until the queue is empty."""
        results = []
        while True:
            event = self._trigger.get(timeout=0)
            if event is None:
                return results
            try:
                result = self.run_once(event)
            finally:
                self._trigger.task_done()
            if result is not None:
                results.append(result)

    def run_once(self, event: InvocationEvent) -> ChecksumResult | None:
        """Invoke the service for one event, retrying I/O failures.

        Returns:
            The result, or None if the event failed permanently.
        """
        log = logger.bind(bucket=event.bucket, key=event.key)
        for attempt in range(1, self._max_attempts + 1):
            try:
                return self._service.process(event)
            except ChecksumIOError as e:
                log.warning(
                    "continuation_io_error",
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    error=str(e),
                )
            except ChecksumError as e:
                log.error("continuation_failed", error_type=type(e).__name__, error=str(e))
                return None
        log.error("continuation_retries_exhausted", max_attempts=self._max_attempts)
        return None

    def _run(self) -> None:
        while True:
            with self._lock:
                if self._stop.is_set():
                    self._draining = False
                    return
            event = self._trigger.get(timeout=self._poll_interval)
            if event is None:
                continue
            try:
                self.run_once(event)
            except Exception:
                logger.exception("continuation_worker_unexpected_error")
            finally:
                self._trigger.task_done()
