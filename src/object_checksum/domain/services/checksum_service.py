"""Checksum orchestrator - one invocation of the resumable hashing job.

An object larger than the part size is hashed over several invocations.
Between invocations the exported digest state and the index of the last
hashed byte live in the object's own user metadata:

    FRESH      no partial state; hashing starts at byte 0
    RESUMING   partial state present; hashing resumes at progress + 1
    CONTINUING the range stops short of the last byte; state is persisted
               and a continuation is scheduled
    FINALIZING the range reaches the last byte; the final hash replaces
               the partial state and no continuation is scheduled

Failure Semantics:
    Nothing is written before the range has been hashed completely, so a
    read failure leaves metadata untouched and the same chunk can be
    retried. Continuation failures are logged and swallowed because this
    invocation's progress is already persisted.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog
from opentelemetry import trace

from object_checksum.domain.errors import (
    ChecksumError,
    ChecksumIOError,
    CorruptStateError,
)
from object_checksum.domain.services.chunk_planner import ChunkPlanner
from object_checksum.domain.services.digest_engine import BlockDigest, create_digest
from object_checksum.domain.services.stream_hasher import StreamHasher
from object_checksum.domain.value_objects import (
    ChecksumOptions,
    ChecksumOutcome,
    ChecksumResult,
    ChecksumState,
    ChunkPlan,
    InvocationEvent,
    ObjectMetadata,
)
from object_checksum.infrastructure.logging import get_logger
from object_checksum.ports.outbound import ContinuationTriggerPort, ObjectStorePort

if TYPE_CHECKING:
    from object_checksum.infrastructure.metrics import ChecksumMetrics


logger = get_logger(__name__)
tracer = trace.get_tracer(__name__)


class ChecksumService:
    """Computes an object's checksum across as many invocations as needed.

    Attributes:
        options: Part size, buffer size, algorithm and metadata key names.
    """

    def __init__(
        self,
        store: ObjectStorePort,
        trigger: ContinuationTriggerPort,
        options: ChecksumOptions | None = None,
        metrics: "ChecksumMetrics | None" = None,
    ) -> None:
        """Initialize the service.

        Args:
            store: Object store adapter.
            trigger: Continuation trigger adapter.
            options: Checksum options (defaults: 5GB parts, 10MB buffer, SHA256).
            metrics: Optional Prometheus metrics.

        Raises:
            ConfigurationError: If the options are invalid.
        """
        self.options = options or ChecksumOptions()
        self._store = store
        self._trigger = trigger
        self._metrics = metrics
        self._planner = ChunkPlanner(self.options.part_size)
        self._hasher = StreamHasher(self.options.buffer_size)
        # Fail on unsupported algorithms at construction, not mid-run.
        create_digest(self.options.algorithm)

    def handle(self, event: InvocationEvent) -> str:
        """Run one invocation and return the hex digest, or "" if not final."""
        return self.process(event).digest

    def process(self, event: InvocationEvent) -> ChecksumResult:
        """Run one invocation of the state machine.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            CorruptStateError: If the persisted state cannot be used.
            ChecksumIOError: If reading the planned range fails.
        """
        log = logger.bind(bucket=event.bucket, key=event.key)
        log.info("checksum_event_received", event_name=event.event_name)

        with tracer.start_as_current_span("checksum.process") as span:
            span.set_attribute("checksum.bucket", event.bucket)
            span.set_attribute("checksum.key", event.key)
            span.set_attribute("checksum.algorithm", self.options.algorithm.value)
            try:
                result = self._process(event, log, span)
            except ChecksumError as e:
                span.record_exception(e)
                if self._metrics is not None:
                    self._metrics.errors.labels(error_type=type(e).__name__).inc()
                raise

        if self._metrics is not None:
            self._metrics.invocations.labels(outcome=result.outcome.value).inc()
        return result

    def _process(
        self,
        event: InvocationEvent,
        log: structlog.stdlib.BoundLogger,
        span: trace.Span,
    ) -> ChecksumResult:
        keys = self.options.metadata_keys
        metadata = self._store.get_metadata(event.bucket, event.key)
        content_length = metadata.content_length

        if content_length < 1:
            log.info("checksum_skipped_empty_object", content_length=content_length)
            return ChecksumResult(outcome=ChecksumOutcome.SKIPPED)

        state = ChecksumState.from_metadata(metadata.user_metadata, keys)

        if state.is_complete and not self.options.rehash_completed:
            log.info("checksum_already_complete", checksum=state.final_hash)
            return ChecksumResult(outcome=ChecksumOutcome.ALREADY_COMPLETE)

        progress = state.progress if content_length > self._planner.part_size else None
        plan = self._planner.plan(content_length, progress)

        span.set_attribute("checksum.range_start", plan.byte_range.start)
        span.set_attribute("checksum.range_end", plan.byte_range.end)
        if not plan.single_shot:
            log.info("checksum_range_planned", start=plan.byte_range.start, end=plan.byte_range.end)

        digest = self._open_digest(state, plan)
        self._hash_range(event, plan, digest, log)

        if plan.finalize:
            return self._finalize(event, metadata, digest, plan, log)
        return self._checkpoint(event, metadata, digest, plan, log)

    def _open_digest(self, state: ChecksumState, plan: ChunkPlan) -> BlockDigest:
        if plan.single_shot or not state.is_resuming:
            return create_digest(self.options.algorithm)
        try:
            digest = create_digest(self.options.algorithm, state.partial_hash)
        except CorruptStateError as e:
            raise CorruptStateError(
                f"The value of the '{self.options.metadata_keys.partial_hash}' "
                f"metadata is not a valid {self.options.algorithm.value} state: {e}"
            ) from e
        if digest.byte_count != plan.byte_range.start:
            raise CorruptStateError(
                f"Partial hash covers {digest.byte_count} bytes but progress "
                f"marker resumes at byte {plan.byte_range.start}"
            )
        return digest

    def _hash_range(
        self,
        event: InvocationEvent,
        plan: ChunkPlan,
        digest: BlockDigest,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        byte_range = None if plan.single_shot else plan.byte_range
        started = time.perf_counter()
        with self._store.get_content(event.bucket, event.key, byte_range) as content:
            if content.length != plan.byte_range.length:
                raise ChecksumIOError(
                    f"Requested range {plan.byte_range} but the store returned "
                    f"{content.length} bytes"
                )
            hashed = self._hasher.hash_stream(content.stream, digest, content.length)
        elapsed = time.perf_counter() - started

        log.info("checksum_bytes_hashed", bytes=hashed, seconds=round(elapsed, 3))
        if self._metrics is not None:
            algorithm = self.options.algorithm.value
            self._metrics.bytes_hashed.labels(algorithm=algorithm).inc(hashed)
            self._metrics.chunk_duration.labels(algorithm=algorithm).observe(elapsed)

    def _finalize(
        self,
        event: InvocationEvent,
        metadata: ObjectMetadata,
        digest: BlockDigest,
        plan: ChunkPlan,
        log: structlog.stdlib.BoundLogger,
    ) -> ChecksumResult:
        keys = self.options.metadata_keys
        checksum = digest.hexdigest()

        log.info(
            "checksum_computed",
            content_type=metadata.content_type,
            content_length=metadata.content_length,
            algorithm=self.options.algorithm.value,
            checksum=checksum,
        )

        updated = metadata.with_user_metadata(
            updates={keys.final_hash: checksum},
            removals=(keys.partial_hash, keys.progress),
        )
        self._replace_metadata(event, updated)
        log.info("checksum_metadata_updated", state="final")

        return ChecksumResult(
            outcome=ChecksumOutcome.COMPLETED,
            digest=checksum,
            byte_range=plan.byte_range,
        )

    def _checkpoint(
        self,
        event: InvocationEvent,
        metadata: ObjectMetadata,
        digest: BlockDigest,
        plan: ChunkPlan,
        log: structlog.stdlib.BoundLogger,
    ) -> ChecksumResult:
        keys = self.options.metadata_keys
        updated = metadata.with_user_metadata(
            updates={
                keys.partial_hash: digest.export_state().hex(),
                keys.progress: str(plan.byte_range.end),
            },
            removals=(keys.final_hash,),
        )
        self._replace_metadata(event, updated)
        log.info("checksum_metadata_updated", state="partial", progress=plan.byte_range.end)

        accepted = self._continue(event, log)
        return ChecksumResult(
            outcome=ChecksumOutcome.IN_PROGRESS,
            byte_range=plan.byte_range,
            continuation_accepted=accepted,
        )

    def _replace_metadata(self, event: InvocationEvent, metadata: ObjectMetadata) -> None:
        access_policy = self._store.get_access_policy(event.bucket, event.key)
        self._store.replace_metadata(event.bucket, event.key, metadata, access_policy)

    def _continue(self, event: InvocationEvent, log: structlog.stdlib.BoundLogger) -> bool:
        """Schedule the next invocation; never raises."""
        try:
            result = self._trigger.trigger(event)
        except Exception as e:
            log.error("checksum_continuation_failed", error=str(e), exc_info=True)
            self._record_continuation("error")
            return False

        if not result.accepted:
            log.error(
                "checksum_continuation_rejected",
                status_code=result.status_code,
                error=result.error,
            )
            self._record_continuation("rejected")
            return False

        log.info("checksum_continuation_scheduled")
        self._record_continuation("accepted")
        return True

    def _record_continuation(self, result: str) -> None:
        if self._metrics is not None:
            self._metrics.continuations.labels(result=result).inc()
