"""Unit tests for the checksum orchestrator."""

import hashlib

import pytest

from object_checksum.domain.errors import (
    ChecksumIOError,
    ConfigurationError,
    CorruptStateError,
    ObjectNotFoundError,
)
from object_checksum.domain.services import ChecksumService, Sha256Digest
from object_checksum.domain.value_objects import (
    AccessPolicy,
    ByteRange,
    ChecksumOptions,
    ChecksumOutcome,
    DigestAlgorithm,
    Grant,
    InvocationEvent,
    ObjectContent,
    TriggerResult,
)


BUCKET = "bucket"
KEY = "big/object.bin"
EVENT = InvocationEvent(bucket=BUCKET, key=KEY)
PARTIAL_KEYS = {"partial-hash", "hash-progress"}


class RecordingTrigger:
    """Continuation trigger returning a fixed response."""

    def __init__(self, result: TriggerResult | None = None, error: Exception | None = None):
        self.result = result or TriggerResult(202)
        self.error = error
        self.events: list[InvocationEvent] = []

    def trigger(self, event: InvocationEvent) -> TriggerResult:
        self.events.append(event)
        if self.error is not None:
            raise self.error
        return self.result


def metric_value(metrics, name: str, **labels) -> float:
    value = metrics.registry.get_sample_value(name, labels)
    return value or 0.0


@pytest.mark.unit
class TestSingleShot:
    """Objects no larger than one part."""

    def test_empty_object_is_skipped(self, store, make_service):
        """Zero-length objects are skipped without a write."""
        store.put_object(BUCKET, KEY, b"")
        result = make_service().process(EVENT)

        assert result.outcome is ChecksumOutcome.SKIPPED
        assert result.digest == ""
        assert store.metadata_writes(BUCKET, KEY) == []

    def test_small_object_hashed_in_one_invocation(self, store, trigger, make_service, sample_data):
        """An object of at most one part is finalized immediately."""
        store.put_object(BUCKET, KEY, sample_data[:100], user_metadata={"owner": "team-a"})
        digest = make_service(part_size=100).handle(EVENT)

        assert digest == hashlib.sha256(sample_data[:100]).hexdigest()
        metadata = store.get_metadata(BUCKET, KEY)
        assert metadata.user_metadata == {"owner": "team-a", "sha256": digest}
        assert trigger.pending == 0

    def test_md5(self, store, make_service, sample_data):
        """MD5 results are stored under the md5 key."""
        store.put_object(BUCKET, KEY, sample_data)
        digest = make_service(part_size=10_000, algorithm=DigestAlgorithm.MD5).handle(EVENT)

        assert digest == hashlib.md5(sample_data).hexdigest()
        assert store.get_metadata(BUCKET, KEY).user_metadata == {"md5": digest}

    def test_stale_partial_state_is_dropped(self, store, make_service, sample_data):
        """If the part size grew past the object size, start over in one shot."""
        digest = Sha256Digest()
        digest.update(b"unrelated")
        store.put_object(
            BUCKET,
            KEY,
            sample_data[:50],
            user_metadata={"partial-hash": digest.export_state().hex(), "hash-progress": "8"},
        )
        result = make_service(part_size=100).process(EVENT)

        assert result.digest == hashlib.sha256(sample_data[:50]).hexdigest()
        assert set(store.get_metadata(BUCKET, KEY).user_metadata) == {"sha256"}

    def test_content_type_and_access_policy_are_preserved(self, store, make_service):
        """Rewriting metadata keeps content type and grants."""
        policy = AccessPolicy(owner="alice", grants=(Grant("bob", "READ"),))
        store.put_object(BUCKET, KEY, b"hello", content_type="text/plain", access_policy=policy)
        make_service().handle(EVENT)

        assert store.get_metadata(BUCKET, KEY).content_type == "text/plain"
        assert store.get_access_policy(BUCKET, KEY) == policy


@pytest.mark.unit
class TestMultiPart:
    """Objects spanning several invocations."""

    def test_first_invocation_persists_partial_state(self, store, trigger, make_service, sample_data):
        """The first part stores digest state and progress."""
        store.put_object(BUCKET, KEY, sample_data)
        result = make_service(part_size=300).process(EVENT)

        assert result.outcome is ChecksumOutcome.IN_PROGRESS
        assert result.digest == ""
        assert result.byte_range == ByteRange(0, 299)
        assert result.continuation_accepted

        user_metadata = store.get_metadata(BUCKET, KEY).user_metadata
        assert set(user_metadata) == PARTIAL_KEYS
        assert user_metadata["hash-progress"] == "299"
        resumed = Sha256Digest.from_state(bytes.fromhex(user_metadata["partial-hash"]))
        assert resumed.byte_count == 300
        assert trigger.pending == 1

    def test_invocations_until_final(self, store, trigger, make_service, sample_data):
        """ceil(1000/300) = 4 invocations, the last one finalizes."""
        store.put_object(BUCKET, KEY, sample_data, user_metadata={"owner": "team-a"})
        service = make_service(part_size=300)

        results = [service.process(EVENT)]
        while results[-1].outcome is ChecksumOutcome.IN_PROGRESS:
            continuation = trigger.get(timeout=0)
            results.append(service.process(continuation))

        assert [r.byte_range for r in results] == [
            ByteRange(0, 299),
            ByteRange(300, 599),
            ByteRange(600, 899),
            ByteRange(900, 999),
        ]
        assert results[-1].outcome is ChecksumOutcome.COMPLETED
        assert results[-1].digest == hashlib.sha256(sample_data).hexdigest()
        assert store.get_metadata(BUCKET, KEY).user_metadata == {
            "owner": "team-a",
            "sha256": results[-1].digest,
        }
        assert trigger.pending == 0

        writes = store.metadata_writes(BUCKET, KEY)
        for write in writes[:-1]:
            assert PARTIAL_KEYS <= set(write.user_metadata)
            assert "sha256" not in write.user_metadata
        assert not PARTIAL_KEYS & set(writes[-1].user_metadata)

    def test_custom_metadata_keys(self, store, trigger, metrics, sample_data):
        """Configured key names are used for all three keys."""
        from object_checksum.domain.value_objects import MetadataKeys

        options = ChecksumOptions(
            part_size=600,
            buffer_size=64,
            metadata_keys=MetadataKeys("checksum", "cs-state", "cs-offset"),
        )
        service = ChecksumService(store, trigger, options=options, metrics=metrics)
        store.put_object(BUCKET, KEY, sample_data)

        service.process(EVENT)
        assert set(store.get_metadata(BUCKET, KEY).user_metadata) == {"cs-state", "cs-offset"}
        service.process(trigger.get(timeout=0))
        assert set(store.get_metadata(BUCKET, KEY).user_metadata) == {"checksum"}

    def test_continuation_carries_original_payload(self, store, make_service, sample_data):
        """The continuation reuses the received payload."""
        trigger = RecordingTrigger()
        payload = {"bucket": BUCKET, "key": KEY, "correlation_id": "c-42"}
        store.put_object(BUCKET, KEY, sample_data)
        service = ChecksumService(
            store, trigger, options=ChecksumOptions(part_size=300, buffer_size=64)
        )

        service.process(InvocationEvent.from_payload(payload))

        assert trigger.events[0].to_payload() == payload


@pytest.mark.unit
class TestCompletedObjects:
    """Objects that already carry a final hash."""

    def test_already_complete_is_not_rehashed(self, store, make_service):
        """A stored final hash short-circuits the invocation."""
        store.put_object(BUCKET, KEY, b"data", user_metadata={"sha256": "cafe"})
        result = make_service().process(EVENT)

        assert result.outcome is ChecksumOutcome.ALREADY_COMPLETE
        assert result.digest == ""
        assert store.metadata_writes(BUCKET, KEY) == []

    def test_rehash_completed(self, store, trigger, make_service, sample_data):
        """rehash_completed recomputes a stored hash."""
        store.put_object(BUCKET, KEY, sample_data, user_metadata={"sha256": "stale"})
        service = make_service(part_size=600, rehash_completed=True)

        service.process(EVENT)
        # partial state replaces the stale final hash
        assert set(store.get_metadata(BUCKET, KEY).user_metadata) == PARTIAL_KEYS

        result = service.process(trigger.get(timeout=0))
        assert result.digest == hashlib.sha256(sample_data).hexdigest()


@pytest.mark.unit
class TestFailures:
    """Failure semantics."""

    def test_missing_object(self, make_service):
        """Missing objects propagate ObjectNotFoundError."""
        with pytest.raises(ObjectNotFoundError):
            make_service().process(EVENT)

    def test_corrupt_partial_hash_is_fatal_without_mutation(self, store, metrics, make_service, sample_data):
        """Non-hex state is fatal and nothing is written."""
        store.put_object(
            BUCKET,
            KEY,
            sample_data,
            user_metadata={"partial-hash": "zz-not-hex", "hash-progress": "299"},
        )
        with pytest.raises(CorruptStateError):
            make_service(part_size=300).process(EVENT)

        assert store.metadata_writes(BUCKET, KEY) == []
        assert metric_value(
            metrics, "object_checksum_errors_total", error_type="CorruptStateError"
        ) == 1

    def test_undecodable_digest_state(self, store, make_service, sample_data):
        """Hex that is not a digest state is corrupt."""
        store.put_object(
            BUCKET,
            KEY,
            sample_data,
            user_metadata={"partial-hash": "deadbeef", "hash-progress": "299"},
        )
        with pytest.raises(CorruptStateError, match="not a valid SHA256 state"):
            make_service(part_size=300).process(EVENT)
        assert store.metadata_writes(BUCKET, KEY) == []

    def test_progress_disagrees_with_digest_state(self, store, make_service, sample_data):
        """Progress must match the bytes covered by the state."""
        digest = Sha256Digest()
        digest.update(sample_data[:300])
        store.put_object(
            BUCKET,
            KEY,
            sample_data,
            user_metadata={"partial-hash": digest.export_state().hex(), "hash-progress": "599"},
        )
        with pytest.raises(CorruptStateError, match="covers 300 bytes"):
            make_service(part_size=300).process(EVENT)

    def test_progress_past_end_of_object(self, store, make_service, sample_data):
        """Progress at the last byte cannot be resumed."""
        store.put_object(
            BUCKET,
            KEY,
            sample_data,
            user_metadata={"partial-hash": "00", "hash-progress": "999"},
        )
        with pytest.raises(CorruptStateError, match="past the last byte"):
            make_service(part_size=300).process(EVENT)

    def test_read_failure_leaves_metadata_untouched(self, store, make_service, sample_data, monkeypatch):
        """A short read persists nothing and the chunk can be retried."""
        store.put_object(BUCKET, KEY, sample_data)
        service = make_service(part_size=300)
        service.process(EVENT)
        before = store.get_metadata(BUCKET, KEY)

        original = store.get_content

        def short_content(bucket, key, byte_range=None):
            content = original(bucket, key, byte_range)
            content.stream.truncate(10)
            return ObjectContent(stream=content.stream, length=content.length)

        monkeypatch.setattr(store, "get_content", short_content)
        with pytest.raises(ChecksumIOError):
            service.process(EVENT)
        assert store.get_metadata(BUCKET, KEY) == before

        # retrying the same chunk succeeds once the store recovers
        monkeypatch.setattr(store, "get_content", original)
        result = service.process(EVENT)
        assert result.byte_range == ByteRange(300, 599)

    def test_store_returns_wrong_range_length(self, store, make_service, sample_data, monkeypatch):
        """A range of the wrong length is an I/O error."""
        store.put_object(BUCKET, KEY, sample_data)
        original = store.get_content
        monkeypatch.setattr(
            store,
            "get_content",
            lambda bucket, key, byte_range=None: original(bucket, key, ByteRange(0, 9)),
        )
        with pytest.raises(ChecksumIOError, match="returned 10 bytes"):
            make_service(part_size=300).process(EVENT)
        assert store.metadata_writes(BUCKET, KEY) == []

    def test_rejected_continuation_is_swallowed(self, store, metrics, sample_data):
        """A non-202 trigger response does not fail the invocation."""
        trigger = RecordingTrigger(result=TriggerResult(500, "Throttled"))
        store.put_object(BUCKET, KEY, sample_data)
        service = ChecksumService(
            store, trigger, options=ChecksumOptions(part_size=300, buffer_size=64), metrics=metrics
        )

        result = service.process(EVENT)

        assert result.outcome is ChecksumOutcome.IN_PROGRESS
        assert not result.continuation_accepted
        assert store.get_metadata(BUCKET, KEY).user_metadata["hash-progress"] == "299"
        assert metric_value(metrics, "object_checksum_continuations_total", result="rejected") == 1

    def test_continuation_exception_is_swallowed(self, store, metrics, sample_data):
        """A trigger exception does not fail the invocation."""
        trigger = RecordingTrigger(error=ConnectionError("platform unreachable"))
        store.put_object(BUCKET, KEY, sample_data)
        service = ChecksumService(
            store, trigger, options=ChecksumOptions(part_size=300, buffer_size=64), metrics=metrics
        )

        result = service.process(EVENT)

        assert not result.continuation_accepted
        assert store.get_metadata(BUCKET, KEY).user_metadata["hash-progress"] == "299"
        assert metric_value(metrics, "object_checksum_continuations_total", result="error") == 1

    def test_invalid_options_fail_at_construction(self, store, trigger):
        """Invalid options are rejected before any work."""
        with pytest.raises(ConfigurationError):
            ChecksumService(store, trigger, options=ChecksumOptions(part_size=0))


@pytest.mark.unit
class TestMetrics:
    """Prometheus instrumentation of invocations."""

    def test_counts_outcomes_and_bytes(self, store, metrics, make_service, sample_data):
        """Outcome and byte counters are updated."""
        store.put_object(BUCKET, KEY, sample_data)
        make_service(part_size=10_000).process(EVENT)

        assert metric_value(metrics, "object_checksum_invocations_total", outcome="completed") == 1
        assert metric_value(
            metrics, "object_checksum_bytes_hashed_total", algorithm="SHA256"
        ) == len(sample_data)
