"""End-to-end tests for resumable checksum jobs."""

import hashlib
import math
import os

import pytest
from prometheus_client import CollectorRegistry

from object_checksum.adapters.outbound import (
    FileObjectStore,
    InMemoryObjectStore,
    QueueContinuationTrigger,
)
from object_checksum.adapters.inbound import ContinuationWorker
from object_checksum.domain.services import ChecksumService
from object_checksum.domain.value_objects import (
    ChecksumOptions,
    ChecksumOutcome,
    DigestAlgorithm,
    InvocationEvent,
)
from object_checksum.infrastructure.metrics import ChecksumMetrics


# Scaled-down version of a 12 MB object hashed in 5 MB parts.
OBJECT_SIZE = 12 * 1024
PART_SIZE = 5 * 1024
BUFFER_SIZE = 1024


@pytest.fixture(params=["memory", "filesystem"])
def object_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryObjectStore()
    return FileObjectStore(tmp_path / "objects")


@pytest.fixture
def payload() -> bytes:
    return os.urandom(OBJECT_SIZE)


def run_job(store, algorithm=DigestAlgorithm.SHA256):
    trigger = QueueContinuationTrigger()
    options = ChecksumOptions(part_size=PART_SIZE, buffer_size=BUFFER_SIZE, algorithm=algorithm)
    service = ChecksumService(
        store, trigger, options=options, metrics=ChecksumMetrics(CollectorRegistry())
    )
    worker = ContinuationWorker(service, trigger)

    first = service.process(InvocationEvent(bucket="bucket", key="big.bin"))
    return [first] + worker.run_until_idle()


@pytest.mark.integration
class TestResumableChecksum:
    """A job spans several invocations and ends with a single hash key."""

    def test_sha256_job(self, object_store, payload):
        """Three invocations produce the SHA-256 of the whole object."""
        object_store.put_object("bucket", "big.bin", payload, user_metadata={"owner": "ops"})

        results = run_job(object_store)

        assert len(results) == math.ceil(OBJECT_SIZE / PART_SIZE)
        assert [r.outcome for r in results] == [
            ChecksumOutcome.IN_PROGRESS,
            ChecksumOutcome.IN_PROGRESS,
            ChecksumOutcome.COMPLETED,
        ]
        assert [(r.byte_range.start, r.byte_range.end) for r in results] == [
            (0, 5119),
            (5120, 10239),
            (10240, 12287),
        ]

        expected = hashlib.sha256(payload).hexdigest()
        assert results[-1].digest == expected
        assert len(expected) == 64
        metadata = object_store.get_metadata("bucket", "big.bin")
        assert metadata.user_metadata == {"owner": "ops", "sha256": expected}

    def test_md5_job(self, object_store, payload):
        """The same job with MD5."""
        object_store.put_object("bucket", "big.bin", payload)

        results = run_job(object_store, DigestAlgorithm.MD5)

        expected = hashlib.md5(payload).hexdigest()
        assert results[-1].digest == expected
        assert object_store.get_metadata("bucket", "big.bin").user_metadata == {"md5": expected}

    def test_exact_multiple_of_part_size(self, object_store):
        """Objects that are a whole number of parts."""
        data = os.urandom(2 * PART_SIZE)
        object_store.put_object("bucket", "big.bin", data)

        results = run_job(object_store)

        assert len(results) == 2
        assert results[-1].digest == hashlib.sha256(data).hexdigest()

    def test_completed_job_is_not_repeated(self, object_store, payload):
        """A finished object is not hashed again."""
        object_store.put_object("bucket", "big.bin", payload)
        run_job(object_store)

        results = run_job(object_store)

        assert [r.outcome for r in results] == [ChecksumOutcome.ALREADY_COMPLETE]


@pytest.mark.integration
class TestContainerJob:
    """Drive a job through the configured container."""

    def test_container_end_to_end(self, container, sample_data):
        """Notification to final metadata through the container."""
        container.store.put_object("bucket", "data.bin", sample_data)
        event = InvocationEvent.from_payload(
            {
                "Records": [
                    {
                        "eventName": "ObjectCreated:Put",
                        "s3": {"bucket": {"name": "bucket"}, "object": {"key": "data.bin"}},
                    }
                ]
            }
        )

        first = container.service.process(event)
        rest = container.worker.run_until_idle()

        # 1000 bytes in 256-byte parts
        assert len(rest) + 1 == 4
        assert first.outcome is ChecksumOutcome.IN_PROGRESS
        assert rest[-1].digest == hashlib.sha256(sample_data).hexdigest()
        assert container.store.get_metadata("bucket", "data.bin").user_metadata == {
            "sha256": rest[-1].digest
        }
