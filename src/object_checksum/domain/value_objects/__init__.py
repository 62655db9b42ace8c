"""Value objects for checksum computation."""

from object_checksum.domain.value_objects.checksum import (
    ByteRange,
    ChecksumOptions,
    ChecksumOutcome,
    ChecksumResult,
    ChecksumState,
    ChunkPlan,
    DigestAlgorithm,
    MetadataKeys,
)
from object_checksum.domain.value_objects.objects import (
    ACCEPTED_STATUS,
    AccessPolicy,
    Grant,
    InvocationEvent,
    ObjectContent,
    ObjectMetadata,
    TriggerResult,
)

__all__ = [
    "ACCEPTED_STATUS",
    "AccessPolicy",
    "ByteRange",
    "ChecksumOptions",
    "ChecksumOutcome",
    "ChecksumResult",
    "ChecksumState",
    "ChunkPlan",
    "DigestAlgorithm",
    "Grant",
    "InvocationEvent",
    "MetadataKeys",
    "ObjectContent",
    "ObjectMetadata",
    "TriggerResult",
]
