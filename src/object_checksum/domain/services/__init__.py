"""Domain services."""

from object_checksum.domain.services.checksum_service import ChecksumService
from object_checksum.domain.services.chunk_planner import ChunkPlanner
from object_checksum.domain.services.digest_engine import (
    BlockDigest,
    Md5Digest,
    Sha256Digest,
    create_digest,
    digest_class,
)
from object_checksum.domain.services.stream_hasher import StreamHasher

__all__ = [
    "BlockDigest",
    "ChecksumService",
    "ChunkPlanner",
    "Md5Digest",
    "Sha256Digest",
    "StreamHasher",
    "create_digest",
    "digest_class",
]
