"""In-memory object store adapter.

A simple in-memory implementation of ObjectStorePort for testing
and development purposes. Data is not persisted across restarts.

Usage:
    store = InMemoryObjectStore()
    store.put_object("bucket", "key", b"data", content_type="text/plain")
    metadata = store.get_metadata("bucket", "key")
"""

from __future__ import annotations

import io
import threading
from dataclasses import dataclass, field

from object_checksum.domain.errors import ObjectNotFoundError
from object_checksum.domain.value_objects import (
    AccessPolicy,
    ByteRange,
    ObjectContent,
    ObjectMetadata,
)


@dataclass
class StoredObject:
    """An object held in memory."""

    data: bytes
    metadata: ObjectMetadata
    access_policy: AccessPolicy
    metadata_writes: list[ObjectMetadata] = field(default_factory=list)


class InMemoryObjectStore:
    """In-memory implementation of ObjectStorePort.

    Every metadata replacement is recorded, so tests can assert on the
    exact sequence of writes an invocation performed.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._objects: dict[tuple[str, str], StoredObject] = {}
        self._lock = threading.Lock()

    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        user_metadata: dict[str, str] | None = None,
        access_policy: AccessPolicy | None = None,
    ) -> ObjectMetadata:
        """Store an object, replacing any previous one."""
        metadata = ObjectMetadata(
            content_length=len(data),
            content_type=content_type,
            user_metadata=dict(user_metadata or {}),
        )
        with self._lock:
            self._objects[(bucket, key)] = StoredObject(
                data=bytes(data),
                metadata=metadata,
                access_policy=access_policy or AccessPolicy(owner="owner"),
            )
        return metadata

    def get_object(self, bucket: str, key: str) -> StoredObject:
        """Return the stored object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        with self._lock:
            stored = self._objects.get((bucket, key))
        if stored is None:
            raise ObjectNotFoundError(bucket, key)
        return stored

    def get_metadata(self, bucket: str, key: str) -> ObjectMetadata:
        return self.get_object(bucket, key).metadata

    def get_content(
        self, bucket: str, key: str, byte_range: ByteRange | None = None
    ) -> ObjectContent:
        data = self.get_object(bucket, key).data
        if byte_range is not None:
            data = data[byte_range.start : byte_range.end + 1]
        return ObjectContent(stream=io.BytesIO(data), length=len(data))

    def get_access_policy(self, bucket: str, key: str) -> AccessPolicy:
        return self.get_object(bucket, key).access_policy

    def replace_metadata(
        self,
        bucket: str,
        key: str,
        metadata: ObjectMetadata,
        access_policy: AccessPolicy,
    ) -> None:
        stored = self.get_object(bucket, key)
        with self._lock:
            stored.metadata = ObjectMetadata(
                content_length=len(stored.data),
                content_type=metadata.content_type,
                user_metadata=dict(metadata.user_metadata),
            )
            stored.access_policy = access_policy
            stored.metadata_writes.append(stored.metadata)

    def metadata_writes(self, bucket: str, key: str) -> list[ObjectMetadata]:
        """All metadata written through replace_metadata, oldest first."""
        return list(self.get_object(bucket, key).metadata_writes)
