"""Outbound ports - dependencies on the object store and invocation platform.

The orchestrator only talks to storage and to the invocation platform
through these protocols; adapters provide the concrete clients.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol

from object_checksum.domain.value_objects import (
    AccessPolicy,
    ByteRange,
    InvocationEvent,
    ObjectContent,
    ObjectMetadata,
    TriggerResult,
)


class ObjectStorePort(Protocol):
    """Protocol for object store access.

    Metadata writes are a read-modify-write without a version check. Two
    concurrent invocations for the same object race and the last write
    wins, so callers must keep at most one invocation in flight per object.
    """

    @abstractmethod
    def get_metadata(self, bucket: str, key: str) -> ObjectMetadata:
        """Read object metadata.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    @abstractmethod
    def get_content(
        self, bucket: str, key: str, byte_range: ByteRange | None = None
    ) -> ObjectContent:
        """Open the object content, optionally restricted to a byte range.

        The returned content declares the number of bytes it will yield;
        the caller is responsible for closing it.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            ChecksumIOError: If the content cannot be opened.
        """
        ...

    @abstractmethod
    def get_access_policy(self, bucket: str, key: str) -> AccessPolicy:
        """Read the object's access control list."""
        ...

    @abstractmethod
    def replace_metadata(
        self,
        bucket: str,
        key: str,
        metadata: ObjectMetadata,
        access_policy: AccessPolicy,
    ) -> None:
        """Replace object metadata in place, keeping content unchanged.

        The access policy is re-applied as part of the same operation.
        """
        ...


class ContinuationTriggerPort(Protocol):
    """Protocol for scheduling a follow-up invocation."""

    @abstractmethod
    def trigger(self, event: InvocationEvent) -> TriggerResult:
        """Asynchronously re-invoke the handler with an equivalent event.

        Returns:
            The platform's response; a 202 status means accepted.
        """
        ...


__all__ = ["ContinuationTriggerPort", "ObjectStorePort"]
