"""Value objects exchanged with the object store and the invocation platform."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, BinaryIO
from urllib.parse import unquote_plus

from object_checksum.domain.errors import InvalidEventError


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata of a stored object.

    Attributes:
        content_length: Size of the object in bytes.
        content_type: MIME type.
        user_metadata: User-defined key/value pairs.
    """

    content_length: int
    content_type: str = "application/octet-stream"
    user_metadata: dict[str, str] = field(default_factory=dict)

    def with_user_metadata(
        self,
        updates: dict[str, str] | None = None,
        removals: tuple[str, ...] = (),
    ) -> "ObjectMetadata":
        """Return a copy with user metadata keys set and removed."""
        user_metadata = {
            k: v for k, v in self.user_metadata.items() if k not in removals
        }
        user_metadata.update(updates or {})
        return ObjectMetadata(
            content_length=self.content_length,
            content_type=self.content_type,
            user_metadata=user_metadata,
        )


@dataclass(frozen=True)
class Grant:
    """A single access grant."""

    grantee: str
    permission: str


@dataclass(frozen=True)
class AccessPolicy:
    """Access control list of an object."""

    owner: str
    grants: tuple[Grant, ...] = ()


@dataclass
class ObjectContent:
    """An open content stream and the number of bytes it declares.

    Usage:
        with store.get_content(bucket, key, byte_range) as content:
            hasher.hash_stream(content.stream, digest, content.length)
    """

    stream: BinaryIO
    length: int

    def close(self) -> None:
        self.stream.close()

    def __enter__(self) -> "ObjectContent":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


@dataclass(frozen=True)
class InvocationEvent:
    """The object notification that triggered an invocation.

    The original payload is kept verbatim so that a continuation can be
    scheduled with an equivalent event.
    """

    bucket: str
    key: str
    payload: dict[str, Any] = field(default_factory=dict)
    event_name: str = ""

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "InvocationEvent":
        """Build an event from a notification payload.

        Accepts S3-style notifications (``Records[0].s3``) and flat
        ``{"bucket": ..., "key": ...}`` bodies. Keys in S3-style
        notifications are URL-decoded.

        Raises:
            InvalidEventError: If no bucket and key can be found.
        """
        if not isinstance(payload, dict):
            raise InvalidEventError(f"Event payload must be an object, got {type(payload).__name__}")

        records = payload.get("Records")
        if records is not None:
            try:
                record = records[0]
                s3 = record["s3"]
                bucket = s3["bucket"]["name"]
                key = unquote_plus(s3["object"]["key"])
            except (IndexError, KeyError, TypeError) as e:
                raise InvalidEventError(f"Malformed object notification: {e!r}") from e
            event_name = str(record.get("eventName", ""))
        else:
            bucket = payload.get("bucket")
            key = payload.get("key")
            event_name = str(payload.get("event_name", ""))

        if not bucket or not key:
            raise InvalidEventError("Event does not reference a bucket and key")

        return cls(
            bucket=str(bucket),
            key=str(key),
            payload=copy.deepcopy(payload),
            event_name=event_name,
        )

    def to_payload(self) -> dict[str, Any]:
        """Payload for a continuation invocation."""
        if self.payload:
            return copy.deepcopy(self.payload)
        return {"bucket": self.bucket, "key": self.key}


ACCEPTED_STATUS = 202


@dataclass(frozen=True)
class TriggerResult:
    """Response of the invocation platform to a continuation request."""

    status_code: int
    error: str = ""

    @property
    def accepted(self) -> bool:
        return self.status_code == ACCEPTED_STATUS
