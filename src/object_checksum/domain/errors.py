"""Error hierarchy for checksum computation.

Errors are grouped by how the hosting platform should react to them:

- ConfigurationError: fatal at startup, never retried.
- CorruptStateError: fatal for one object, requires manual intervention.
- ChecksumIOError: the invocation failed before any metadata was written,
  so retrying the same chunk is safe.

Continuation failures have no error type; the orchestrator logs them and
carries on.
"""

from __future__ import annotations


class ChecksumError(Exception):
    """Base class for all checksum errors."""


class ConfigurationError(ChecksumError):
    """Invalid or unsupported configuration value."""


class CorruptStateError(ChecksumError):
    """Persisted checksum state cannot be decoded or is inconsistent."""


class DigestFinalizedError(ChecksumError):
    """A digest was used after it had been finalized."""


class ChecksumIOError(ChecksumError, OSError):
    """Reading object content failed."""


class TruncatedStreamError(ChecksumIOError):
    """The content stream ended before the expected number of bytes."""

    def __init__(self, expected: int, missing: int) -> None:
        super().__init__(
            f"Could not read all data - expected {expected} bytes, missing {missing}"
        )
        self.expected = expected
        self.missing = missing


class ObjectNotFoundError(ChecksumError):
    """The object referenced by an event does not exist."""

    def __init__(self, bucket: str, key: str) -> None:
        super().__init__(f"Object not found: {bucket}/{key}")
        self.bucket = bucket
        self.key = key


class InvalidEventError(ChecksumError, ValueError):
    """An invocation payload does not reference an object."""
