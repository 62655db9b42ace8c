"""Feeds a byte stream into a digest with bounded memory."""

from __future__ import annotations

from typing import BinaryIO

from object_checksum.domain.errors import (
    ChecksumIOError,
    ConfigurationError,
    TruncatedStreamError,
)
from object_checksum.domain.services.digest_engine import BlockDigest


class StreamHasher:
    """Reads a stream in fixed-size buffers and updates a digest.

    Memory use is bounded by ``buffer_size`` regardless of object size.
    """

    def __init__(self, buffer_size: int = 10 * 1024 * 1024) -> None:
        if buffer_size <= 0:
            raise ConfigurationError(f"buffer_size must be positive, got {buffer_size}")
        self._buffer_size = buffer_size

    @property
    def buffer_size(self) -> int:
        return self._buffer_size

    def hash_stream(self, stream: BinaryIO, digest: BlockDigest, expected_length: int) -> int:
        """Hash exactly ``expected_length`` bytes from a stream.

        Args:
            stream: Readable binary stream.
            digest: Digest to update.
            expected_length: Number of bytes the stream declares.

        Returns:
            Number of bytes hashed.

        Raises:
            TruncatedStreamError: If the stream ends early.
            ChecksumIOError: If reading from the stream fails.
        """
        remaining = expected_length
        while remaining > 0:
            try:
                data = stream.read(min(self._buffer_size, remaining))
            except ChecksumIOError:
                raise
            except OSError as e:
                raise ChecksumIOError(f"Reading object content failed: {e}") from e
            if not data:
                raise TruncatedStreamError(expected=expected_length, missing=remaining)
            digest.update(data)
            remaining -= len(data)
        return expected_length
