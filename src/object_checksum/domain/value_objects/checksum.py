"""Value objects describing checksum computation and its persisted state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from object_checksum.domain.errors import ConfigurationError, CorruptStateError


class DigestAlgorithm(str, Enum):
    """Supported digest algorithms."""

    SHA256 = "SHA256"
    MD5 = "MD5"

    @classmethod
    def parse(cls, value: "str | DigestAlgorithm") -> "DigestAlgorithm":
        """Parse an algorithm name case-insensitively.

        Accepts ``SHA256``, ``sha-256``, ``md5`` and similar spellings.

        Raises:
            ConfigurationError: If the algorithm is not supported.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().upper().replace("-", "").replace("_", "")
        try:
            return cls(normalized)
        except ValueError:
            raise ConfigurationError(f"Not supported: {value}") from None

    @property
    def metadata_key(self) -> str:
        """Default metadata key holding the final hash (e.g. ``sha256``)."""
        return self.value.lower()

    @property
    def hex_length(self) -> int:
        """Length of the hex-encoded digest."""
        return 64 if self is DigestAlgorithm.SHA256 else 32


@dataclass(frozen=True, slots=True)
class ByteRange:
    """Inclusive byte range ``[start, end]`` of an object.

    Example:
        >>> ByteRange(0, 9).length
        10
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"start must be non-negative, got {self.start}")
        if self.end < self.start:
            raise ValueError(f"end ({self.end}) must not precede start ({self.start})")

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def __str__(self) -> str:
        return f"[{self.start}-{self.end}]"


@dataclass(frozen=True, slots=True)
class ChunkPlan:
    """The byte range processed by one invocation.

    Attributes:
        byte_range: Range of the object to hash now.
        finalize: True when the range reaches the last byte of the object.
        single_shot: True when the whole object fits in one part, in which
            case no range request is needed.
    """

    byte_range: ByteRange
    finalize: bool
    single_shot: bool = False


@dataclass(frozen=True, slots=True)
class MetadataKeys:
    """Names of the user metadata keys holding checksum state."""

    final_hash: str
    partial_hash: str = "partial-hash"
    progress: str = "hash-progress"

    def __post_init__(self) -> None:
        names = (self.final_hash, self.partial_hash, self.progress)
        if any(not name for name in names):
            raise ConfigurationError("Metadata key names must not be empty")
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Metadata key names must be distinct: {names}")

    @classmethod
    def for_algorithm(cls, algorithm: DigestAlgorithm) -> "MetadataKeys":
        return cls(final_hash=algorithm.metadata_key)


@dataclass(frozen=True, slots=True)
class ChecksumOptions:
    """Tuning knobs for the checksum orchestrator.

    Attributes:
        part_size: Maximum number of bytes hashed per invocation.
        buffer_size: Size of each read from the content stream.
        algorithm: Digest algorithm.
        metadata_keys: Metadata key names, defaulting to the algorithm's.
        rehash_completed: Recompute objects that already carry a final hash.
    """

    part_size: int = 5 * 1024 * 1024 * 1024
    buffer_size: int = 10 * 1024 * 1024
    algorithm: DigestAlgorithm = DigestAlgorithm.SHA256
    metadata_keys: MetadataKeys | None = None
    rehash_completed: bool = False

    def __post_init__(self) -> None:
        if self.part_size <= 0:
            raise ConfigurationError(f"part_size must be positive, got {self.part_size}")
        if self.buffer_size <= 0:
            raise ConfigurationError(
                f"buffer_size must be positive, got {self.buffer_size}"
            )
        object.__setattr__(self, "algorithm", DigestAlgorithm.parse(self.algorithm))
        if self.metadata_keys is None:
            object.__setattr__(
                self, "metadata_keys", MetadataKeys.for_algorithm(self.algorithm)
            )


@dataclass(frozen=True, slots=True)
class ChecksumState:
    """Checksum progress persisted in an object's user metadata.

    Either the partial pair (``partial_hash`` + ``progress``) or
    ``final_hash`` is present at rest, never both.
    """

    partial_hash: bytes | None = None
    progress: int | None = None
    final_hash: str | None = None

    @property
    def is_resuming(self) -> bool:
        return self.partial_hash is not None

    @property
    def is_complete(self) -> bool:
        return self.final_hash is not None and self.partial_hash is None

    @classmethod
    def from_metadata(
        cls, user_metadata: Mapping[str, str], keys: MetadataKeys
    ) -> "ChecksumState":
        """Decode checksum state from user metadata.

        Raises:
            CorruptStateError: If the partial hash is not hexadecimal, the
                progress marker is not an integer, or only one of the two
                is present.
        """
        partial_hex = (user_metadata.get(keys.partial_hash) or "").strip()
        progress_str = (user_metadata.get(keys.progress) or "").strip()
        final_hash = (user_metadata.get(keys.final_hash) or "").strip() or None

        if bool(partial_hex) != bool(progress_str):
            raise CorruptStateError(
                f"Metadata '{keys.partial_hash}' and '{keys.progress}' must be set "
                f"together (partial-hash present: {bool(partial_hex)}, "
                f"progress present: {bool(progress_str)})"
            )
        if not partial_hex:
            return cls(final_hash=final_hash)

        try:
            partial_hash = bytes.fromhex(partial_hex)
        except ValueError as e:
            raise CorruptStateError(
                f"The value of the '{keys.partial_hash}' metadata ({partial_hex}) "
                f"cannot be decoded as hexadecimal value: {e}"
            ) from e
        try:
            progress = int(progress_str)
        except ValueError as e:
            raise CorruptStateError(
                f"The value of the '{keys.progress}' metadata ({progress_str}) "
                f"is not an integer"
            ) from e
        if progress < 0:
            raise CorruptStateError(
                f"The value of the '{keys.progress}' metadata must be non-negative, "
                f"got {progress}"
            )

        return cls(partial_hash=partial_hash, progress=progress, final_hash=final_hash)


class ChecksumOutcome(str, Enum):
    """Result of a single invocation."""

    SKIPPED = "skipped"
    ALREADY_COMPLETE = "already_complete"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class ChecksumResult:
    """What one invocation did.

    Attributes:
        outcome: Terminal or non-terminal outcome.
        digest: Hex digest when completed, otherwise empty.
        byte_range: Range hashed by this invocation, if any.
        continuation_accepted: Whether the follow-up invocation was accepted.
    """

    outcome: ChecksumOutcome
    digest: str = ""
    byte_range: ByteRange | None = None
    continuation_accepted: bool = False
