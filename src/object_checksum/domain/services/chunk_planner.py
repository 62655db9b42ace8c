"""Chunk planning for multi-invocation hashing.

Each invocation hashes at most ``part_size`` bytes. The planner turns the
object length and the persisted progress marker into the byte range for the
current invocation and tells the caller whether that range completes the
object.
"""

from __future__ import annotations

from object_checksum.domain.errors import ConfigurationError, CorruptStateError
from object_checksum.domain.value_objects import ByteRange, ChunkPlan


class ChunkPlanner:
    """Computes the byte range processed by one invocation.

    Example:
        planner = ChunkPlanner(part_size=5 * 1024 * 1024)
        plan = planner.plan(content_length=12_582_912, progress=5_242_879)
        # plan.byte_range == ByteRange(5_242_880, 10_485_759)
    """

    def __init__(self, part_size: int) -> None:
        """Initialize the planner.

        Args:
            part_size: Maximum number of bytes per invocation.

        Raises:
            ConfigurationError: If part_size is not positive.
        """
        if part_size <= 0:
            raise ConfigurationError(f"part_size must be positive, got {part_size}")
        self._part_size = part_size

    @property
    def part_size(self) -> int:
        return self._part_size

    def plan(self, content_length: int, progress: int | None = None) -> ChunkPlan | None:
        """Plan the next range.

        Args:
            content_length: Object size in bytes.
            progress: Index of the last byte already hashed, or None when
                hashing has not started.

        Returns:
            The plan, or None for an empty object.

        Raises:
            CorruptStateError: If progress does not leave any byte to hash.
        """
        if content_length < 1:
            return None

        last_byte = content_length - 1

        if content_length <= self._part_size:
            return ChunkPlan(
                byte_range=ByteRange(0, last_byte),
                finalize=True,
                single_shot=True,
            )

        start = 0 if progress is None else progress + 1
        if start > last_byte:
            raise CorruptStateError(
                f"Progress marker {progress} is past the last byte ({last_byte}) "
                f"of a {content_length}-byte object"
            )

        end = min(start + self._part_size - 1, last_byte)
        return ChunkPlan(byte_range=ByteRange(start, end), finalize=end == last_byte)

    def invocation_count(self, content_length: int) -> int:
        """Number of invocations needed to hash an object from scratch."""
        if content_length < 1:
            return 0
        return -(-content_length // self._part_size)
