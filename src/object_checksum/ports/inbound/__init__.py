"""Inbound ports - the invocation entry point of the checksum service."""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol

from object_checksum.domain.value_objects import ChecksumResult, InvocationEvent


class ChecksumServicePort(Protocol):
    """Protocol for one checksum invocation.

    Each call hashes at most one part of the object, persists either the
    partial digest state or the final hash, and schedules a continuation
    when work remains.

    Example:
        digest = service.handle(InvocationEvent(bucket="b", key="k"))
        if not digest:
            # skipped, or continuing in another invocation
            pass
    """

    @abstractmethod
    def process(self, event: InvocationEvent) -> ChecksumResult:
        """Run one invocation and report what it did."""
        ...

    @abstractmethod
    def handle(self, event: InvocationEvent) -> str:
        """Run one invocation.

        Returns:
            The hex digest on the terminating invocation, otherwise "".
        """
        ...


__all__ = ["ChecksumServicePort"]
