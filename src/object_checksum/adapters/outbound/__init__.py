"""Outbound adapters - implementations of outbound ports.

These adapters implement object storage and continuation scheduling.
"""

from object_checksum.adapters.outbound.file_object_store import FileObjectStore
from object_checksum.adapters.outbound.memory_object_store import InMemoryObjectStore
from object_checksum.adapters.outbound.queue_continuation import QueueContinuationTrigger

__all__ = [
    "FileObjectStore",
    "InMemoryObjectStore",
    "QueueContinuationTrigger",
]
