"""Ports layer - interface definitions following Hexagonal Architecture.

- Inbound ports: the invocation entry point offered to event sources.
- Outbound ports: the object store and the continuation trigger.
"""

from object_checksum.ports.inbound import ChecksumServicePort
from object_checksum.ports.outbound import ContinuationTriggerPort, ObjectStorePort

__all__ = [
    "ChecksumServicePort",
    "ContinuationTriggerPort",
    "ObjectStorePort",
]
