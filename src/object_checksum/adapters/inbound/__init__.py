"""Inbound adapters - entry points that drive the checksum service.

The REST API requires fastapi and uvicorn and is imported from
``object_checksum.adapters.inbound.rest_api`` directly.
"""

from object_checksum.adapters.inbound.continuation_worker import ContinuationWorker

__all__ = ["ContinuationWorker"]
