"""FastAPI REST adapter for the checksum service.

Receives object notifications over HTTP and runs one checksum invocation
per request. Continuations are queued and driven by the background
continuation worker.

Usage:
    from object_checksum.adapters.inbound.rest_api import create_app

    app = create_app()
    # Run with: uvicorn module:app --host 0.0.0.0 --port 9010
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import Body, FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from object_checksum import __version__
from object_checksum.domain.errors import (
    ChecksumError,
    ChecksumIOError,
    ConfigurationError,
    CorruptStateError,
    InvalidEventError,
    ObjectNotFoundError,
)
from object_checksum.domain.value_objects import InvocationEvent
from object_checksum.infrastructure.container import Container


class RangeResponse(BaseModel):
    """Inclusive byte range."""

    start: int
    end: int


class ChecksumResponse(BaseModel):
    """Result of one checksum invocation."""

    bucket: str
    key: str
    outcome: str
    checksum: str
    algorithm: str
    byte_range: Optional[RangeResponse] = None
    continuation_accepted: bool = False


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str = __version__
    worker_running: bool
    pending_continuations: int


_ERROR_STATUS: list[tuple[type[ChecksumError], int]] = [
    (InvalidEventError, 400),
    (ObjectNotFoundError, 404),
    (CorruptStateError, 422),
    (ChecksumIOError, 503),
    (ConfigurationError, 500),
]


def _status_for(error: ChecksumError) -> int:
    for error_type, code in _ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return 500


def create_app(container: Container | None = None, start_worker: bool | None = None) -> FastAPI:
    """Create FastAPI application with checksum endpoints.

    Args:
        container: Optional container (defaults to the global one).
        start_worker: Run the continuation worker while the app is up
            (defaults to the server configuration).

    Returns:
        Configured FastAPI application.
    """
    container = container or Container.get()
    service = container.service
    algorithm = service.options.algorithm.value
    if start_worker is None:
        start_worker = container.config.server.run_continuation_worker

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if start_worker:
            container.worker.start()
        try:
            yield
        finally:
            if start_worker:
                container.worker.stop()

    app = FastAPI(
        title="Object Checksum API",
        description="Resumable checksum computation for large objects",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check() -> HealthResponse:
        """Check service health status."""
        return HealthResponse(
            status="healthy",
            worker_running=container.worker.is_running,
            pending_continuations=container.trigger.pending,
        )

    @app.get("/metrics", tags=["System"])
    async def metrics() -> Response:
        """Prometheus metrics."""
        return Response(
            content=generate_latest(container.metrics.registry),
            media_type=CONTENT_TYPE_LATEST,
        )

    @app.post("/v1/events", response_model=ChecksumResponse, tags=["Checksum"])
    async def handle_event(payload: dict[str, Any] = Body(...)) -> ChecksumResponse:
        """Run one checksum invocation for an object notification."""
        try:
            event = InvocationEvent.from_payload(payload)
            result = await run_in_threadpool(service.process, event)
        except ChecksumError as e:
            status_code = _status_for(e)
            container.logger.warning(
                "checksum_event_rejected",
                status_code=status_code,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise HTTPException(status_code=status_code, detail=str(e))

        return ChecksumResponse(
            bucket=event.bucket,
            key=event.key,
            outcome=result.outcome.value,
            checksum=result.digest,
            algorithm=algorithm,
            byte_range=(
                RangeResponse(start=result.byte_range.start, end=result.byte_range.end)
                if result.byte_range is not None
                else None
            ),
            continuation_accepted=result.continuation_accepted,
        )

    return app


def run_server(container: Container | None = None) -> None:
    """Run the REST API server."""
    import uvicorn

    container = container or Container.get()
    app = create_app(container)
    container.logger.info(
        "checksum_server_starting",
        host=container.config.server.host,
        port=container.config.server.port,
    )
    uvicorn.run(
        app,
        host=container.config.server.host,
        port=container.config.server.port,
    )


if __name__ == "__main__":
    run_server()
