"""Dependency injection container for the checksum service."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from opentelemetry.sdk.trace import TracerProvider

from object_checksum import __version__
from object_checksum.adapters.inbound.continuation_worker import ContinuationWorker
from object_checksum.adapters.outbound.file_object_store import FileObjectStore
from object_checksum.adapters.outbound.memory_object_store import InMemoryObjectStore
from object_checksum.adapters.outbound.queue_continuation import QueueContinuationTrigger
from object_checksum.domain.services.checksum_service import ChecksumService
from object_checksum.infrastructure.config import Config, StoreConfig, get_config
from object_checksum.infrastructure.logging import setup_logging
from object_checksum.infrastructure.metrics import ChecksumMetrics, get_metrics
from object_checksum.infrastructure.tracing import setup_tracing
from object_checksum.ports.outbound import ObjectStorePort


def create_store(config: StoreConfig) -> ObjectStorePort:
    """Build the configured object store adapter."""
    if config.backend == "memory":
        return InMemoryObjectStore()
    return FileObjectStore(config.data_dir)


@dataclass
class Container:
    """Dependency injection container for checksum components."""

    config: Config
    logger: structlog.stdlib.BoundLogger
    tracer_provider: TracerProvider
    metrics: ChecksumMetrics
    store: ObjectStorePort
    trigger: QueueContinuationTrigger
    service: ChecksumService
    worker: ContinuationWorker

    _instance: "Container | None" = None

    @classmethod
    def create(
        cls,
        config: Config | None = None,
        metrics: ChecksumMetrics | None = None,
    ) -> "Container":
        """Create and initialize the container with all dependencies.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        if cls._instance is not None:
            return cls._instance

        config = config or get_config()
        logger = setup_logging(
            level=config.observability.log_level,
            log_format=config.observability.log_format,
            environment=config.observability.environment,
            algorithm=config.checksum.digest_algorithm.value,
        )
        tracer_provider = setup_tracing(config.observability)
        metrics = metrics or get_metrics()

        options = config.checksum_options()
        store = create_store(config.store)
        trigger = QueueContinuationTrigger()
        service = ChecksumService(store, trigger, options=options, metrics=metrics)
        worker = ContinuationWorker(service, trigger)

        metrics.system_info.info(
            {
                "version": __version__,
                "algorithm": options.algorithm.value,
                "part_size": str(options.part_size),
                "store_backend": config.store.backend,
            }
        )

        cls._instance = cls(
            config=config,
            logger=logger,
            tracer_provider=tracer_provider,
            metrics=metrics,
            store=store,
            trigger=trigger,
            service=service,
            worker=worker,
        )

        logger.info(
            "object_checksum_container_initialized",
            part_size=options.part_size,
            buffer_size=options.buffer_size,
            store_backend=config.store.backend,
        )

        return cls._instance

    @classmethod
    def get(cls) -> "Container":
        """Get the singleton container instance."""
        if cls._instance is None:
            return cls.create()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Stop the worker, flush spans and drop the singleton."""
        instance = cls._instance
        cls._instance = None
        if instance is None:
            return
        instance.worker.stop(timeout=1.0)
        instance.trigger.close()
        instance.tracer_provider.shutdown()
        instance.logger.info("object_checksum_container_reset")
