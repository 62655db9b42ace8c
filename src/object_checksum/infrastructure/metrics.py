"""Prometheus metrics for the checksum service."""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, REGISTRY


class ChecksumMetrics:
    """Metrics collector for checksum invocations."""

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        # Invocations
        self.invocations = Counter(
            "object_checksum_invocations_total",
            "Total checksum invocations by outcome",
            ["outcome"],
            registry=registry,
        )
        self.bytes_hashed = Counter(
            "object_checksum_bytes_hashed_total",
            "Total bytes fed into digests",
            ["algorithm"],
            registry=registry,
        )
        self.chunk_duration = Histogram(
            "object_checksum_chunk_duration_seconds",
            "Time to read and hash one chunk",
            ["algorithm"],
            buckets=[0.1, 0.5, 1.0, 5.0, 30.0, 60.0, 300.0, 900.0],
            registry=registry,
        )

        # Continuations
        self.continuations = Counter(
            "object_checksum_continuations_total",
            "Continuation requests by result",
            ["result"],
            registry=registry,
        )

        # Errors
        self.errors = Counter(
            "object_checksum_errors_total",
            "Invocation errors by type",
            ["error_type"],
            registry=registry,
        )

        # System Info
        self.system_info = Info(
            "object_checksum",
            "Checksum service information",
            registry=registry,
        )


_metrics: ChecksumMetrics | None = None


def get_metrics() -> ChecksumMetrics:
    """Get the singleton metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = ChecksumMetrics()
    return _metrics
