"""OpenTelemetry tracing configuration for the checksum service."""

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from object_checksum import __version__
from object_checksum.infrastructure.config import ObservabilityConfig


def setup_tracing(config: ObservabilityConfig) -> TracerProvider:
    """Configure OpenTelemetry tracing for the checksum service.

    Spans are exported over OTLP when an endpoint is configured, or to the
    console in development. The provider is returned so the owner can
    flush it on shutdown.
    """
    resource = Resource.create(
        {
            "service.name": "object_checksum",
            "service.version": __version__,
            "deployment.environment": config.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    if config.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(
            endpoint=config.otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
    elif config.environment == "development":
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)

    return provider
