"""OpenTelemetry tracing configuration for Staging Store."""

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from staging_store import __version__
from staging_store.infrastructure.config import get_config


def setup_tracing() -> trace.Tracer:
    """Configure OpenTelemetry tracing for the staging store."""
    config = get_config()

    resource = Resource.create(
        {
            "service.name": "staging_store",
            "service.version": __version__,
            "deployment.environment": config.observability.environment,
            "staging_store.storage_backend": config.storage.backend,
            "staging_store.window_size": config.upload.window_size,
        }
    )

    # Upload streams are long; sampling keeps one span per sampled upload
    sampler = ParentBased(TraceIdRatioBased(config.observability.trace_sample_ratio))
    provider = TracerProvider(resource=resource, sampler=sampler)

    if config.observability.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(
            endpoint=config.observability.otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
    else:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)

    return trace.get_tracer("staging_store")
