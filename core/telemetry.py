from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from core.config import settings


def setup_telemetry(export_to_console: bool = False):
    resource = Resource.create({"service.name": settings.APP_NAME, "service.version": settings.APP_VERSION})
    provider = TracerProvider(resource=resource)

    # Swap ConsoleSpanExporter for an OTLP exporter when a collector is available
    if export_to_console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)


tracer = trace.get_tracer("video_generator")
