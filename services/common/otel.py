import os
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

USE_CLOUD_TRACE = os.getenv("USE_CLOUD_TRACE", "false").lower() == "true"

_provider_installed = False

def init_tracing(app, service_name: str, service_version: str = "v1"):
    global _provider_installed
    if not _provider_installed:
        resource = Resource.create({
            "service.name": service_name,
            "service.version": service_version,
            "deployment.environment": os.getenv("ENVIRONMENT", "dev"),
        })
        provider = TracerProvider(resource=resource)
        if USE_CLOUD_TRACE:
            # pip: opentelemetry-exporter-gcp-trace
            from opentelemetry.exporter.cloud_trace import CloudTraceSpanExporter
            provider.add_span_processor(BatchSpanProcessor(CloudTraceSpanExporter()))
        elif os.getenv("OTEL_CONSOLE_EXPORT", "false").lower() == "true":
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(provider)
        _provider_installed = True

    FastAPIInstrumentor().instrument_app(app)

    return trace.get_tracer(service_name)
