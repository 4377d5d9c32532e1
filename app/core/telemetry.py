from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from app.core.config import settings
from app.core.db import engine

_provider_installed = False


def _install_provider(service_name: str) -> bool:
    global _provider_installed
    if not settings.telemetry_enabled:
        return False
    if _provider_installed:
        return True

    resource = Resource.create({"service.name": service_name, "deployment.environment": settings.env})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{settings.otlp_endpoint}/v1/traces")))
    trace.set_tracer_provider(provider)
    _provider_installed = True
    return True


def setup_telemetry(app) -> None:
    if not _install_provider(settings.service_name):
        return
    FastAPIInstrumentor.instrument_app(app)
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def setup_worker_telemetry() -> None:
    # tasks build their own engines, so instrument engine creation instead of one engine
    if _install_provider(f"{settings.service_name}-worker"):
        SQLAlchemyInstrumentor().instrument()
