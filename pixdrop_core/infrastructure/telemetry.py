"""
Telemetry infrastructure for pixdrop.

Configures OpenTelemetry tracing when ENABLE_TELEMETRY is set. Without it
the OpenTelemetry API hands out no-op tracers, so services can open spans
unconditionally.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from pixdrop_core.config import settings


class TelemetryService:
    """Singleton service for configuring OpenTelemetry tracing."""

    _instance: Optional[TelemetryService] = None

    def __new__(cls) -> TelemetryService:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self.tracer_provider: Optional[TracerProvider] = None

    def setup(self) -> None:
        """
        Initialize the tracer provider and exporter.
        Safe to call multiple times (idempotent).
        """
        if not settings.ENABLE_TELEMETRY:
            logger.info("Telemetry disabled via configuration.")
            return

        if self.tracer_provider is not None:
            logger.warning("Telemetry already initialized.")
            return

        resource = Resource.create({
            "service.name": settings.SERVICE_NAME,
            "service.instance.id": settings.OTEL_SERVICE_NAME or f"{settings.SERVICE_NAME}-instance",
        })
        self.tracer_provider = TracerProvider(resource=resource)

        if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

            exporter = OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT)
            logger.info(f"OTLP Tracing enabled -> {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        else:
            exporter = ConsoleSpanExporter()
            logger.info("OTLP Endpoint not set. Tracing to console (Debug).")

        self.tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(self.tracer_provider)
        logger.info("Telemetry initialized successfully.")

    def instrument_app(self, app) -> None:
        """Instrument a FastAPI application."""
        if not settings.ENABLE_TELEMETRY:
            return

        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        FastAPIInstrumentor.instrument_app(app, tracer_provider=self.tracer_provider)


def setup_telemetry() -> None:
    TelemetryService().setup()


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)
