"""OpenTelemetry configuration and initialization."""

from __future__ import annotations

import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.propagate import inject
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from mememe.core.config import Settings

logger = logging.getLogger(__name__)


def configure_tracing(settings: Settings) -> bool:
    """Install a tracer provider exporting to the configured OTLP endpoint.

    Returns True when tracing was configured. Failures are logged and the
    application keeps running untraced.
    """
    if not settings.otel_enabled:
        logger.info("OpenTelemetry tracing is disabled")
        return False

    try:
        resource = Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": settings.otel_service_version,
                "service.namespace": "mememe",
                "deployment.environment": settings.environment,
            }
        )
        tracer_provider = TracerProvider(resource=resource)
        tracer_provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(
                    endpoint=settings.otel_exporter_otlp_endpoint,
                    headers=settings.otel_exporter_otlp_headers,
                )
            )
        )
        trace.set_tracer_provider(tracer_provider)
    except Exception as exc:
        logger.warning("Failed to configure OpenTelemetry: %s", exc)
        return False

    logger.info(
        "OpenTelemetry configured for '%s' exporting to %s",
        settings.otel_service_name,
        settings.otel_exporter_otlp_endpoint,
    )
    return True


def instrument_app(app: Any, settings: Settings) -> None:
    """Instrument FastAPI and outbound httpx calls when tracing is on."""
    if not settings.otel_enabled:
        return

    try:
        FastAPIInstrumentor.instrument_app(app)
        HTTPXClientInstrumentor().instrument()
        logger.info("FastAPI and httpx instrumentation enabled")
    except Exception as exc:
        logger.warning("Failed to instrument application: %s", exc)


def add_traceparent_header(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of headers carrying the current trace context."""
    headers_copy = headers.copy()
    inject(headers_copy)
    return headers_copy
