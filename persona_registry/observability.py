"""
Persona Registry observability (logging + OpenTelemetry)

Registry calls always run inside `persona.set` / `persona.get` spans carrying
`persona.account_id` and `persona.outcome`. Without a configured provider
those spans are no-ops.

Logging level from PERSONA_LOG_LEVEL. Span export enabled via:
- PERSONA_OTEL_ENABLED=true
- PERSONA_OTEL_SERVICE_NAME=persona-registry
- PERSONA_OTEL_EXPORTER=console|otlp
- PERSONA_OTEL_OTLP_ENDPOINT=https://... (only if exporter=otlp)
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from opentelemetry import trace

from persona_registry.config import LOG_LEVEL, PERSONA_VERSION

TRACER_NAME = "persona_registry"


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def get_tracer(provider=None) -> trace.Tracer:
    """Tracer for registry spans; the global provider unless one is given."""
    if provider is not None:
        return provider.get_tracer(TRACER_NAME, PERSONA_VERSION)
    return trace.get_tracer(TRACER_NAME, PERSONA_VERSION)


def build_tracer_provider(span_exporter=None):
    """
    TracerProvider tagged with the registry's service name.

    Returns None when the OpenTelemetry SDK is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError:
        return None

    service_name = os.environ.get("PERSONA_OTEL_SERVICE_NAME", "persona-registry")
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(span_exporter or _span_exporter_from_env()))
    return provider


def _span_exporter_from_env():
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter

    if os.environ.get("PERSONA_OTEL_EXPORTER", "console").lower() == "otlp":
        try:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        except ImportError:
            return ConsoleSpanExporter()
        endpoint: Optional[str] = os.environ.get("PERSONA_OTEL_OTLP_ENDPOINT")
        return OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
    return ConsoleSpanExporter()


def configure_observability() -> bool:
    """Install the registry's tracer provider globally when PERSONA_OTEL_ENABLED is set."""
    if not _bool_env("PERSONA_OTEL_ENABLED", False):
        return False
    provider = build_tracer_provider()
    if provider is None:
        return False
    trace.set_tracer_provider(provider)
    return True


def instrument_app(app) -> bool:
    if not _bool_env("PERSONA_OTEL_ENABLED", False):
        return False
    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.instrumentation.logging import LoggingInstrumentor
    except ImportError:
        return False

    LoggingInstrumentor().instrument(set_logging_format=True)
    FastAPIInstrumentor.instrument_app(app)
    return True
