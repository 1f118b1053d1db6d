"""Tests for logging/tracing configuration and registry spans."""
import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from persona_registry import observability
from persona_registry.context import CallerContext
from persona_registry.observability import (
    _bool_env,
    build_tracer_provider,
    configure_observability,
    get_tracer,
    instrument_app,
)
from persona_registry.registry import InvalidInput, PersonaRegistry


@pytest.fixture
def exporter():
    return InMemorySpanExporter()


@pytest.fixture
def provider(exporter):
    return build_tracer_provider(exporter)


@pytest.fixture
def registry(provider):
    return PersonaRegistry.initialize(context=CallerContext("alice"), tracer=get_tracer(provider))


def finished(provider, exporter):
    provider.force_flush()
    return exporter.get_finished_spans()


def test_bool_env(monkeypatch):
    monkeypatch.setenv("X_FLAG", "Yes")
    assert _bool_env("X_FLAG") is True
    monkeypatch.setenv("X_FLAG", "0")
    assert _bool_env("X_FLAG") is False
    monkeypatch.delenv("X_FLAG")
    assert _bool_env("X_FLAG", default=True) is True


def test_disabled_by_default(monkeypatch):
    monkeypatch.delenv("PERSONA_OTEL_ENABLED", raising=False)
    assert configure_observability() is False
    assert instrument_app(object()) is False


def test_enabled_installs_provider(monkeypatch):
    installed = []
    monkeypatch.setenv("PERSONA_OTEL_ENABLED", "true")
    monkeypatch.setenv("PERSONA_OTEL_SERVICE_NAME", "persona-test")
    monkeypatch.setattr(observability.trace, "set_tracer_provider", installed.append)
    assert configure_observability() is True
    assert isinstance(installed[0], TracerProvider)
    assert installed[0].resource.attributes["service.name"] == "persona-test"


class TestRegistrySpans:
    def test_accepted_write_span(self, registry, provider, exporter):
        registry.set_persona("bafy1")
        (span,) = finished(provider, exporter)
        assert span.name == "persona.set"
        assert span.instrumentation_scope.name == "persona_registry"
        assert span.attributes["persona.account_id"] == "alice"
        assert span.attributes["persona.outcome"] == "accepted"

    def test_rejected_write_span(self, registry, provider, exporter):
        with pytest.raises(InvalidInput):
            registry.set_persona("   ")
        (span,) = finished(provider, exporter)
        assert span.attributes["persona.outcome"] == "invalid_input"
        assert not span.status.is_ok
        assert any(e.name == "exception" for e in span.events)

    def test_get_spans(self, registry, provider, exporter):
        registry.set_persona("bafy1")
        registry.get_persona("alice")
        registry.get_persona("bob")
        spans = [s for s in finished(provider, exporter) if s.name == "persona.get"]
        assert [(s.attributes["persona.account_id"], s.attributes["persona.outcome"]) for s in spans] == [
            ("alice", "found"),
            ("bob", "absent"),
        ]
