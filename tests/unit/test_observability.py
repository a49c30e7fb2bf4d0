"""Unit tests for observability module."""

import json
import logging
import sys

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
import pytest

from entity_search.observability import (
    SEARCH_LATENCY,
    JsonFormatter,
    configure_logging,
    create_span,
    get_metrics,
    get_trace_context,
    set_trace_context,
    set_tracer,
    track_latency,
)
from entity_search.observability.context import trace_context, update_span_id


@pytest.fixture
def span_exporter():
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    set_tracer(provider.get_tracer("tests"))
    yield exporter
    set_tracer(None)


@pytest.fixture(autouse=True)
def reset_trace_context():
    token = trace_context.set(None)
    yield
    trace_context.reset(token)


def _record(msg: str = "test message", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="entity_search.search_service",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Tests for structured JSON logging."""

    def test_format_includes_trace_context(self):
        set_trace_context("a" * 32, "b" * 16, models=["Person"])

        data = json.loads(JsonFormatter().format(_record()))

        assert data["message"] == "test message"
        assert data["level"] == "INFO"
        assert data["trace_id"] == "a" * 32
        assert data["span_id"] == "b" * 16
        assert data["models"] == ["Person"]
        assert data["component"] == "search_service"

    def test_extras_are_included_and_redacted(self):
        data = json.loads(JsonFormatter().format(_record(model="Person", token="s3cret", ids={3, 1})))

        assert data["model"] == "Person"
        assert data["token"] == "[REDACTED]"
        assert data["ids"] == [1, 3]

    def test_long_messages_truncated(self):
        data = json.loads(JsonFormatter().format(_record("x" * 3000)))

        assert len(data["message"]) == JsonFormatter.MAX_MESSAGE_LEN + 3

    def test_exceptions_are_formatted(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))

        assert "ValueError: boom" in data["exception"]


class TestConfigureLogging:
    def test_installs_single_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging("debug", json_output=True, logger_levels={"entity_search.registry": "warning"})

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JsonFormatter)
            assert logging.getLogger("entity_search.registry").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
            logging.getLogger("entity_search.registry").setLevel(logging.NOTSET)

    def test_plain_text_output(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging("info", json_output=False)

            assert not isinstance(root.handlers[0].formatter, JsonFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestTraceContext:
    def test_generates_ids_on_first_access(self):
        ctx = get_trace_context()

        assert len(ctx["trace_id"]) == 32
        assert len(ctx["span_id"]) == 16
        assert get_trace_context() is ctx

    def test_update_span_id_keeps_trace_id(self):
        set_trace_context("a" * 32, "b" * 16)

        update_span_id("c" * 16)

        assert get_trace_context() == {"trace_id": "a" * 32, "span_id": "c" * 16}


class TestCreateSpan:
    def test_records_attributes(self, span_exporter):
        with create_span("entity_search.search", attributes={"search.models": ("Person",), "search.field": None}):
            pass

        [span] = span_exporter.get_finished_spans()
        assert span.name == "entity_search.search"
        assert span.attributes["search.models"] == ("Person",)
        assert "search.field" not in span.attributes

    def test_records_errors(self, span_exporter):
        with pytest.raises(RuntimeError), create_span("entity_search.search"):
            raise RuntimeError("store down")

        [span] = span_exporter.get_finished_spans()
        assert span.status.status_code == StatusCode.ERROR

    def test_search_emits_span(self, span_exporter, search_service, index_service):
        index_service.upsert("Person", 1, "name", "Hello World")

        search_service.search("hello", "Person")

        spans = {span.name: span for span in span_exporter.get_finished_spans()}
        assert spans["entity_search.search"].attributes["search.hits"] == 1
        assert spans["entity_search.search"].attributes["search.mode"] == "single"


class TestMetrics:
    def test_track_latency_observes_duration(self, monkeypatch):
        observed = []
        monkeypatch.setattr(SEARCH_LATENCY, "observe", lambda labels, value: observed.append((labels, value)))

        with track_latency(SEARCH_LATENCY, mode="single"):
            pass

        [(labels, value)] = observed
        assert labels == {"mode": "single"}
        assert value >= 0

    def test_track_latency_observes_on_error(self, monkeypatch):
        observed = []
        monkeypatch.setattr(SEARCH_LATENCY, "observe", lambda labels, value: observed.append(labels))

        with pytest.raises(ValueError), track_latency(SEARCH_LATENCY, mode="multi"):
            raise ValueError("boom")

        assert observed == [{"mode": "multi"}]

    def test_get_metrics_exposes_search_metrics(self, search_service, index_service):
        index_service.upsert("Person", 1, "name", "Hello World")
        search_service.search("hello", "Person")

        output = get_metrics().decode("utf-8")

        assert "entity_search_requests_total" in output
        assert "entity_search_index_writes_total" in output
        assert "entity_search_latency_seconds" in output
