"""Integration tests for the TelemetryPipeline facade."""

import atexit
from datetime import datetime

import pytest

from otelpipe.adapters.exporters.http import HttpExporter
from otelpipe.adapters.exporters.in_memory import InMemoryExporter
from otelpipe.core.config import OverflowPolicy
from otelpipe.core.errors import ConfigurationError
from otelpipe.core.models import RecordKind, Resource
from otelpipe.core.scheduler import SchedulerState
from otelpipe.runtime.pipeline import TelemetryPipeline

pytestmark = [pytest.mark.pipeline, pytest.mark.tier(2)]


class TestIngestion:
    """Tests for emit(), log() and span()."""

    def test_log_is_tagged_and_exported(
        self, pipeline: TelemetryPipeline, exporter: InMemoryExporter
    ) -> None:
        assert pipeline.log("info", "user logged in", user="alice") is True

        assert pipeline.force_flush(timeout=2.0)
        (record,) = exporter.records
        assert record.kind is RecordKind.LOG
        assert record.severity == "INFO"
        assert record.attributes["user"] == "alice"
        assert record.attributes["service.name"] == "test-service"
        assert record.resource is pipeline.resource

    def test_emit_builds_record(
        self, pipeline: TelemetryPipeline, exporter: InMemoryExporter
    ) -> None:
        accepted = pipeline.emit(
            RecordKind.LOG, "cache miss", {"key": "user:1"}, severity="DEBUG"
        )

        assert accepted is True
        assert pipeline.force_flush(timeout=2.0)
        assert exporter.records[0].severity == "DEBUG"
        assert exporter.records[0].attributes["key"] == "user:1"

    def test_emit_never_raises_on_malformed_input(
        self, pipeline: TelemetryPipeline
    ) -> None:
        assert pipeline.emit(RecordKind.LOG, "bad", attributes=[1, 2]) is False  # type: ignore[arg-type]

    def test_invalid_attribute_values_are_rejected_at_emit(
        self, pipeline: TelemetryPipeline, exporter: InMemoryExporter
    ) -> None:
        assert pipeline.emit(RecordKind.LOG, "when", {"at": datetime(2024, 1, 1)}) is False
        assert pipeline.emit(RecordKind.LOG, "ratio", {"r": float("nan")}) is False
        assert pipeline.log("INFO", "ratio", r=float("inf")) is False
        assert pipeline.log("INFO", "fine", r=0.5) is True

        assert pipeline.force_flush(timeout=2.0)
        assert [r.message for r in exporter.records] == ["fine"]
        assert pipeline.stats.enqueued == 1

    def test_span_with_invalid_attribute_is_discarded(
        self, pipeline: TelemetryPipeline, exporter: InMemoryExporter
    ) -> None:
        with pipeline.span("upload") as span:
            span.attributes["payload"] = b"raw"  # type: ignore[assignment]

        assert span.record is None
        assert pipeline.force_flush(timeout=2.0)
        assert exporter.records == []

    def test_span_is_exported_with_trace_ids(
        self, pipeline: TelemetryPipeline, exporter: InMemoryExporter
    ) -> None:
        with pipeline.span("checkout", cart_size=3) as span:
            pipeline.log("INFO", "charging card")

        assert pipeline.force_flush(timeout=2.0)
        log_record, span_record = exporter.records
        assert span_record.kind is RecordKind.SPAN
        assert span_record.message == "checkout"
        assert span_record.attributes["cart_size"] == 3
        assert log_record.attributes["trace_id"] == span.context.trace_id
        assert span_record.span is not None
        assert span_record.span.trace_id == span.context.trace_id

    def test_failed_span_is_still_exported(
        self, pipeline: TelemetryPipeline, exporter: InMemoryExporter
    ) -> None:
        with pytest.raises(RuntimeError):
            with pipeline.span("payment"):
                raise RuntimeError("card declined")

        assert pipeline.force_flush(timeout=2.0)
        (record,) = exporter.records
        assert record.severity == "ERROR"
        assert record.attributes["exc_message"] == "card declined"

    def test_overflow_is_reported_not_raised(
        self, make_config, exporter: InMemoryExporter, resource: Resource
    ) -> None:
        config = make_config(
            queue_capacity=2, max_batch_size=2, overflow_policy=OverflowPolicy.DROP_NEWEST
        )
        pipe = TelemetryPipeline(config, exporter, resource, start=False)
        try:
            results = [pipe.log("INFO", f"m{i}") for i in range(3)]

            assert results == [True, True, False]
            assert pipe.stats.dropped_overflow == 1
        finally:
            pipe.shutdown(timeout=1.0)


class TestLifecycle:
    """Tests for flush, shutdown and the exit hook."""

    def test_shutdown_drains_and_rejects_new_records(
        self, pipeline: TelemetryPipeline, exporter: InMemoryExporter
    ) -> None:
        for i in range(15):
            pipeline.log("INFO", f"m{i}")

        report = pipeline.shutdown(timeout=2.0)

        assert report.completed is True
        assert report.exported == 15
        assert len(exporter.records) == 15
        assert pipeline.state is SchedulerState.STOPPED
        assert pipeline.log("INFO", "late") is False
        assert pipeline.stats.rejected_closed == 1
        assert exporter.shutdown_called is True

    def test_context_manager_shuts_down(
        self, make_config, exporter: InMemoryExporter, resource: Resource
    ) -> None:
        with TelemetryPipeline(make_config(), exporter, resource, start=False) as pipe:
            pipe.log("INFO", "inside")

        assert pipe.state is SchedulerState.STOPPED
        assert [r.message for r in exporter.records] == ["inside"]

    def test_metrics_reflect_counters(self, pipeline: TelemetryPipeline) -> None:
        pipeline.log("INFO", "one")
        pipeline.log("INFO", "two")

        samples = {s.name: s.value for s in pipeline.metrics()}

        assert samples["otelpipe_enqueued_total"] == 2.0
        assert samples["otelpipe_queue_size"] == 2.0

    def test_install_shutdown_hook(
        self, pipeline: TelemetryPipeline, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        registered: list[object] = []
        monkeypatch.setattr(atexit, "register", registered.append)
        monkeypatch.setattr(atexit, "unregister", registered.remove)

        pipeline.install_shutdown_hook()
        pipeline.install_shutdown_hook()
        assert registered == [pipeline.shutdown]

        pipeline.shutdown(timeout=1.0)
        assert registered == []

    def test_invalid_config_is_rejected(self, make_config) -> None:
        with pytest.raises(ConfigurationError):
            make_config(max_batch_size=200, queue_capacity=100)


class TestFromEnv:
    """Tests for TelemetryPipeline.from_env()."""

    def test_reads_endpoint_and_resource(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OTEL_EXPORTER_OTLP_LOGS_ENDPOINT", raising=False)
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4318")
        monkeypatch.setenv("OTEL_SERVICE_NAME", "orders")
        monkeypatch.setenv("OTEL_BLRP_MAX_EXPORT_BATCH_SIZE", "50")

        pipe = TelemetryPipeline.from_env(start=False)
        try:
            assert pipe.config.endpoint == "http://collector:4318/v1/logs"
            assert pipe.config.max_batch_size == 50
            assert pipe.resource.service_name == "orders"
        finally:
            pipe.shutdown(timeout=1.0)

    def test_uses_http_exporter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
        monkeypatch.delenv("OTEL_EXPORTER_OTLP_LOGS_ENDPOINT", raising=False)

        pipe = TelemetryPipeline.from_env(start=False)
        try:
            assert isinstance(pipe._scheduler._exporter, HttpExporter)
            assert pipe.config.endpoint == "http://localhost:4318/v1/logs"
        finally:
            pipe.shutdown(timeout=1.0)
