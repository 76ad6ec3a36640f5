"""BDD step definitions for pipeline lifecycle features."""

from collections.abc import Iterator
from dataclasses import dataclass, field

import pytest
from pytest_bdd import given, parsers, then, when
from tests.support import ScriptedExporter, wait_until

from otelpipe.core.config import PipelineConfig
from otelpipe.core.models import ExportResult, Resource
from otelpipe.core.scheduler import SchedulerState, ShutdownReport
from otelpipe.runtime.pipeline import TelemetryPipeline


@dataclass
class PipelineScenarioContext:
    """State shared between the steps of one scenario."""

    max_batch_size: int = 10
    schedule_delay: float = 30.0
    scripted: list[ExportResult | Exception] = field(default_factory=list)
    export_delay: float = 0.0
    emitted: int = 0
    exporter: ScriptedExporter | None = None
    pipeline: TelemetryPipeline | None = None
    report: ShutdownReport | None = None

    def start(self) -> TelemetryPipeline:
        if self.pipeline is None:
            self.exporter = ScriptedExporter(self.scripted, delay=self.export_delay)
            config = PipelineConfig(
                endpoint="http://collector.test/v1/logs",
                max_batch_size=self.max_batch_size,
                schedule_delay=self.schedule_delay,
                initial_backoff=0.01,
                max_backoff=0.05,
            )
            self.pipeline = TelemetryPipeline(
                config, self.exporter, Resource.create(service_name="bdd-service")
            )
        return self.pipeline

    def batch_sizes(self) -> list[int]:
        assert self.exporter is not None
        return [len(batch) for batch in self.exporter.exported]


@pytest.fixture
def ctx() -> Iterator[PipelineScenarioContext]:
    """Fresh scenario context for each test."""
    context = PipelineScenarioContext()
    yield context
    if context.pipeline is not None:
        context.pipeline.shutdown(timeout=1.0)


# === Background Steps ===
@given(
    parsers.parse(
        "a pipeline with max batch size {size:d} and schedule delay {delay:f} seconds"
    )
)
def step_pipeline_config(ctx: PipelineScenarioContext, size: int, delay: float) -> None:
    ctx.max_batch_size = size
    ctx.schedule_delay = delay


# === Collector Behaviour ===
@given(
    parsers.parse(
        "the collector fails the next {count:d} exports with a transient error"
    )
)
def step_transient_failures(ctx: PipelineScenarioContext, count: int) -> None:
    ctx.scripted.extend(ExportResult.transient("HTTP 503") for _ in range(count))


@given("the collector rejects the next export permanently")
def step_permanent_failure(ctx: PipelineScenarioContext) -> None:
    ctx.scripted.append(ExportResult.permanent("HTTP 400"))


@given(parsers.parse("the collector takes {seconds:f} seconds per export"))
def step_slow_collector(ctx: PipelineScenarioContext, seconds: float) -> None:
    ctx.export_delay = seconds


# === Actions ===
@when(parsers.parse("the application emits {count:d} log records"))
def step_emit(ctx: PipelineScenarioContext, count: int) -> None:
    pipeline = ctx.start()
    for i in range(count):
        assert pipeline.log("INFO", f"record {ctx.emitted + i}")
    ctx.emitted += count


@when(
    parsers.parse(
        "the pipeline is shut down with a grace period of {seconds:f} seconds"
    )
)
def step_shutdown(ctx: PipelineScenarioContext, seconds: float) -> None:
    ctx.report = ctx.start().shutdown(timeout=seconds)


# === Outcomes ===
@then(
    parsers.parse(
        "{batches:d} batches of {size:d} records are exported "
        "without waiting for the timer"
    )
)
def step_full_batches(ctx: PipelineScenarioContext, batches: int, size: int) -> None:
    assert wait_until(
        lambda: len(ctx.batch_sizes()) >= batches, timeout=ctx.schedule_delay * 0.8
    )
    assert ctx.batch_sizes()[:batches] == [size] * batches


@then(
    parsers.parse("a batch of {size:d} records is exported after the schedule delay")
)
def step_timed_batch(ctx: PipelineScenarioContext, size: int) -> None:
    assert wait_until(lambda: ctx.batch_sizes()[-1:] == [size])


@then(
    parsers.parse(
        "the shutdown report shows {exported:d} exported and {lost:d} lost"
    )
)
def step_report_counts(ctx: PipelineScenarioContext, exported: int, lost: int) -> None:
    assert ctx.report is not None
    assert ctx.report.completed is (lost == 0)
    assert ctx.report.exported == exported
    assert ctx.report.lost == lost


@then("records emitted afterwards are rejected")
def step_rejected_after_shutdown(ctx: PipelineScenarioContext) -> None:
    assert ctx.pipeline is not None
    assert ctx.pipeline.log("INFO", "too late") is False
    assert ctx.pipeline.stats.rejected_closed == 1


@then(parsers.parse("all {count:d} records are exported"))
def step_all_exported(ctx: PipelineScenarioContext, count: int) -> None:
    assert ctx.exporter is not None
    assert wait_until(lambda: len(ctx.exporter.records) == count)


@then(parsers.parse("{count:d} retries are counted"))
def step_retries(ctx: PipelineScenarioContext, count: int) -> None:
    assert ctx.pipeline is not None
    assert ctx.pipeline.stats.export_retries == count


@then(parsers.parse("{count:d} records are counted as permanently dropped"))
def step_permanent_drops(ctx: PipelineScenarioContext, count: int) -> None:
    assert ctx.pipeline is not None
    assert wait_until(lambda: ctx.pipeline.stats.dropped_permanent == count)


@then("the pipeline keeps running")
def step_still_running(ctx: PipelineScenarioContext) -> None:
    assert ctx.pipeline is not None
    assert ctx.pipeline.state is SchedulerState.RUNNING
    assert ctx.pipeline.log("INFO", "after drop") is True


@then("the shutdown report is incomplete")
def step_incomplete(ctx: PipelineScenarioContext) -> None:
    assert ctx.report is not None
    assert ctx.report.completed is False
    assert ctx.report.lost > 0


@then("every record is either exported or reported lost")
def step_accounting(ctx: PipelineScenarioContext) -> None:
    assert ctx.pipeline is not None and ctx.report is not None
    stats = ctx.pipeline.stats
    resolved = (
        stats.exported_records
        + stats.dropped_permanent
        + stats.dropped_retries_exhausted
    )
    assert resolved + ctx.report.lost == ctx.emitted
