"""otelpipe: batching export pipeline for logs and trace spans."""

from otelpipe.adapters.exporters.http import HttpExporter
from otelpipe.adapters.exporters.in_memory import InMemoryExporter
from otelpipe.adapters.logging import PipelineHandler
from otelpipe.core.config import OverflowPolicy, PipelineConfig
from otelpipe.core.errors import (
    ConfigurationError,
    ExportError,
    ExportPermanentError,
    ExportTransientError,
    OtelPipeError,
    ShutdownTimeout,
)
from otelpipe.core.models import (
    Batch,
    ExportResult,
    ExportStatus,
    Record,
    RecordKind,
    Resource,
    SpanData,
)
from otelpipe.core.ports import ExporterPort
from otelpipe.core.resource import ResourceTagger, resource_from_env
from otelpipe.core.scheduler import SchedulerState, ShutdownReport
from otelpipe.runtime.pipeline import TelemetryPipeline

__all__ = [
    "Batch",
    "ConfigurationError",
    "ExportError",
    "ExportPermanentError",
    "ExportResult",
    "ExportStatus",
    "ExportTransientError",
    "ExporterPort",
    "HttpExporter",
    "InMemoryExporter",
    "OtelPipeError",
    "OverflowPolicy",
    "PipelineConfig",
    "PipelineHandler",
    "Record",
    "RecordKind",
    "Resource",
    "ResourceTagger",
    "SchedulerState",
    "ShutdownReport",
    "ShutdownTimeout",
    "SpanData",
    "TelemetryPipeline",
    "resource_from_env",
]
