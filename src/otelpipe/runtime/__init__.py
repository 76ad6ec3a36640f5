"""Runtime composition of the export pipeline."""

from otelpipe.runtime.pipeline import TelemetryPipeline

__all__ = ["TelemetryPipeline"]
