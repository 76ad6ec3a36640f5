"""Exporter adapters implementing ExporterPort."""

from otelpipe.adapters.exporters.http import HttpExporter
from otelpipe.adapters.exporters.in_memory import InMemoryExporter

__all__ = ["HttpExporter", "InMemoryExporter"]
