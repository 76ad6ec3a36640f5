"""Port interfaces for exporter adapters.

The scheduler depends only on this protocol, not on concrete transports.
"""

from typing import Protocol, runtime_checkable

from otelpipe.core.models import Batch, ExportResult


@runtime_checkable
class ExporterPort(Protocol):
    """Port for transmitting a batch to a remote endpoint.

    Adapters implementing this protocol send one batch per call.
    Examples: HttpExporter, InMemoryExporter.
    """

    def export(self, batch: Batch, timeout: float) -> ExportResult:
        """Export a batch.

        Args:
            batch: The batch to transmit. Ownership is transferred for the
                   duration of the call.
            timeout: Seconds the call may take before it counts as failed.

        Returns:
            ExportResult classifying success, transient or permanent failure.
        """
        ...

    def shutdown(self) -> None:
        """Release transport resources. Called once after the final export."""
        ...
