"""HTTP exporter sending each batch as one NDJSON POST request."""

import logging
from collections.abc import Mapping

import httpx

from otelpipe.core.encoding.ndjson import encode_records
from otelpipe.core.models import Batch, ExportResult

logger = logging.getLogger(__name__)

# Status codes worth retrying; every other non-2xx status means the
# endpoint rejected the payload.
RETRYABLE_STATUS_CODES = frozenset({408, 429, 502, 503, 504})


class HttpExporter:
    """Exporter posting batches to a collector endpoint with httpx.

    Network-level failures (connection refused, timeouts, other transport
    errors) and the statuses in RETRYABLE_STATUS_CODES are reported as
    transient; any other error status is permanent.

    Example:
        ```python
        exporter = HttpExporter("http://localhost:4318/v1/logs")
        result = exporter.export(batch, timeout=10.0)
        ```
    """

    content_type = "application/x-ndjson"

    def __init__(
        self,
        endpoint: str,
        headers: Mapping[str, str] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the exporter.

        Args:
            endpoint: URL each batch is POSTed to.
            headers: Extra request headers (e.g. authentication).
            client: httpx client to use. One is created, and owned, when
                omitted.
        """
        self.endpoint = endpoint
        self._headers = {"Content-Type": self.content_type, **(headers or {})}
        self._owns_client = client is None
        self._client = client or httpx.Client()

    def export(self, batch: Batch, timeout: float) -> ExportResult:
        """POST one batch and classify the outcome."""
        body = encode_records(batch.records)
        try:
            response = self._client.post(
                self.endpoint,
                content=body.encode(),
                headers=self._headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            return ExportResult.transient(f"timeout after {timeout:.2f}s: {e}")
        except httpx.TransportError as e:
            return ExportResult.transient(f"{type(e).__name__}: {e}")

        if response.is_success:
            logger.debug(
                "exported batch %d (%d records) to %s",
                batch.sequence,
                len(batch),
                self.endpoint,
            )
            return ExportResult.success()
        reason = f"HTTP {response.status_code} from {self.endpoint}"
        if response.status_code in RETRYABLE_STATUS_CODES:
            return ExportResult.transient(reason)
        return ExportResult.permanent(reason)

    def shutdown(self) -> None:
        """Close the underlying client if this exporter created it."""
        if self._owns_client:
            self._client.close()
