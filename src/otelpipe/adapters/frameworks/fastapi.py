"""FastAPI adapter exposing pipeline health endpoints."""

from fastapi import APIRouter, Query, Response

from otelpipe.core.encoding.ndjson import encode_metrics
from otelpipe.runtime.pipeline import TelemetryPipeline


def create_telemetry_router(
    pipeline: TelemetryPipeline,
    prefix: str = "/telemetry",
) -> APIRouter:
    """Create a FastAPI router with pipeline stats, metrics and flush endpoints.

    Args:
        pipeline: Pipeline to report on.
        prefix: Path prefix for the endpoints.

    Returns:
        APIRouter with /stats, /metrics and /flush endpoints configured.
    """
    router = APIRouter(prefix=prefix)

    @router.get("/stats")
    async def get_stats() -> dict[str, object]:
        """Return pipeline counters, state and queue size as JSON."""
        return {
            "state": pipeline.state.value,
            "queue_size": pipeline.queue_size,
            "queue_capacity": pipeline.config.queue_capacity,
            "service": pipeline.resource.service_name,
            "counters": pipeline.stats.snapshot(),
        }

    @router.get("/metrics")
    async def get_metrics() -> Response:
        """Return pipeline metrics in NDJSON format."""
        return Response(
            content=encode_metrics(pipeline.metrics()),
            media_type="application/x-ndjson",
        )

    @router.post("/flush")
    def flush(timeout: float = Query(default=5.0, ge=0)) -> dict[str, bool]:
        """Export everything queued now.

        Args:
            timeout: Seconds to wait for the flush to complete.
        """
        flushed = pipeline.force_flush(timeout)
        return {"flushed": flushed}

    return router
