"""Demo web service forwarding its logs and request spans to a collector.

Run with:
    OTEL_SERVICE_NAME=otelpipe-demo \
    OTEL_EXPORTER_OTLP_ENDPOINT=http://localhost:4318 \
    uvicorn examples.fastapi_demo:app --reload

Endpoints:
    /                    - service status
    /hello?name=<name>   - greeting (logs at INFO and DEBUG)
    /test-logs           - emits one log line per level
    /telemetry/stats     - pipeline counters
    /telemetry/metrics   - pipeline counters as NDJSON samples
    /telemetry/flush     - POST to export everything queued now

Set OTELPIPE_IN_MEMORY=1 to run without a collector.
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI

from otelpipe import (
    InMemoryExporter,
    PipelineConfig,
    PipelineHandler,
    TelemetryPipeline,
    resource_from_env,
)
from otelpipe.adapters.frameworks.asgi import TelemetryMiddleware
from otelpipe.adapters.frameworks.fastapi import create_telemetry_router

logger = logging.getLogger("demo")
logger.setLevel(logging.DEBUG)


def build_pipeline() -> TelemetryPipeline:
    if os.environ.get("OTELPIPE_IN_MEMORY"):
        return TelemetryPipeline(
            PipelineConfig.from_env(), InMemoryExporter(), resource_from_env()
        )
    return TelemetryPipeline.from_env()


pipeline = build_pipeline()
logging.getLogger().addHandler(PipelineHandler(pipeline))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Exporting telemetry to %s", pipeline.config.endpoint)
    logger.info("Service name: %s", pipeline.resource.service_name)
    yield
    logger.info("Shutting down telemetry pipeline...")
    report = pipeline.shutdown()
    if not report.completed:
        logger.warning("%d telemetry records lost", report.lost)


app = FastAPI(title="otelpipe demo", lifespan=lifespan)
app.add_middleware(TelemetryMiddleware, pipeline=pipeline, exclude_paths=["/telemetry/*"])
app.include_router(create_telemetry_router(pipeline))


@app.get("/")
async def root() -> dict[str, str]:
    logger.info("Received request to root endpoint")
    return {
        "status": "running",
        "message": "otelpipe demo application",
        "endpoints": "/hello, /test-logs, /telemetry/stats",
    }


@app.get("/hello")
async def hello(name: str = "World") -> dict[str, str]:
    logger.info("Received request to /hello endpoint with name: %s", name)
    response = {
        "message": f"Hello, {name}!",
        "timestamp": datetime.now().isoformat(),
        "service": pipeline.resource.service_name,
    }
    logger.debug("Preparing response for name: %s", name)
    logger.info("Successfully processed /hello request")
    return response


@app.get("/test-logs")
async def test_logs() -> dict[str, str]:
    logger.info("Testing different log levels...")
    logger.debug("This is a DEBUG level log")
    logger.info("This is an INFO level log")
    logger.warning("This is a WARNING level log")
    logger.error("This is an ERROR level log")
    logger.info("Log level test completed")
    return {
        "status": "success",
        "message": "Generated logs at all levels (DEBUG, INFO, WARNING, ERROR)",
        "note": "Check your collector for the exported logs",
    }
