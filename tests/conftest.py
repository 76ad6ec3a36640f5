"""Shared test fixtures for all test modules."""

from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest

from otelpipe.adapters.exporters.in_memory import InMemoryExporter
from otelpipe.core.config import PipelineConfig
from otelpipe.core.models import Resource
from otelpipe.runtime.pipeline import TelemetryPipeline


@pytest.fixture
def resource() -> Resource:
    """Resource with a fixed instance id."""
    return Resource.create(
        service_name="test-service",
        service_version="9.9.9",
        deployment_environment="test",
        instance_id="instance-1",
    )


@pytest.fixture
def make_config() -> Callable[..., PipelineConfig]:
    """Factory for configs with test-friendly timings.

    Short backoffs keep retry tests fast; a long schedule delay means only
    explicit triggers flush unless a test overrides it.
    """

    def _config(**overrides: Any) -> PipelineConfig:
        values: dict[str, Any] = {
            "endpoint": "http://collector.test/v1/logs",
            "max_batch_size": 10,
            "schedule_delay": 30.0,
            "export_timeout": 2.0,
            "queue_capacity": 100,
            "initial_backoff": 0.01,
            "max_backoff": 0.05,
            "shutdown_timeout": 2.0,
        }
        values.update(overrides)
        return PipelineConfig(**values)

    return _config


@pytest.fixture
def exporter() -> InMemoryExporter:
    return InMemoryExporter()


@pytest.fixture
def pipeline(
    make_config: Callable[..., PipelineConfig],
    exporter: InMemoryExporter,
    resource: Resource,
) -> Iterator[TelemetryPipeline]:
    """Started pipeline exporting to an InMemoryExporter; shut down afterwards."""
    pipe = TelemetryPipeline(make_config(), exporter, resource)
    yield pipe
    pipe.shutdown(timeout=1.0)


# === ASGI Test Fixtures ===


@pytest.fixture
def basic_asgi_app():
    """Basic ASGI app fixture that returns 200 OK."""
    from otelpipe.adapters.frameworks.asgi import Receive, Scope, Send

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        """Simple ASGI app that returns 200 OK."""
        await send({"type": "http.response.start", "status": 200, "headers": []})
        await send({"type": "http.response.body", "body": b"OK"})

    return app


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            async with asgi_test_client(app) as client:
                response = await client.get("/endpoint")
    """

    def _get_client(app, raise_app_exceptions: bool = True):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(
                app=app, raise_app_exceptions=raise_app_exceptions
            ),
            base_url="http://test",
        )

    return _get_client
