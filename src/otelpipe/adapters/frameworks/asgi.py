"""ASGI middleware emitting one span per HTTP request.

Framework-agnostic: works with any ASGI server (uvicorn, hypercorn) and any
ASGI framework (FastAPI, Starlette) without depending on them.
"""

import fnmatch
import uuid
from collections.abc import Callable, Coroutine
from dataclasses import replace
from typing import Any

from otelpipe.core.records import timed_span
from otelpipe.runtime.pipeline import TelemetryPipeline

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]


def _extract_request_id(scope: Scope, header_name: str = "X-Request-ID") -> str:
    """Extract or generate a request ID from ASGI scope headers.

    Searches for the specified header (case-insensitive). If not found,
    generates a new UUID.

    Args:
        scope: ASGI scope dictionary containing request metadata.
        header_name: Name of the header to search for (default: "X-Request-ID").

    Returns:
        Request ID string (either from header or newly generated UUID).
    """
    header_bytes = header_name.lower().encode()
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    for name, value in headers:
        if name.lower() == header_bytes:
            return str(value.decode("utf-8", errors="replace"))
    return str(uuid.uuid4())


def _get_severity_for_status(status_code: int) -> str:
    """Map an HTTP status code to a span severity.

    - 400-499 (4xx) → "WARN"
    - 500-599 (5xx) → "ERROR"
    - Other → "INFO"
    """
    if 400 <= status_code < 500:
        return "WARN"
    if 500 <= status_code < 600:
        return "ERROR"
    return "INFO"


class TelemetryMiddleware:
    """ASGI middleware that records each HTTP request as a SPAN record.

    Logs emitted while the request is handled (through ``pipeline.log`` or
    ``PipelineHandler``) carry the request span's trace and span ids.

    Spans are submitted from the event loop, so under the BLOCK overflow
    policy a full queue drops the span instead of stalling the loop.
    """

    def __init__(
        self,
        app: ASGIApp,
        pipeline: TelemetryPipeline,
        exclude_paths: list[str] | None = None,
        request_id_header: str = "X-Request-ID",
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            pipeline: Pipeline request spans are submitted to.
            exclude_paths: Paths to skip. Supports exact matches and
                          wildcard patterns (e.g., "/internal/*").
            request_id_header: Name of the header to extract request ID from
                             (default: "X-Request-ID").
        """
        self.app = app
        self.pipeline = pipeline
        self.exclude_paths = exclude_paths or []
        self.request_id_header = request_id_header

    def _path_excluded(self, path: str) -> bool:
        """Check if path matches any pattern in exclude_paths."""
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI callable interface that processes requests through the wrapped app."""
        if scope["type"] != "http" or self._path_excluded(scope["path"]):
            await self.app(scope, receive, send)
            return

        request_id = _extract_request_id(scope, self.request_id_header)
        captured: dict[str, Any] = {"status": None, "body_size": 0, "exception": None}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
            elif message["type"] == "http.response.body":
                captured["body_size"] += len(message.get("body", b""))
            await send(message)

        with timed_span(
            f"{scope['method']} {scope['path']}",
            **{
                "http.method": scope["method"],
                "http.target": scope["path"],
                "request_id": request_id,
            },
        ) as span:
            try:
                await self.app(scope, receive, wrapped_send)
            except Exception as e:
                captured["exception"] = e
                captured["status"] = 500
            span.attributes["http.status_code"] = captured["status"] or 0
            span.attributes["http.response_body_size"] = captured["body_size"]
            if captured["exception"] is not None:
                exc = captured["exception"]
                span.attributes["exception"] = f"{type(exc).__name__}: {exc!s}"

        if span.record is not None:
            severity = _get_severity_for_status(captured["status"] or 0)
            self.pipeline.submit(replace(span.record, severity=severity), block=False)
        if captured["exception"] is not None:
            raise captured["exception"]
