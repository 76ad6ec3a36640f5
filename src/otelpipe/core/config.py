"""Pipeline configuration.

All tunables live in a single frozen dataclass that is validated once at
construction. ``from_env`` mirrors the OpenTelemetry batch log record
processor environment variables.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from otelpipe.core.errors import ConfigurationError

DEFAULT_OTLP_ENDPOINT = "http://localhost:4318"
LOGS_PATH = "/v1/logs"


class OverflowPolicy(str, Enum):
    """What the queue does with an incoming record when it is full."""

    DROP_NEWEST = "drop_newest"
    DROP_OLDEST = "drop_oldest"
    BLOCK = "block"


@dataclass(frozen=True)
class PipelineConfig:
    """Tunables for the batch export pipeline.

    Attributes:
        endpoint: Collector URL batches are POSTed to.
        max_batch_size: Maximum number of records per batch.
        schedule_delay: Seconds the oldest queued record may wait before
            a time-triggered flush.
        export_timeout: Seconds allowed for a single export call.
        queue_capacity: Fixed capacity of the record queue.
        overflow_policy: Policy applied when the queue is full.
        enqueue_timeout: Seconds a producer may wait for space under the
            BLOCK policy.
        max_retries: Retries allowed for transient export failures.
        initial_backoff: Delay before the first retry, in seconds.
        backoff_multiplier: Growth factor between consecutive retries.
        max_backoff: Upper bound on a single retry delay, in seconds.
        shutdown_timeout: Grace period for draining on shutdown, in seconds.
        headers: Extra HTTP headers sent with every export call.
    """

    endpoint: str = DEFAULT_OTLP_ENDPOINT + LOGS_PATH
    max_batch_size: int = 512
    schedule_delay: float = 1.0
    export_timeout: float = 30.0
    queue_capacity: int = 2048
    overflow_policy: OverflowPolicy = OverflowPolicy.DROP_NEWEST
    enqueue_timeout: float = 0.1
    max_retries: int = 3
    initial_backoff: float = 0.5
    backoff_multiplier: float = 2.0
    max_backoff: float = 5.0
    shutdown_timeout: float = 5.0
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.overflow_policy, str) and not isinstance(
            self.overflow_policy, OverflowPolicy
        ):
            object.__setattr__(
                self, "overflow_policy", _parse_policy(self.overflow_policy)
            )
        object.__setattr__(self, "headers", dict(self.headers))
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError if any tunable is out of range."""
        if not self.endpoint:
            raise ConfigurationError("endpoint must not be empty")
        if self.queue_capacity < 1:
            raise ConfigurationError("queue_capacity must be at least 1")
        if self.max_batch_size < 1:
            raise ConfigurationError("max_batch_size must be at least 1")
        if self.max_batch_size > self.queue_capacity:
            raise ConfigurationError(
                f"max_batch_size ({self.max_batch_size}) must not exceed "
                f"queue_capacity ({self.queue_capacity})"
            )
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")
        if self.backoff_multiplier < 1:
            raise ConfigurationError("backoff_multiplier must be at least 1")
        for name in (
            "schedule_delay",
            "export_timeout",
            "enqueue_timeout",
            "initial_backoff",
            "max_backoff",
            "shutdown_timeout",
        ):
            value = getattr(self, name)
            # NaN fails both comparisons
            if not value >= 0 or value == float("inf"):
                raise ConfigurationError(f"{name} must be a finite, non-negative number")
        if self.schedule_delay == 0 or self.export_timeout == 0:
            raise ConfigurationError("schedule_delay and export_timeout must be positive")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PipelineConfig":
        """Build a config from OTEL_* environment variables.

        Durations in OTEL_BLRP_* variables are milliseconds, as in the
        OpenTelemetry SDKs. Unset variables keep their defaults.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            Validated PipelineConfig.

        Raises:
            ConfigurationError: If a variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        base = env.get("OTEL_EXPORTER_OTLP_ENDPOINT")
        logs_endpoint = env.get("OTEL_EXPORTER_OTLP_LOGS_ENDPOINT")
        if logs_endpoint:
            kwargs["endpoint"] = logs_endpoint
        elif base:
            kwargs["endpoint"] = base.rstrip("/") + LOGS_PATH

        if "OTEL_EXPORTER_OTLP_HEADERS" in env:
            kwargs["headers"] = parse_key_value_list(env["OTEL_EXPORTER_OTLP_HEADERS"])

        millis = {
            "OTEL_BLRP_SCHEDULE_DELAY": "schedule_delay",
            "OTEL_BLRP_EXPORT_TIMEOUT": "export_timeout",
        }
        for var, name in millis.items():
            if var in env:
                kwargs[name] = _parse_number(var, env[var], float) / 1000.0

        integers = {
            "OTEL_BLRP_MAX_QUEUE_SIZE": "queue_capacity",
            "OTEL_BLRP_MAX_EXPORT_BATCH_SIZE": "max_batch_size",
            "OTELPIPE_MAX_RETRIES": "max_retries",
        }
        for var, name in integers.items():
            if var in env:
                kwargs[name] = _parse_number(var, env[var], int)

        if "OTELPIPE_SHUTDOWN_TIMEOUT" in env:
            kwargs["shutdown_timeout"] = _parse_number(
                "OTELPIPE_SHUTDOWN_TIMEOUT", env["OTELPIPE_SHUTDOWN_TIMEOUT"], float
            )
        if "OTELPIPE_OVERFLOW_POLICY" in env:
            kwargs["overflow_policy"] = _parse_policy(env["OTELPIPE_OVERFLOW_POLICY"])

        return cls(**kwargs)  # type: ignore[arg-type]


def parse_key_value_list(raw: str) -> dict[str, str]:
    """Parse ``k1=v1,k2=v2`` as used by OTEL_* header and attribute variables.

    Empty items are skipped. Raises ConfigurationError on items without '='.
    """
    result: dict[str, str] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(f"invalid key=value item: {item!r}")
        result[key.strip()] = value.strip()
    return result


def _parse_number(var: str, raw: str, kind: type) -> int | float:
    try:
        return kind(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{var}: expected a number, got {raw!r}") from e


def _parse_policy(raw: str) -> OverflowPolicy:
    try:
        return OverflowPolicy(raw.strip().lower().replace("-", "_"))
    except ValueError as e:
        valid = ", ".join(p.value for p in OverflowPolicy)
        raise ConfigurationError(
            f"unknown overflow policy {raw!r} (expected one of: {valid})"
        ) from e
