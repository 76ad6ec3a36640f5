"""Core domain models for telemetry records and export outcomes."""

import math
import os
import platform
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

AttributeValue = str | int | float | bool
Attributes = Mapping[str, AttributeValue]

SDK_NAME = "otelpipe"


class RecordKind(str, Enum):
    """Kind of telemetry carried by a Record."""

    LOG = "log"
    SPAN = "span"


def is_attribute_value(value: object) -> bool:
    """Return True if ``value`` can be carried as an attribute value.

    Attribute values are str, int, float or bool. Floats must be finite,
    since NaN and infinity have no JSON representation.
    """
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, (str, int, bool))


def _freeze(attributes: Attributes | None) -> Mapping[str, AttributeValue]:
    """Copy ``attributes`` into a read-only mapping.

    Raises:
        TypeError: If a key is not a str or a value is not a scalar.
        ValueError: If a float value is NaN or infinite.
    """
    frozen = dict(attributes or {})
    for key, value in frozen.items():
        if not isinstance(key, str):
            raise TypeError(f"attribute keys must be str, got {type(key).__name__}")
        if is_attribute_value(value):
            continue
        if isinstance(value, float):
            raise ValueError(f"attribute {key!r} is not a finite number: {value!r}")
        raise TypeError(
            f"attribute {key!r} must be str, int, float or bool, "
            f"got {type(value).__name__}"
        )
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class Resource:
    """Static identity of the process emitting telemetry.

    Attributes:
        attributes: Read-only mapping of resource keys (service.name,
            service.version, deployment.environment, ...) to values.
    """

    attributes: Attributes = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _freeze(self.attributes))

    @classmethod
    def create(
        cls,
        service_name: str = "otelpipe-demo",
        service_version: str = "1.0.0",
        deployment_environment: str = "development",
        instance_id: str | None = None,
        **extra: AttributeValue,
    ) -> "Resource":
        """Build a resource carrying service identity and SDK defaults.

        Args:
            service_name: Logical service name.
            service_version: Service version string.
            deployment_environment: Environment name (development, production, ...).
            instance_id: Unique instance id. A random UUID when omitted.
            **extra: Additional resource attributes. Keys containing dots
                can be passed with ``**{"host.name": "..."}``.

        Returns:
            Resource merged over the SDK default resource.
        """
        identity = {
            "service.name": service_name,
            "service.version": service_version,
            "deployment.environment": deployment_environment,
            "service.instance.id": instance_id or str(uuid.uuid4()),
            **extra,
        }
        return cls.default().merge(cls(identity))

    @classmethod
    def default(cls) -> "Resource":
        """Resource describing the SDK and host."""
        return cls(
            {
                "telemetry.sdk.name": SDK_NAME,
                "telemetry.sdk.language": "python",
                "process.pid": os.getpid(),
                "host.name": platform.node(),
            }
        )

    def merge(self, other: "Resource") -> "Resource":
        """Return a new resource with ``other``'s attributes taking precedence."""
        return Resource({**self.attributes, **other.attributes})

    @property
    def service_name(self) -> str:
        return str(self.attributes.get("service.name", ""))


@dataclass(frozen=True)
class SpanData:
    """Span metadata carried by SPAN records.

    Attributes:
        trace_id: 32 hex character trace id.
        span_id: 16 hex character span id.
        start_time: Unix timestamp in seconds when the span started.
        end_time: Unix timestamp in seconds when the span ended.
        parent_span_id: Span id of the parent, if any.
    """

    trace_id: str
    span_id: str
    start_time: float
    end_time: float
    parent_span_id: str | None = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class Record:
    """A single unit of telemetry, either a log entry or a finished span.

    Attributes:
        timestamp: Unix timestamp in seconds.
        kind: LOG or SPAN.
        severity: Log level (e.g., INFO, ERROR, DEBUG).
        message: Log body, or span name for SPAN records.
        attributes: Additional structured fields.
        resource: Resource the record was tagged with, if any.
        span: Span metadata for SPAN records.
    """

    timestamp: float
    kind: RecordKind
    severity: str
    message: str
    attributes: Attributes = field(default_factory=dict)
    resource: Resource | None = None
    span: SpanData | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _freeze(self.attributes))


@dataclass(frozen=True)
class Batch:
    """Ordered group of records exported together in one call.

    Attributes:
        sequence: Position of the batch in the pipeline's export order.
        records: Records in original enqueue order.
    """

    sequence: int
    records: tuple[Record, ...]

    def __len__(self) -> int:
        return len(self.records)


class ExportStatus(str, Enum):
    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"


@dataclass(frozen=True)
class ExportResult:
    """Outcome of one export attempt."""

    status: ExportStatus
    error: str | None = None

    @classmethod
    def success(cls) -> "ExportResult":
        return cls(ExportStatus.SUCCESS)

    @classmethod
    def transient(cls, error: str) -> "ExportResult":
        return cls(ExportStatus.TRANSIENT_FAILURE, error)

    @classmethod
    def permanent(cls, error: str) -> "ExportResult":
        return cls(ExportStatus.PERMANENT_FAILURE, error)

    @property
    def ok(self) -> bool:
        return self.status is ExportStatus.SUCCESS

    @property
    def retryable(self) -> bool:
        return self.status is ExportStatus.TRANSIENT_FAILURE


@dataclass(frozen=True)
class MetricSample:
    """A single metric measurement.

    Attributes:
        name: Metric name (e.g., otelpipe_exported_records_total).
        timestamp: Unix timestamp in seconds.
        value: The metric value.
        labels: Key-value pairs for metric dimensions.
    """

    name: str
    timestamp: float
    value: float
    labels: dict[str, str] = field(default_factory=dict)
