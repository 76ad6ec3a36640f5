"""NDJSON encoder for records and metric samples."""

import json
from collections.abc import Iterable
from typing import Any

from otelpipe.core.models import MetricSample, Record


def record_to_dict(record: Record) -> dict[str, Any]:
    """Convert a record to a JSON-serialisable dict."""
    obj: dict[str, Any] = {
        "timestamp": record.timestamp,
        "kind": record.kind.value,
        "severity": record.severity,
        "message": record.message,
        "attributes": dict(record.attributes),
    }
    if record.resource is not None:
        obj["resource"] = dict(record.resource.attributes)
    if record.span is not None:
        obj["span"] = {
            "trace_id": record.span.trace_id,
            "span_id": record.span.span_id,
            "parent_span_id": record.span.parent_span_id,
            "start_time": record.span.start_time,
            "end_time": record.span.end_time,
        }
    return obj


def encode_records(records: Iterable[Record]) -> str:
    """Encode records to newline-delimited JSON.

    Args:
        records: An iterable of Record objects.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no records.

    Raises:
        ValueError: If a record carries a NaN or infinite float.
    """
    lines = [json.dumps(record_to_dict(record), allow_nan=False) for record in records]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def encode_metrics(samples: Iterable[MetricSample]) -> str:
    """Encode metric samples to newline-delimited JSON."""
    lines = [
        json.dumps(
            {
                "name": sample.name,
                "timestamp": sample.timestamp,
                "value": sample.value,
                "labels": sample.labels,
            },
            allow_nan=False,
        )
        for sample in samples
    ]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"
