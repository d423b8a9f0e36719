"""Rendering of Loki responses as raw JSON, compact JSON or plain text."""

import json
from datetime import datetime, timezone

from loki_mcp.models.errors import FormatRenderError, UnsupportedFormat
from loki_mcp.models.requests import NANOSECONDS_PER_SECOND
from loki_mcp.models.responses import (
    LabelsResponse,
    LokiResponse,
    MatrixData,
    QueryResponse,
    StreamsData,
    VectorData,
)

FORMAT_RAW = "raw"
FORMAT_JSON = "json"
FORMAT_TEXT = "text"

SUPPORTED_FORMATS = (FORMAT_RAW, FORMAT_JSON, FORMAT_TEXT)


def _check_format(mode: str) -> None:
    if mode not in SUPPORTED_FORMATS:
        raise UnsupportedFormat(
            f"unsupported format {mode!r} (expected one of: {', '.join(SUPPORTED_FORMATS)})",
            details={"format": mode},
        )


def _render_json(response: LokiResponse, mode: str) -> str:
    if mode == FORMAT_RAW:
        return json.dumps(response.payload, indent=2, sort_keys=True)
    return json.dumps(response.payload, separators=(",", ":"))


def _format_time(dt: datetime) -> str:
    """RFC3339 UTC with millisecond precision."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _format_ns_timestamp(ts: str) -> str:
    try:
        ns = int(ts)
    except ValueError as e:
        raise FormatRenderError(f"invalid log entry timestamp: {ts!r}") from e
    seconds, remainder = divmod(ns, NANOSECONDS_PER_SECOND)
    try:
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise FormatRenderError(f"invalid log entry timestamp: {ts!r}") from e
    return _format_time(dt.replace(microsecond=remainder // 1000))


def _format_labels(labels: dict[str, str]) -> str:
    return "{" + ",".join(f"{name}={labels[name]}" for name in sorted(labels)) + "}"


def _streams_text(data: StreamsData) -> str:
    lines = []
    for entry in data.result:
        labels = _format_labels(entry.stream)
        for ts, line in entry.values:
            lines.append(f"{_format_ns_timestamp(ts)} {labels} {line}")
    return "\n".join(lines)


def _samples_text(data: MatrixData | VectorData) -> str:
    lines = []
    if isinstance(data, MatrixData):
        samples = [(series.metric, value) for series in data.result for value in series.values]
    else:
        samples = [(sample.metric, sample.value) for sample in data.result]

    for metric, (ts, value) in samples:
        try:
            dt = datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise FormatRenderError(f"invalid sample timestamp: {ts!r}") from e
        lines.append(f"{_format_time(dt)} {_format_labels(metric)} {value}")
    return "\n".join(lines)


def format_query_result(response: QueryResponse, mode: str) -> str:
    """
    Render a query_range response.

    In text mode each log line becomes
    '<timestamp> {label=value,...} <line>', in the order Loki returned them.
    Metric queries render '<timestamp> {label=value,...} <value>'.
    """
    _check_format(mode)
    if mode != FORMAT_TEXT:
        return _render_json(response, mode)

    if not isinstance(response, QueryResponse):
        raise FormatRenderError(f"expected a query response, got {type(response).__name__}")

    data = response.data
    if isinstance(data, StreamsData):
        return _streams_text(data)
    return _samples_text(data)


def format_label_names_result(response: LabelsResponse, mode: str) -> str:
    """Render label names, one per line in text mode."""
    _check_format(mode)
    if mode != FORMAT_TEXT:
        return _render_json(response, mode)

    if not isinstance(response, LabelsResponse):
        raise FormatRenderError(f"expected a labels response, got {type(response).__name__}")
    return "\n".join(response.data)


def format_label_values_result(response: LabelsResponse, mode: str) -> str:
    """Render the values of one label, one per line in text mode."""
    _check_format(mode)
    if mode != FORMAT_TEXT:
        return _render_json(response, mode)

    if not isinstance(response, LabelsResponse):
        raise FormatRenderError(f"expected a label values response, got {type(response).__name__}")
    return "\n".join(response.data)
