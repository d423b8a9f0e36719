"""Loki MCP tools."""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from loki_mcp.clients.loki import (
    LokiClient,
    build_label_values_url,
    build_labels_url,
    build_query_url,
)
from loki_mcp.config import resolve_config
from loki_mcp.formatting import (
    format_label_names_result,
    format_label_values_result,
    format_query_result,
)
from loki_mcp.models.config import LokiConfig
from loki_mcp.models.errors import ArgumentDecodeError
from loki_mcp.models.requests import (
    LokiLabelNamesRequest,
    LokiLabelValuesRequest,
    LokiQueryRequest,
)
from loki_mcp.timeparse import resolve_time_range

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _decode_arguments(model: type[M], arguments: dict[str, Any] | None) -> M:
    """
    Validate raw tool arguments against the tool's request model.

    Raises:
        ArgumentDecodeError: On a missing required field or a type mismatch
    """
    try:
        return model.model_validate(arguments or {})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise ArgumentDecodeError(
            problems,
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e


def _effective_limit(limit: float | None, default: int) -> int:
    if limit is not None and limit > 0:
        return int(limit)
    return default


async def loki_query(
    arguments: dict[str, Any] | None,
    environ: Mapping[str, str],
    config: LokiConfig,
    now: datetime | None = None,
) -> str:
    """
    Run a LogQL query against Loki's query_range endpoint.

    Args:
        arguments: Raw tool arguments (query required)
        environ: Snapshot of the LOKI_* environment variables
        config: Loki timeout/TLS/default-limit settings
        now: Reference time for 'now' and relative offsets. Default: current time

    Returns:
        Query result rendered in the requested format (default: raw)

    Raises:
        LokiMCPError: On any failure; no partial result is returned
    """
    request = _decode_arguments(LokiQueryRequest, arguments)
    settings = resolve_config(request, environ)
    time_range = resolve_time_range(request.start, request.end, now)
    limit = _effective_limit(request.limit, config.default_limit)

    url = build_query_url(settings.url, request.query, time_range.start, time_range.end, limit)
    logger.debug(f"loki_query - query: {request.query}, limit: {limit}, format: {settings.format}")

    async with LokiClient(settings, config) as client:
        response = await client.query_range(url)

    return format_query_result(response, settings.format)


async def loki_label_names(
    arguments: dict[str, Any] | None,
    environ: Mapping[str, str],
    config: LokiConfig,
    now: datetime | None = None,
) -> str:
    """
    List the label names Loki has seen in the time window.

    Returns:
        Label names rendered in the requested format (default: raw)
    """
    request = _decode_arguments(LokiLabelNamesRequest, arguments)
    settings = resolve_config(request, environ)
    time_range = resolve_time_range(request.start, request.end, now)

    url = build_labels_url(settings.url, time_range.start, time_range.end)

    async with LokiClient(settings, config) as client:
        response = await client.labels(url)

    return format_label_names_result(response, settings.format)


async def loki_label_values(
    arguments: dict[str, Any] | None,
    environ: Mapping[str, str],
    config: LokiConfig,
    now: datetime | None = None,
) -> str:
    """
    List the values of one label in the time window.

    Returns:
        Label values rendered in the requested format (default: raw)
    """
    request = _decode_arguments(LokiLabelValuesRequest, arguments)
    settings = resolve_config(request, environ)
    time_range = resolve_time_range(request.start, request.end, now)

    url = build_label_values_url(settings.url, request.label, time_range.start, time_range.end)
    logger.debug(f"loki_label_values - label: {request.label}")

    async with LokiClient(settings, config) as client:
        response = await client.label_values(url)

    return format_label_values_result(response, settings.format)
