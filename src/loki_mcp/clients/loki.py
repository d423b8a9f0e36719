"""Grafana Loki API client and endpoint URL builders."""

import logging
from typing import Any, TypeVar
from urllib.parse import quote, urlencode

import httpx
from pydantic import ValidationError

from loki_mcp.clients.base import BaseHTTPClient
from loki_mcp.models.config import LokiConfig
from loki_mcp.models.errors import BackendDecodeError, LokiMCPError, MalformedBaseURL
from loki_mcp.models.requests import NANOSECONDS_PER_SECOND, ResolvedConfig
from loki_mcp.models.responses import LabelsResponse, LokiResponse, QueryResponse

logger = logging.getLogger(__name__)

QUERY_RANGE_PATH = "/loki/api/v1/query_range"
LABELS_PATH = "/loki/api/v1/labels"
LABEL_VALUES_PATH = "/loki/api/v1/label/{label}/values"
READY_PATH = "/ready"

ORG_ID_HEADER = "X-Scope-OrgID"

R = TypeVar("R", bound=LokiResponse)


def normalize_base_url(base_url: str) -> str:
    """
    Validate the Loki base URL and return it without a trailing slash.

    Raises:
        MalformedBaseURL: If the URL cannot be parsed or has no scheme/host
    """
    try:
        url = httpx.URL(base_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise MalformedBaseURL(
            f"invalid Loki URL {base_url!r}: {e}",
            details={"url": base_url, "error": str(e)},
        ) from e

    if url.scheme not in ("http", "https") or not url.host:
        raise MalformedBaseURL(
            f"invalid Loki URL {base_url!r}: expected http(s)://host[:port][/path]",
            details={"url": base_url},
        )

    netloc = url.netloc.decode("ascii")
    if url.userinfo:
        netloc = f"{url.userinfo.decode('ascii')}@{netloc}"
    path = url.raw_path.decode("ascii").split("?", 1)[0].rstrip("/")
    return f"{url.scheme}://{netloc}{path}"


def _nanoseconds(unix_seconds: int) -> str:
    return str(unix_seconds * NANOSECONDS_PER_SECOND)


def build_query_url(base_url: str, query: str, start: int, end: int, limit: int) -> str:
    """
    Build the query_range URL.

    Args:
        base_url: Loki base URL
        query: LogQL expression, passed through verbatim
        start: Window start in Unix seconds
        end: Window end in Unix seconds
        limit: Maximum number of entries

    Returns:
        Absolute URL with form-encoded query parameters
    """
    params = [
        ("query", query),
        ("start", _nanoseconds(start)),
        ("end", _nanoseconds(end)),
        ("limit", str(limit)),
    ]
    return f"{normalize_base_url(base_url)}{QUERY_RANGE_PATH}?{urlencode(params)}"


def build_labels_url(base_url: str, start: int, end: int) -> str:
    """Build the label names URL."""
    params = [("start", _nanoseconds(start)), ("end", _nanoseconds(end))]
    return f"{normalize_base_url(base_url)}{LABELS_PATH}?{urlencode(params)}"


def build_label_values_url(base_url: str, label: str, start: int, end: int) -> str:
    """Build the label values URL; the label is escaped as one path segment."""
    path = LABEL_VALUES_PATH.format(label=quote(label, safe=""))
    params = [("start", _nanoseconds(start)), ("end", _nanoseconds(end))]
    return f"{normalize_base_url(base_url)}{path}?{urlencode(params)}"


class LokiClient(BaseHTTPClient):
    """Client for the Loki HTTP API."""

    def __init__(self, settings: ResolvedConfig, config: LokiConfig):
        """
        Initialize Loki client.

        A bearer token takes precedence over basic auth when both are set.

        Args:
            settings: Resolved connection settings for this call
            config: Loki timeout and TLS configuration
        """
        headers = {"Accept": "application/json"}
        auth: httpx.Auth | None = None

        if settings.token:
            headers["Authorization"] = f"Bearer {settings.token}"
        elif settings.username:
            auth = httpx.BasicAuth(settings.username, settings.password)

        if settings.org_id:
            headers[ORG_ID_HEADER] = settings.org_id

        super().__init__(
            base_url=settings.url,
            timeout_seconds=config.timeout_seconds,
            headers=headers,
            auth=auth,
            verify_ssl=config.verify_ssl,
        )
        self.settings = settings

    async def fetch(self, url: str) -> dict[str, Any]:
        """
        GET a Loki endpoint and decode its JSON envelope.

        Raises:
            BackendUnreachable: On timeout or network error
            BackendHTTPError: On non-2xx status
            BackendDecodeError: If the body is not a JSON object
        """
        logger.debug(f"Loki request: GET {url}")
        response = await self.get(url)

        try:
            payload = response.json()
        except ValueError as e:
            raise BackendDecodeError(
                f"response is not valid JSON: {e}",
                details={"response": response.text[:500]},
            ) from e

        if not isinstance(payload, dict):
            raise BackendDecodeError(
                f"expected a JSON object, got {type(payload).__name__}",
                details={"response": response.text[:500]},
            )

        return payload

    async def _fetch_as(self, url: str, model: type[R]) -> R:
        payload = await self.fetch(url)
        try:
            return model.from_payload(payload)
        except ValidationError as e:
            raise BackendDecodeError(
                f"unexpected response shape: {e.error_count()} validation error(s)",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    async def query_range(self, url: str) -> QueryResponse:
        """Execute a query_range URL built by build_query_url."""
        return await self._fetch_as(url, QueryResponse)

    async def labels(self, url: str) -> LabelsResponse:
        """Execute a label names URL built by build_labels_url."""
        return await self._fetch_as(url, LabelsResponse)

    async def label_values(self, url: str) -> LabelsResponse:
        """Execute a label values URL built by build_label_values_url."""
        return await self._fetch_as(url, LabelsResponse)

    async def health_check(self) -> bool:
        """
        Check if Loki is ready.

        Returns:
            True if healthy, False otherwise
        """
        full_url = f"{self.base_url}{READY_PATH}"
        logger.debug(f"Loki health check: {full_url}")
        try:
            response = await self.get(READY_PATH)
            logger.debug(f"Loki health response: {response.status_code} - {response.text[:200]}")
            return True
        except LokiMCPError as e:
            logger.debug(f"Loki health check failed: {e}")
            return False
