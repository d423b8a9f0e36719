"""Base HTTP client with timeout support and single-attempt error mapping."""

from typing import Any

import httpx

from loki_mcp.models.errors import BackendHTTPError, BackendUnreachable


class BaseHTTPClient:
    """
    Base HTTP client with error handling.

    Every request is attempted exactly once. Failures are mapped to
    loki-mcp errors and raised to the caller.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: int = 30,
        headers: dict[str, str] | None = None,
        auth: httpx.Auth | None = None,
        verify_ssl: bool = True,
    ):
        """
        Initialize HTTP client.

        Args:
            base_url: Base URL for the API
            timeout_seconds: Request timeout in seconds
            headers: Default headers to include in all requests
            auth: Authentication applied to every request
            verify_ssl: Whether to verify SSL certificates
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.default_headers = headers or {}
        self.auth = auth
        self.verify_ssl = verify_ssl
        self._client: httpx.AsyncClient | None = None

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            headers=self.default_headers,
            auth=self.auth,
            verify=self.verify_ssl,
        )

    async def __aenter__(self) -> "BaseHTTPClient":
        """Async context manager entry."""
        self._client = self._build_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Make a single HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: API path or absolute URL
            params: Query parameters
            headers: Additional headers

        Returns:
            HTTP response with a 2xx status

        Raises:
            BackendUnreachable: On timeout or network error
            BackendHTTPError: On any non-2xx status
        """
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=url,
                params=params,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise BackendUnreachable(
                f"request timed out after {self.timeout_seconds}s",
                details={"timeout_seconds": self.timeout_seconds, "error": str(e)},
            ) from e
        except httpx.RequestError as e:
            raise BackendUnreachable(
                f"network error: {e}",
                details={"error": str(e)},
            ) from e

        if not response.is_success:
            raise BackendHTTPError(
                status_code=response.status_code,
                body=response.text,
                url=str(response.url),
            )

        return response

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Make GET request.

        Args:
            url: API path or absolute URL
            params: Query parameters
            headers: Additional headers

        Returns:
            HTTP response
        """
        return await self._request("GET", url, params=params, headers=headers)
