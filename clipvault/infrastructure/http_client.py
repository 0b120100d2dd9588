"""HTTP Client for shared connection management.

This module provides a managed httpx.AsyncClient for reusing
HTTP connections across the application.
"""

from typing import Any

import httpx

from clipvault.core.logging import get_logger

logger = get_logger(__name__)


class HTTPClient:
    """Managed HTTP client with connection reuse.

    Create once at startup, inject where needed, close at shutdown.
    Two instances are typically used: one bound to the record API
    (base URL + bearer token) and one for presigned object-store URLs.

    Example:
        # At startup
        api = HTTPClient(base_url="https://app.example.com", headers={...})

        # In service
        response = await api.post("/api/videos/upload-url", json={...})

        # At shutdown
        await api.close()
    """

    def __init__(
        self,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        max_connections: int = 20,
        max_keepalive_connections: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize HTTP client.

        Args:
            base_url: Base URL prepended to relative request URLs
            headers: Default headers sent with every request
            timeout: Request timeout in seconds
            max_connections: Maximum number of connections
            max_keepalive_connections: Maximum keepalive connections
            transport: Custom transport (used by tests)
        """
        kwargs: dict[str, Any] = {}
        if transport is not None:
            kwargs["transport"] = transport

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
            follow_redirects=True,
            **kwargs,
        )
        logger.info(
            "HTTP client initialized",
            base_url=base_url or None,
            timeout=timeout,
            max_connections=max_connections,
            max_keepalive=max_keepalive_connections,
        )

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send GET request."""
        return await self._client.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send POST request."""
        return await self._client.post(url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send PUT request."""
        return await self._client.put(url, **kwargs)

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()
        logger.info("HTTP client closed")

    async def __aenter__(self) -> "HTTPClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


__all__ = ["HTTPClient"]
