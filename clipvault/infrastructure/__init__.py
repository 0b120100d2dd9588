"""Infrastructure layer.

Provides clients for external services:
- HTTPClient: managed httpx.AsyncClient
"""

from clipvault.infrastructure.http_client import HTTPClient

__all__ = [
    "HTTPClient",
]
