"""
Internal HTTP transport for the KvDB SDK.

This module provides the low-level HTTP communication layer.
It is internal to the SDK and should not be used directly by users.

Users should use DbClient instead, which renders operations into
requests and interprets the responses.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from . import __version__
from .config import ClientSettings
from .errors import TransportError
from .wire import JSON_CONTENT_TYPE, HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """Performs one HTTP exchange per call.

    Implementations must be safe to share across concurrent operations
    and must raise TransportError for network or protocol failures.
    """

    async def connect(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def exchange(self, request: HttpRequest) -> HttpResponse:
        ...


class HttpxTransport:
    """Transport backed by a pooled ``httpx.AsyncClient``.

    This is an internal class - users should use DbClient instead.
    """

    def __init__(
        self,
        settings: ClientSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            settings: Client settings (endpoint, auth, timeouts, pool size)
            transport: Optional httpx transport, e.g. httpx.MockTransport
        """
        self._settings = settings
        self._inner = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def address(self) -> str:
        return self._settings.base_url

    async def connect(self) -> None:
        """Create the connection pool."""
        if self._client is not None:
            return

        settings = self._settings
        auth = httpx.BasicAuth(settings.api_key, "") if settings.api_key else None
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            auth=auth,
            headers={
                "User-Agent": f"kvdb-sdk/{__version__}",
                "Accept": JSON_CONTENT_TYPE,
            },
            timeout=httpx.Timeout(settings.read_timeout, connect=settings.connect_timeout),
            limits=httpx.Limits(max_connections=settings.max_connections),
            transport=self._inner,
        )
        logger.debug(f"Connected to KvDB service at {settings.base_url}")

    async def close(self) -> None:
        """Close the connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug("Disconnected from KvDB service")

    async def __aenter__(self) -> HttpxTransport:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Ensure we're connected and return the client."""
        if self._client is None:
            raise TransportError("Not connected. Call connect() first.", address=self.address)
        return self._client

    async def exchange(self, request: HttpRequest) -> HttpResponse:
        """Send a request and read the full response.

        Raises:
            TransportError: If the request could not be completed
        """
        client = self._ensure_connected()
        try:
            response = await client.request(
                request.method,
                request.path,
                headers=request.headers,
                content=request.body,
            )
        except httpx.HTTPError as e:
            raise TransportError(
                f"{request.method} {request.path} failed: {e}",
                address=self.address,
                cause=e,
            ) from e

        return HttpResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )
