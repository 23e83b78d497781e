"""
KvDB Client for Python SDK.

This module provides the main client interface:
- DbClient: Submits operations to the KvDB service
- OperationFuture: Handle for an in-flight operation (see future.py)

Example:
    >>> async with DbClient(ClientSettings(api_key="...")) as db:
    ...     meta = await db.execute(KvStoreOperation("users", "alice", {"name": "Alice"})).result(3)
    ...     obj = await db.execute(KvFetchOperation("users", "alice", User)).result(3)

Invariants:
    - execute() returns immediately; failures arrive only through the future
    - Each submitted operation is interpreted at most once and never retried
    - Operations run concurrently over one shared connection pool
    - Pages of a listing are fetched strictly one after another
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional, TypeVar

from ._http_transport import HttpxTransport, Transport
from .config import ClientSettings
from .errors import KvDbError, TransportError, ValidationError
from .future import OperationFuture
from .operations import Operation
from .results import KvList, KvObject

logger = logging.getLogger(__name__)

R = TypeVar("R")
T = TypeVar("T")


class DbClient:
    """Client for the KvDB service.

    Renders operations into HTTP requests, sends them over the transport
    and resolves each OperationFuture with the operation's interpreted
    result or a classified failure.

    Example:
        >>> async with DbClient() as db:
        ...     found = await db.execute(KvFetchOperation("users", "alice")).result(3)
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        transport: Transport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            settings: Client settings; loaded from the environment if omitted
            transport: Optional transport; defaults to HttpxTransport
        """
        self.settings = settings or ClientSettings()
        self._transport: Transport = transport or HttpxTransport(self.settings)
        self._tasks: set[asyncio.Task[Any]] = set()
        self._connected = False

    async def connect(self) -> None:
        """Connect to the service."""
        if self._connected:
            return

        try:
            await self._transport.connect()
            self._connected = True
        except Exception as e:
            raise TransportError(
                f"Failed to connect: {e}",
                address=self.settings.base_url,
                cause=e,
            ) from e

    async def close(self) -> None:
        """Close the connection."""
        if self._connected:
            await self._transport.close()
            self._connected = False

    async def __aenter__(self) -> DbClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def execute(self, operation: Operation[R]) -> OperationFuture[R]:
        """Submit an operation.

        Must be called from a running event loop.

        Args:
            operation: Operation to run

        Returns:
            Pending future for the operation's result
        """
        if not isinstance(operation, Operation):
            raise ValidationError(
                f"Expected an Operation, got {type(operation).__name__}",
                field_name="operation",
            )

        loop = asyncio.get_running_loop()
        task = loop.create_task(self._dispatch(operation), name=f"kvdb:{operation.name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return OperationFuture(operation, task)

    async def _dispatch(self, operation: Operation[R]) -> R:
        """Run one exchange and interpret its response."""
        request = operation.render(self.settings.api_version)

        try:
            response = await self._transport.exchange(request)
        except TransportError as e:
            logger.warning(f"{operation.name} transport failure: {e}")
            raise

        logger.debug(f"{request.method} {request.path} -> {response.status}")

        try:
            return operation.interpret(response)
        except KvDbError as e:
            logger.warning(f"{operation.name} failed: [{e.code}] {e.message}")
            raise

    async def iter_list(
        self,
        kv_list: KvList[T],
        timeout: Optional[float] = None,
    ) -> AsyncIterator[KvObject[T]]:
        """Iterate a listing across pages.

        Yields the objects of ``kv_list`` first. Only once that page is
        exhausted, and only if it carries a continuation link, is the next
        page fetched; iteration ends on a page without one.

        Args:
            kv_list: First page, as returned by a KvListOperation
            timeout: Per-page wait timeout

        Yields:
            KvObjects in service order
        """
        page = kv_list
        while True:
            for obj in page:
                yield obj

            operation = page.next_operation()
            if operation is None:
                return

            logger.debug(f"Fetching next page of '{page.collection}'")
            page = await self.execute(operation).result(timeout)
