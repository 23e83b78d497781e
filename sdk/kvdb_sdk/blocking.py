"""
Blocking facade over DbClient.

BlockingClient runs a private event loop on a daemon thread and waits
on every submitted operation with a default timeout. It adds nothing to
the async semantics: every result and every error kind is passed through
unchanged.

Example:
    >>> with BlockingClient(ClientSettings(api_key="...")) as kv:
    ...     meta = kv.kv_put("users", "alice", {"name": "Alice"})
    ...     for obj in kv.kv_list_all("users", value_type=User):
    ...         print(obj.key, obj.value)
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Coroutine, Iterator, Optional, Sequence, TypeVar, Union

from ._http_transport import Transport
from .client import DbClient
from .conditions import UNCONDITIONAL, MustMatch, MustNotExist
from .config import ClientSettings
from .operations import (
    CollectionDeleteOperation,
    EventFetchOperation,
    EventStoreOperation,
    KvDeleteOperation,
    KvFetchOperation,
    KvListOperation,
    KvStoreOperation,
    Operation,
    RelationFetchOperation,
    RelationStoreOperation,
)
from .results import Event, KvList, KvMetadata, KvObject

logger = logging.getLogger(__name__)

R = TypeVar("R")


class BlockingClient:
    """Synchronous client for the KvDB service."""

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        transport: Transport | None = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Start the background loop and connect.

        Args:
            settings: Client settings; loaded from the environment if omitted
            transport: Optional transport passed through to DbClient
            timeout: Default wait per operation; settings.default_timeout if omitted
        """
        self._client = DbClient(settings, transport=transport)
        self.timeout = timeout if timeout is not None else self._client.settings.default_timeout
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            name="kvdb-blocking-client",
            daemon=True,
        )
        self._thread.start()
        self._closed = False
        try:
            self._run(self._client.connect())
        except BaseException:
            self._stop_loop()
            raise

    def _run(self, coro: Coroutine[Any, Any, R]) -> R:
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    def execute(self, operation: Operation[R], timeout: Optional[float] = None) -> R:
        """Run an operation and wait for its result.

        Raises:
            OperationTimeoutError: If the wait exceeded the timeout
            KvDbError: Any other failure, as raised by the async client
        """
        wait = self.timeout if timeout is None else timeout

        async def run() -> R:
            return await self._client.execute(operation).result(wait)

        return self._run(run())

    def close(self) -> None:
        """Close the connection and stop the background loop."""
        if self._closed:
            return
        self._closed = True
        try:
            self._run(self._client.close())
        finally:
            self._stop_loop()
        logger.debug("Blocking client closed")

    def _stop_loop(self) -> None:
        self._closed = True
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()

    def __enter__(self) -> BlockingClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # Key/value

    def kv_put(self, collection: str, key: str, value: Any) -> Optional[KvMetadata]:
        return self.execute(KvStoreOperation(collection, key, value))

    def kv_put_if_absent(self, collection: str, key: str, value: Any) -> Optional[KvMetadata]:
        """Store only if the key is empty; None if a value already exists."""
        return self.execute(KvStoreOperation(collection, key, value, MustNotExist()))

    def kv_put_if_match(self, collection: str, key: str, value: Any, ref: str) -> Optional[KvMetadata]:
        """Store only if the current ref is ``ref``; None otherwise."""
        return self.execute(KvStoreOperation(collection, key, value, MustMatch(ref)))

    def kv_get(
        self,
        collection: str,
        key: str,
        value_type: Any = str,
        ref: Optional[str] = None,
    ) -> Optional[KvObject[Any]]:
        return self.execute(KvFetchOperation(collection, key, value_type, ref=ref))

    def kv_delete(self, collection: str, key: str, ref: Optional[str] = None) -> bool:
        condition = MustMatch(ref) if ref is not None else UNCONDITIONAL
        return self.execute(KvDeleteOperation(collection, key, condition))

    def kv_purge(self, collection: str, key: str, ref: Optional[str] = None) -> bool:
        """Delete a key together with its history."""
        condition = MustMatch(ref) if ref is not None else UNCONDITIONAL
        return self.execute(KvDeleteOperation(collection, key, condition, purge=True))

    def kv_list(
        self,
        collection: str,
        limit: int = 10,
        value_type: Any = str,
        *,
        start_key: Optional[str] = None,
        after_key: Optional[str] = None,
    ) -> KvList[Any]:
        return self.execute(
            KvListOperation(collection, value_type, limit, start_key=start_key, after_key=after_key)
        )

    def kv_list_all(
        self,
        collection: str,
        limit: int = 10,
        value_type: Any = str,
    ) -> Iterator[KvObject[Any]]:
        """Iterate every object in a collection, fetching pages on demand."""
        page = self.kv_list(collection, limit, value_type)
        while True:
            yield from page

            operation = page.next_operation()
            if operation is None:
                return
            page = self.execute(operation)

    def delete_collection(self, collection: str) -> bool:
        return self.execute(CollectionDeleteOperation(collection))

    # Events

    def event_put(
        self,
        collection: str,
        key: str,
        type: str,
        value: Any,
        timestamp: Optional[int] = None,
    ) -> bool:
        return self.execute(EventStoreOperation(collection, key, type, value, timestamp))

    def event_get(
        self,
        collection: str,
        key: str,
        type: str,
        value_type: Any = str,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> tuple[Event[Any], ...]:
        return self.execute(EventFetchOperation(collection, key, type, value_type, start, end))

    # Relations

    def relation_put(
        self,
        collection: str,
        key: str,
        kind: str,
        to_collection: str,
        to_key: str,
    ) -> bool:
        return self.execute(RelationStoreOperation(collection, key, kind, to_collection, to_key))

    def relation_get(
        self,
        collection: str,
        key: str,
        kinds: Union[str, Sequence[str]],
        value_type: Any = str,
    ) -> tuple[KvObject[Any], ...]:
        return self.execute(RelationFetchOperation(collection, key, kinds, value_type))
