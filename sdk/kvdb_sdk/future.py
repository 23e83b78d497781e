"""
Async execution handle for submitted operations.

DbClient.execute() returns an OperationFuture immediately; the HTTP
exchange runs as an independent asyncio task.

Example:
    >>> future = db.execute(KvFetchOperation("users", "alice"))
    >>> obj = await future.result(timeout=3)

Invariants:
    - A future resolves exactly once: to a value or to an exception
    - result(timeout) never waits longer than ``timeout``; a timed-out wait
      leaves the exchange running and the future pending
    - cancel() is advisory: the late result is discarded, but the request
      may still have reached the service
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Generator, Generic, Optional, TypeVar

from .errors import OperationTimeoutError

if TYPE_CHECKING:
    from .operations import Operation

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationFuture(Generic[T]):
    """Pending result of an operation submitted to DbClient.

    Awaiting the future directly is the same as ``result()`` without a
    timeout.
    """

    def __init__(self, operation: Operation[T], task: asyncio.Task[T]) -> None:
        self._operation = operation
        self._task = task
        self._cancelled = False
        self._callbacks: list[Callable[[OperationFuture[T]], Any]] = []
        task.add_done_callback(self._on_task_done)

    @property
    def operation(self) -> Operation[T]:
        """The operation this future belongs to."""
        return self._operation

    def done(self) -> bool:
        """Whether the future has resolved or been cancelled."""
        return self._cancelled or self._task.done()

    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Request cancellation.

        Returns:
            False if the future had already resolved, True otherwise
        """
        if self.done():
            return False

        self._cancelled = True
        self._task.cancel()
        logger.debug(f"Cancelled {self._operation.name}")
        self._run_callbacks()
        return True

    async def result(self, timeout: Optional[float] = None) -> T:
        """Wait for the operation's result.

        Args:
            timeout: Seconds to wait; None waits until resolution

        Returns:
            The interpreted result of the operation

        Raises:
            OperationTimeoutError: If the timeout elapsed first
            asyncio.CancelledError: If the future was cancelled
            KvDbError: Transport, deserialization or service failure
        """
        if self._cancelled:
            raise asyncio.CancelledError(f"{self._operation.name} was cancelled")

        try:
            value = await asyncio.wait_for(asyncio.shield(self._task), timeout)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                f"{self._operation.name} did not complete within {timeout}s",
                timeout=timeout,
            ) from e

        if self._cancelled:
            raise asyncio.CancelledError(f"{self._operation.name} was cancelled")
        return value

    def exception(self) -> Optional[BaseException]:
        """Exception the operation failed with, or None if it succeeded.

        Raises:
            asyncio.InvalidStateError: If the future is still pending
            asyncio.CancelledError: If the future was cancelled
        """
        if self._cancelled:
            raise asyncio.CancelledError(f"{self._operation.name} was cancelled")
        if not self._task.done():
            raise asyncio.InvalidStateError("Operation has not completed yet")
        return self._task.exception()

    def add_done_callback(self, fn: Callable[[OperationFuture[T]], Any]) -> None:
        """Call ``fn(future)`` once the future resolves or is cancelled."""
        if self.done():
            self._task.get_loop().call_soon(fn, self)
        else:
            self._callbacks.append(fn)

    def _on_task_done(self, task: asyncio.Task[T]) -> None:
        # Mark the task's exception as retrieved; callers read it through result().
        if not task.cancelled():
            task.exception()
        if not self._cancelled:
            self._run_callbacks()

    def _run_callbacks(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for fn in callbacks:
            try:
                fn(self)
            except Exception:
                logger.exception(f"Done callback for {self._operation.name} failed")

    def __await__(self) -> Generator[Any, None, T]:
        return self.result().__await__()

    def __repr__(self) -> str:
        if self._cancelled:
            state = "cancelled"
        elif self._task.done():
            state = "done"
        else:
            state = "pending"
        return f"<OperationFuture {self._operation.name} {state}>"
