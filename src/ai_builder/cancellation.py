"""
Cancellation scope for one generation.

A scope owns every task a generation starts. Cancelling the scope cancels
all of them at once, including detached side tasks, and marks the scope so
that late results are discarded instead of being written into an outcome.
"""

import asyncio
import logging
from typing import Any, Awaitable, Coroutine, Optional, Set, TypeVar

from .exceptions import CancelledError, StageTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationScope:
    """
    Group of tasks cancelled together.

    Usage:
        scope = CancellationScope("generation-1")
        value = await scope.run(fetch(), timeout=60)
        scope.spawn(write_history(), detached=True)
        scope.close()
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or f"scope-{id(self):x}"
        self._tasks: Set[asyncio.Task] = set()
        self._detached: Set[asyncio.Task] = set()
        self._cancelled = False
        self._closed = False

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._cancelled

    @property
    def closed(self) -> bool:
        """Whether the generation that owns this scope has finished normally."""
        return self._closed

    @property
    def active_tasks(self) -> int:
        return len(self._tasks) + len(self._detached)

    def spawn(
        self,
        coro: Coroutine[Any, Any, T],
        *,
        name: Optional[str] = None,
        detached: bool = False
    ) -> "asyncio.Task[T]":
        """
        Start a coroutine as a task owned by this scope.

        Args:
            coro: Coroutine to run
            name: Optional task name
            detached: True for side tasks that outlive close() and are only
                stopped by cancel()

        Returns:
            The created task

        Raises:
            CancelledError: If the scope is already cancelled
        """
        if self._cancelled:
            coro.close()
            raise CancelledError(f"Scope {self.name} is cancelled")

        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)

        bucket = self._detached if detached else self._tasks
        bucket.add(task)
        task.add_done_callback(bucket.discard)
        if detached:
            task.add_done_callback(self._log_detached_failure)
        return task

    async def run(self, coro: Awaitable[T], timeout: Optional[float] = None) -> T:
        """
        Run a coroutine inside the scope and wait for it.

        Args:
            coro: Coroutine to run
            timeout: Optional deadline in seconds

        Returns:
            The coroutine's result

        Raises:
            CancelledError: If the scope was cancelled while waiting
            StageTimeoutError: If the deadline expired
            asyncio.CancelledError: If the caller's own task was cancelled
        """
        task = self.spawn(coro)
        try:
            if timeout is None:
                return await task
            return await asyncio.wait_for(task, timeout=timeout)
        except asyncio.TimeoutError:
            raise StageTimeoutError(
                f"Operation timed out after {timeout:g}s", timeout=timeout
            ) from None
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if self._cancelled and (current is None or current.cancelling() == 0):
                raise CancelledError(f"Scope {self.name} was cancelled") from None
            raise

    def cancel(self) -> int:
        """
        Cancel every task in the scope, detached tasks included.

        Returns:
            Number of tasks that were still running
        """
        self._cancelled = True
        pending = [t for t in (*self._tasks, *self._detached) if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.info(f"Cancelled {len(pending)} task(s) in {self.name}")
        return len(pending)

    def close(self) -> None:
        """Mark the owning generation as finished; detached tasks keep running."""
        self._closed = True

    async def drain(self) -> None:
        """Wait for all detached tasks to finish."""
        if self._detached:
            await asyncio.gather(*list(self._detached), return_exceptions=True)

    @staticmethod
    def _log_detached_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Detached task {task.get_name()} failed: {exc}")
