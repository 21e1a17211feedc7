"""Per-execution serialization and cancellation of in-flight steps."""

import asyncio
from collections.abc import AsyncGenerator, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from src.novohaven.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class StepCancelledError(Exception):
    """The in-flight step of an execution was cancelled by the user."""


class ExecutionCoordinator:
    """Serializes state changes per execution and tracks running executor calls.

    Created once per process. ``hold`` guarantees a single writer per
    execution; ``run_step`` registers the executor call so ``cancel`` can
    interrupt it from another request.
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._holders: dict[int, int] = {}
        self._tasks: dict[int, asyncio.Task[Any]] = {}

    @property
    def in_flight_count(self) -> int:
        return len(self._tasks)

    def is_running(self, execution_id: int) -> bool:
        return execution_id in self._tasks

    @asynccontextmanager
    async def hold(self, execution_id: int) -> AsyncGenerator[None]:
        """Exclusive access to one execution's state.

        The lock exists only while someone holds or waits for it.
        """
        lock = self._locks.setdefault(execution_id, asyncio.Lock())
        self._holders[execution_id] = self._holders.get(execution_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[execution_id] -= 1
            if not self._holders[execution_id]:
                del self._holders[execution_id]
                del self._locks[execution_id]

    async def run_step(self, execution_id: int, coro: Coroutine[Any, Any, T]) -> T:
        """Run an executor call as a cancellable task.

        Raises:
            StepCancelledError: If ``cancel`` interrupted the call.
        """
        task = asyncio.create_task(coro)
        self._tasks[execution_id] = task
        logger.debug("Step started", execution_id=execution_id, in_flight=len(self._tasks))
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            raise StepCancelledError(f"Execution {execution_id} was cancelled") from None
        finally:
            self._tasks.pop(execution_id, None)
            logger.debug("Step finished", execution_id=execution_id, in_flight=len(self._tasks))

    def cancel(self, execution_id: int) -> bool:
        """Cancel the execution's in-flight step. Returns False if none is running."""
        task = self._tasks.get(execution_id)
        if task is None or task.done():
            return False
        logger.info("Cancelling in-flight step", execution_id=execution_id)
        task.cancel()
        return True

    def reset(self) -> None:
        """Reset coordinator state. For testing only."""
        self._locks.clear()
        self._holders.clear()
        self._tasks.clear()
