"""Tests for per-execution locking and step cancellation."""

import asyncio

import pytest

from src.novohaven.services.execution_coordinator import ExecutionCoordinator, StepCancelledError

pytestmark = pytest.mark.unit


class TestExecutionCoordinator:
    async def test_run_step_returns_result_and_untracks(self):
        coordinator = ExecutionCoordinator()

        async def work():
            assert coordinator.is_running(1)
            return "done"

        assert await coordinator.run_step(1, work()) == "done"
        assert coordinator.in_flight_count == 0

    async def test_cancel_interrupts_step(self):
        coordinator = ExecutionCoordinator()
        started = asyncio.Event()

        async def forever():
            started.set()
            await asyncio.Event().wait()

        task = asyncio.create_task(coordinator.run_step(7, forever()))
        await started.wait()

        assert coordinator.cancel(7) is True
        with pytest.raises(StepCancelledError):
            await task
        assert not coordinator.is_running(7)

    async def test_cancel_without_running_step(self):
        assert ExecutionCoordinator().cancel(3) is False

    async def test_caller_cancellation_propagates(self):
        coordinator = ExecutionCoordinator()
        started = asyncio.Event()

        async def forever():
            started.set()
            await asyncio.Event().wait()

        task = asyncio.create_task(coordinator.run_step(2, forever()))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_hold_serializes_one_execution(self):
        coordinator = ExecutionCoordinator()
        order: list[str] = []

        async def action(name: str):
            async with coordinator.hold(5):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(action("a"), action("b"))
        assert order == ["a-start", "a-end", "b-start", "b-end"]

    async def test_hold_does_not_block_other_executions(self):
        coordinator = ExecutionCoordinator()
        async with coordinator.hold(1):
            async with asyncio.timeout(1):
                async with coordinator.hold(2):
                    pass

    async def test_lock_released_after_hold(self):
        coordinator = ExecutionCoordinator()
        async with coordinator.hold(4):
            assert 4 in coordinator._locks
        assert coordinator._locks == {}
        assert coordinator._holders == {}

    async def test_lock_kept_while_waiters_remain(self):
        coordinator = ExecutionCoordinator()
        entered = asyncio.Event()
        release = asyncio.Event()

        async def first():
            async with coordinator.hold(9):
                entered.set()
                await release.wait()

        async def second():
            async with coordinator.hold(9):
                assert coordinator._holders[9] == 1

        first_task = asyncio.create_task(first())
        await entered.wait()
        second_task = asyncio.create_task(second())
        await asyncio.sleep(0)
        assert coordinator._holders[9] == 2

        release.set()
        await asyncio.gather(first_task, second_task)
        assert coordinator._locks == {}

    async def test_lock_released_when_body_raises(self):
        coordinator = ExecutionCoordinator()
        with pytest.raises(RuntimeError):
            async with coordinator.hold(11):
                raise RuntimeError("boom")
        assert 11 not in coordinator._locks
