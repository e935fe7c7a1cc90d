"""
Tests for CancellationScope.
"""

import asyncio

import pytest

from ai_builder.cancellation import CancellationScope
from ai_builder.exceptions import CancelledError, StageTimeoutError


async def wait_forever(started: asyncio.Event):
    started.set()
    await asyncio.Event().wait()


class TestCancellationScope:
    """Test CancellationScope."""

    @pytest.mark.asyncio
    async def test_run_returns_result(self):
        scope = CancellationScope("test")

        async def answer():
            return 42

        assert await scope.run(answer()) == 42
        assert scope.active_tasks == 0

    @pytest.mark.asyncio
    async def test_run_timeout(self):
        scope = CancellationScope()

        with pytest.raises(StageTimeoutError) as exc_info:
            await scope.run(asyncio.sleep(1), timeout=0.01)

        assert exc_info.value.timeout == 0.01

    @pytest.mark.asyncio
    async def test_cancel_interrupts_run(self):
        scope = CancellationScope()
        started = asyncio.Event()

        waiter = asyncio.create_task(scope.run(wait_forever(started)))
        await started.wait()

        assert scope.cancel() == 1
        with pytest.raises(CancelledError):
            await waiter
        assert scope.cancelled

    @pytest.mark.asyncio
    async def test_cancel_includes_detached_tasks(self):
        scope = CancellationScope()
        started = asyncio.Event()

        task = scope.spawn(wait_forever(started), detached=True)
        await started.wait()
        scope.close()

        assert scope.closed
        assert scope.cancel() == 1
        await scope.drain()
        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_spawn_after_cancel(self):
        scope = CancellationScope()
        scope.cancel()

        with pytest.raises(CancelledError):
            scope.spawn(asyncio.sleep(0))

    @pytest.mark.asyncio
    async def test_drain_waits_for_detached_tasks(self):
        scope = CancellationScope()
        done = []

        async def side_task():
            await asyncio.sleep(0.01)
            done.append(True)

        scope.spawn(side_task(), detached=True)
        await scope.drain()

        assert done == [True]

    @pytest.mark.asyncio
    async def test_detached_failure_does_not_propagate(self):
        scope = CancellationScope()

        async def broken():
            raise RuntimeError("boom")

        scope.spawn(broken(), detached=True)
        await scope.drain()

        assert scope.active_tasks == 0

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self):
        scope = CancellationScope()
        started = asyncio.Event()

        waiter = asyncio.create_task(scope.run(wait_forever(started)))
        await started.wait()
        waiter.cancel()

        with pytest.raises(asyncio.CancelledError):
            await waiter
