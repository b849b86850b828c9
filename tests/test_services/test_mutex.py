"""Tests for the FIFO mutex."""

import asyncio

import pytest

from fleet_validator.services.mutex import Mutex


async def assert_released(mutex: Mutex) -> None:
    """The lock can be taken again right away."""

    async def noop():
        return None

    await asyncio.wait_for(mutex.with_lock(noop), timeout=0.1)


class TestMutex:
    """Mutual exclusion and ordering."""

    @pytest.mark.asyncio
    async def test_returns_critical_section_value(self):
        mutex = Mutex()

        async def body():
            return 42

        assert await mutex.with_lock(body) == 42
        await assert_released(mutex)

    @pytest.mark.asyncio
    async def test_only_one_body_runs_at_a_time(self):
        """Under concurrent callers at most one body is active."""
        mutex = Mutex()
        active = 0
        max_active = 0

        async def body():
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            active -= 1

        await asyncio.gather(*(mutex.with_lock(body) for _ in range(10)))

        assert max_active == 1
        assert active == 0

    @pytest.mark.asyncio
    async def test_waiters_run_in_arrival_order(self):
        mutex = Mutex()
        order: list[int] = []

        def body(i):
            async def run():
                order.append(i)
                await asyncio.sleep(0)

            return run

        tasks = []
        for i in range(5):
            tasks.append(asyncio.create_task(mutex.with_lock(body(i))))
            # Let each task reach the lock before the next one is created
            await asyncio.sleep(0)
        await asyncio.gather(*tasks)

        assert order == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_failing_body_releases_lock(self):
        """A raising body propagates to its caller and frees the lock."""
        mutex = Mutex()
        completed = []

        async def failing():
            await asyncio.sleep(0)
            raise RuntimeError("boom")

        async def succeeding():
            completed.append(True)
            return "ok"

        results = await asyncio.gather(
            mutex.with_lock(failing),
            mutex.with_lock(succeeding),
            mutex.with_lock(failing),
            mutex.with_lock(succeeding),
            return_exceptions=True,
        )

        assert isinstance(results[0], RuntimeError)
        assert results[1] == "ok"
        assert isinstance(results[2], RuntimeError)
        assert results[3] == "ok"
        assert completed == [True, True]
        await assert_released(mutex)

    @pytest.mark.asyncio
    async def test_second_caller_waits_for_running_body(self):
        mutex = Mutex()
        release = asyncio.Event()
        entered = []

        async def holder():
            entered.append("holder")
            await release.wait()

        async def waiter():
            entered.append("waiter")

        first = asyncio.create_task(mutex.with_lock(holder))
        await asyncio.sleep(0)
        second = asyncio.create_task(mutex.with_lock(waiter))
        await asyncio.sleep(0.01)

        assert entered == ["holder"]

        release.set()
        await asyncio.gather(first, second)

        assert entered == ["holder", "waiter"]
