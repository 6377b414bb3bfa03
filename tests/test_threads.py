"""Tests for run_blocking."""

import asyncio
import threading
import time

import pytest

from toolchain import run_blocking


class TestRunBlocking:
    """Test thread offloading and its behaviour under cancellation."""

    @pytest.mark.asyncio
    async def test_returns_value(self):
        assert await run_blocking(sum, [1, 2, 3]) == 6

    @pytest.mark.asyncio
    async def test_propagates_exception(self):
        def fail():
            raise ValueError("broken")

        with pytest.raises(ValueError, match="broken"):
            await run_blocking(fail)

    @pytest.mark.asyncio
    async def test_cancel_waits_for_thread(self):
        started = threading.Event()
        release = threading.Event()
        finished = []

        def work():
            started.set()
            release.wait(10)
            finished.append(True)

        task = asyncio.create_task(run_blocking(work))
        deadline = time.monotonic() + 10
        while not started.is_set():
            assert time.monotonic() < deadline
            await asyncio.sleep(0.01)

        task.cancel()
        await asyncio.sleep(0.1)
        assert not task.done()

        release.set()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert finished == [True]
