"""Tests for deadline handling of candidate tasks."""

import asyncio

import pytest

from chatbot_router.orchestrator.timeouts import DeadlineExceeded, TaskCancelled, run_with_timeout


@pytest.mark.asyncio
async def test_returns_result_in_time():
    async def quick():
        return "done"

    assert await run_with_timeout(quick(), 1.0) == "done"


@pytest.mark.asyncio
async def test_propagates_errors():
    async def broken():
        raise ValueError("nope")

    with pytest.raises(ValueError, match="nope"):
        await run_with_timeout(broken(), 1.0)


@pytest.mark.asyncio
async def test_timeout_does_not_wait_for_stuck_task():
    released = asyncio.Event()

    async def stubborn():
        while True:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                await released.wait()
                return "ignored"

    loop = asyncio.get_running_loop()
    start = loop.time()
    with pytest.raises(DeadlineExceeded):
        await run_with_timeout(stubborn(), 0.02, name="stubborn")
    assert loop.time() - start < 0.5

    released.set()
    await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_caller_cancellation_cancels_task():
    cancelled = asyncio.Event()

    async def slow():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    outer = asyncio.create_task(run_with_timeout(slow(), 5.0))
    await asyncio.sleep(0.01)
    outer.cancel()
    with pytest.raises(asyncio.CancelledError):
        await outer
    await asyncio.wait_for(cancelled.wait(), timeout=1)


@pytest.mark.asyncio
async def test_self_cancelled_task_is_not_caller_cancellation():
    async def gives_up():
        raise asyncio.CancelledError()

    with pytest.raises(TaskCancelled, match="provider:Inner cancelled itself"):
        await run_with_timeout(gives_up(), 1.0, name="provider:Inner")


def test_deadline_is_a_timeout_error():
    assert issubclass(DeadlineExceeded, asyncio.TimeoutError)
    assert not issubclass(TimeoutError, DeadlineExceeded)
