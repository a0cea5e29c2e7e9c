"""Run awaitables under a hard deadline without waiting on stuck tasks."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class DeadlineExceeded(asyncio.TimeoutError):
    """The awaited task did not finish before its deadline."""


class TaskCancelled(Exception):
    """The awaited task cancelled itself while the caller was still waiting."""


def _discard_late_result(task: asyncio.Future) -> None:
    """Done-callback for abandoned tasks: retrieve the outcome so it never leaks."""
    if task.cancelled():
        return
    name = task.get_name() if isinstance(task, asyncio.Task) else "future"
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned task failed late", task=name, error=str(exc))
    else:
        logger.debug("Abandoned task completed late, result discarded", task=name)


def abandon(task: asyncio.Future) -> None:
    """Cancel a task and make sure its eventual outcome is consumed."""
    task.cancel()
    task.add_done_callback(_discard_late_result)


async def run_with_timeout(awaitable: Awaitable[T], timeout_s: float, name: str | None = None) -> T:
    """Await with a deadline.

    Unlike asyncio.wait_for this never blocks on a task that ignores
    cancellation: on timeout the task is cancelled and left to finish on its
    own. Cancelling the caller cancels the task as well, and only that case
    propagates asyncio.CancelledError.

    Raises:
        DeadlineExceeded: when the deadline passes first
        TaskCancelled: when the task cancelled itself
    """
    task = asyncio.ensure_future(awaitable)
    if name and isinstance(task, asyncio.Task):
        task.set_name(name)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_s)
    except asyncio.CancelledError:
        abandon(task)
        raise
    if not done:
        abandon(task)
        raise DeadlineExceeded(f"Timed out after {timeout_s:.3f}s")
    if task.cancelled():
        raise TaskCancelled(f"{name or 'Task'} cancelled itself")
    return task.result()
