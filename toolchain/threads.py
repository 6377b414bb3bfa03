"""Blocking work off the event loop that outlives neither its caller nor its cleanup."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args: Any) -> T:
    """Run func(*args) in a worker thread.

    A thread cannot be interrupted, so when the calling task is cancelled
    this waits for the thread to finish before re-raising CancelledError.
    Cleanup in the caller (workspace removal, result reporting) therefore
    never races the thread.
    """
    future = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        while not future.done():
            try:
                await asyncio.wait({future})
            except asyncio.CancelledError:
                continue
        if not future.cancelled() and future.exception() is not None:
            logger.debug("%s failed after cancellation: %r", getattr(func, "__name__", func), future.exception())
        raise
