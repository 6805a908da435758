"""
Blocking I/O off the event loop.

The file registry reads and replaces a JSON document with plain filesystem
calls; ``run_sync`` moves those onto a small worker pool.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, TypeVar

T = TypeVar("T")

_POLL_SECONDS = 0.001

_executor: ThreadPoolExecutor | None = None


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="build-tracker-io")
    return _executor


async def run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Run ``func(*args, **kwargs)`` in the worker pool and return its result.

    The worker's future is checked on a short timer rather than bridged with
    ``run_in_executor``, so the call also completes when the loop misses a
    cross-thread wakeup. Cancelling the caller cancels work not yet started.
    """
    future = _get_executor().submit(partial(func, *args, **kwargs))
    try:
        while not future.done():
            await asyncio.sleep(_POLL_SECONDS)
    except asyncio.CancelledError:
        future.cancel()
        raise
    return future.result()


__all__ = ["run_sync"]
