"""Async utilities for running blocking store, index and GitHub calls from
Starlette handlers."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        # In a request handler:
        result = await run_sync(handler.export, request)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    semaphore: asyncio.Semaphore | None,
    func: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Run a synchronous function in a thread pool, bounded by *semaphore*.

    The semaphore belongs to the caller (one per request), so no limiter
    state outlives a request. ``None`` means unbounded.
    """
    if semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    async with semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
) -> list[T]:
    """Run coroutines concurrently and return their results in order.

    Each coroutine should bound itself with ``run_sync_limited``.
    Exceptions propagate from the first failure.
    """
    return list(await asyncio.gather(*coros))
