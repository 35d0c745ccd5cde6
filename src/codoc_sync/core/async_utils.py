"""Async utilities for bridging blocking file-system calls to async callers."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Every file-system primitive used by the reconciliation engine goes
    through this bridge, so each read/write/stat/rename/delete/mkdir is a
    suspension point for the caller.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        content, encoding = await run_sync(read_file_with_encoding, path)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
