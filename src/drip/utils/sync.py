"""Run drip's coroutine core from synchronous code."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


def run_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` to completion on a fresh event loop.

    Raises:
        RuntimeError: Called from inside a running event loop; use the
            ``*_async`` method and ``await`` it instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    coro.close()
    raise RuntimeError(
        "Synchronous drip API called from a running event loop; "
        "await the *_async variant instead"
    )
