"""
Tests for async_utils module.

Covers run_sync, run_sync_limited and gather_limited.
"""

import asyncio
import threading
import time

from upstream_sync.core.async_utils import (
    gather_limited,
    run_sync,
    run_sync_limited,
)


def _sync_add(a: int, b: int) -> int:
    """Simple sync function for testing."""
    return a + b


async def test_run_sync_calls_function():
    """run_sync delegates to a worker thread with correct args."""
    result = await run_sync(_sync_add, 3, 4)
    assert result == 7


async def test_run_sync_passes_kwargs():
    """run_sync forwards keyword arguments."""

    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    result = await run_sync(_kw_func, name="world")
    assert result == "hello world"


async def test_run_sync_limited_without_semaphore():
    """run_sync_limited falls back to unbounded when semaphore is None."""
    result = await run_sync_limited(None, _sync_add, 10, 20)
    assert result == 30


async def test_run_sync_limited_bounds_concurrency():
    """No more than the semaphore's value run at once."""
    semaphore = asyncio.Semaphore(2)
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}

    def _work(i: int) -> int:
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.02)
        with lock:
            state["active"] -= 1
        return i

    results = await gather_limited(
        [run_sync_limited(semaphore, _work, i) for i in range(6)]
    )
    assert results == list(range(6))
    assert state["peak"] <= 2


async def test_gather_limited_preserves_order():
    """Results come back in input order regardless of completion order."""

    def _slow(x: int) -> int:
        time.sleep(0.01 * (3 - x))
        return x

    results = await gather_limited([run_sync(_slow, i) for i in range(3)])
    assert results == [0, 1, 2]


async def test_gather_limited_empty():
    assert await gather_limited([]) == []
