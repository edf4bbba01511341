"""Helpers for working with large record sets.

- throttle(): drop calls arriving faster than a fixed window
- Debouncer: run a coroutine once input has been quiet for a delay
- Paginator: page through a sequence with clamped navigation
- process_in_chunks(): map over a large sequence, yielding to the event loop
"""

from __future__ import annotations

import asyncio
import functools
import math
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Generic, TypeVar

from assetcache.exceptions import ConfigurationError
from assetcache.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def throttle(func: Callable[..., R], limit: float = 0.2) -> Callable[..., R | None]:
    """Wrap func so it runs at most once per ``limit`` seconds.

    Calls inside the window are dropped and return None.
    """
    last_call: float | None = None

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> R | None:
        nonlocal last_call
        now = time.monotonic()
        if last_call is not None and now - last_call < limit:
            return None
        last_call = now
        return func(*args, **kwargs)

    return wrapper


class Debouncer:
    """Run an async callback once calls stop arriving for ``delay`` seconds.

    Each trigger() restarts the timer; the callback receives the arguments of
    the last trigger. Must be used from within a running event loop.
    """

    def __init__(self, func: Callable[..., Awaitable[Any]], delay: float = 0.5) -> None:
        self.func = func
        self.delay = delay
        self._task: asyncio.Task[Any] | None = None
        self._args: tuple[Any, ...] = ()
        self._kwargs: dict[str, Any] = {}

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self, *args: Any, **kwargs: Any) -> None:
        self.cancel()
        self._args, self._kwargs = args, kwargs
        self._task = asyncio.get_running_loop().create_task(self._fire_later())

    async def _fire_later(self) -> None:
        await asyncio.sleep(self.delay)
        self._task = None
        try:
            await self.func(*self._args, **self._kwargs)
        except Exception:
            # background task, nothing else will see the error
            logger.exception("Debounced call failed", func=getattr(self.func, "__name__", repr(self.func)))

    async def flush(self) -> None:
        """Run a pending call immediately."""
        if not self.pending:
            return
        self.cancel()
        await self.func(*self._args, **self._kwargs)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


class Paginator(Generic[T]):
    """1-based pagination over a sequence.

    Navigation clamps into [1, total_pages]; an empty sequence has zero
    pages and stays on page 1.
    """

    def __init__(self, items: Sequence[T], page_size: int = 50) -> None:
        if page_size <= 0:
            raise ConfigurationError(
                "page_size must be a positive integer", context={"page_size": page_size}
            )
        self.items = items
        self.page_size = page_size
        self.current_page = 1

    @property
    def total_pages(self) -> int:
        return math.ceil(len(self.items) / self.page_size)

    @property
    def page_items(self) -> list[T]:
        start = (self.current_page - 1) * self.page_size
        return list(self.items[start:start + self.page_size])

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.current_page > 1

    def go_to(self, page: int) -> list[T]:
        self.current_page = max(1, min(page, self.total_pages))
        return self.page_items

    def next(self) -> list[T]:
        return self.go_to(self.current_page + 1)

    def prev(self) -> list[T]:
        return self.go_to(self.current_page - 1)

    def reset(self, items: Sequence[T]) -> None:
        """Swap in a new sequence and return to page 1."""
        self.items = items
        self.current_page = 1


async def process_in_chunks(
    items: Sequence[T],
    fn: Callable[[T], R],
    chunk_size: int = 1000,
) -> list[R]:
    """Apply fn to every item, yielding to the event loop between chunks.

    Args:
        items: Items to process.
        fn: Synchronous function applied to each item.
        chunk_size: Items processed before yielding.

    Returns:
        Results in input order.
    """
    if chunk_size <= 0:
        raise ConfigurationError(
            "chunk_size must be a positive integer", context={"chunk_size": chunk_size}
        )

    results: list[R] = []
    for start in range(0, len(items), chunk_size):
        results.extend(fn(item) for item in items[start:start + chunk_size])
        await asyncio.sleep(0)

    logger.debug("Processed in chunks", count=len(results), chunk_size=chunk_size)
    return results
