"""Admission control for model and search calls.

One ``ConcurrencyLimiter`` is shared by every node of a research run, so it
bounds the total number of concurrent external calls whatever the shape of
the tree. Unlike ``asyncio.Semaphore`` its capacity can change while units
are running: a branch that blocks on its own recursive children raises the
capacity for the duration, otherwise a tree deeper than the capacity would
deadlock with every slot held by a waiting parent.
"""

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyLimiter:
    """A counting gate with a mutable capacity.

    ``in_flight`` never exceeds ``capacity`` at any observation point. A
    ``decrease()`` that would drop capacity below ``in_flight`` is deferred
    and applied as units release, so capacity still returns to its original
    value once every unit has settled.

    Usage:
        limiter = ConcurrencyLimiter(2)
        result = await limiter.run(fetch, url)

        async with limiter.slot():
            ...
    """

    def __init__(self, capacity: int, max_capacity: int | None = None):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if max_capacity is not None and max_capacity < capacity:
            raise ValueError(
                f"max_capacity ({max_capacity}) must be >= capacity ({capacity})"
            )
        self._capacity = capacity
        self._max_capacity = max_capacity
        self._in_flight = 0
        self._pending_decrease = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def max_capacity(self) -> int | None:
        return self._max_capacity

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    def __repr__(self) -> str:
        return (
            f"ConcurrencyLimiter(capacity={self._capacity}, in_flight={self._in_flight}, "
            f"waiting={self.waiting})"
        )

    async def acquire(self) -> None:
        """Wait until a slot is free and take it."""
        if not self._waiters and self._in_flight < self._capacity:
            self._in_flight += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            # The slot may have been handed over just before cancellation
            if waiter.done() and not waiter.cancelled():
                self.release()
            raise
        finally:
            try:
                self._waiters.remove(waiter)
            except ValueError:
                pass

    def release(self) -> None:
        """Give a slot back and admit waiting units."""
        if self._in_flight <= 0:
            raise RuntimeError("ConcurrencyLimiter released more times than acquired")
        self._in_flight -= 1
        self._apply_pending_decrease()
        self._wake_waiters()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``fn(*args, **kwargs)`` once a slot is free, releasing it on every exit path."""
        async with self.slot():
            return await fn(*args, **kwargs)

    def increase(self, n: int = 1) -> None:
        if n < 0:
            raise ValueError(f"increase amount must be >= 0, got {n}")
        # Cancel out deferred decreases first; they have not been applied yet
        absorbed = min(n, self._pending_decrease)
        self._pending_decrease -= absorbed
        self._capacity += n - absorbed
        self._wake_waiters()

    def decrease(self, n: int = 1) -> None:
        if n < 0:
            raise ValueError(f"decrease amount must be >= 0, got {n}")
        self._pending_decrease += n
        self._apply_pending_decrease()

    @asynccontextmanager
    async def headroom(self) -> AsyncIterator[None]:
        """Make room for a holder of a slot to wait on work that needs slots.

        Without a ceiling, capacity grows by one for the duration and
        shrinks back on exit. At the ceiling, the caller's own slot is lent
        out instead and taken back on exit. Either way the adjustment is
        undone on success, failure and cancellation.
        """
        if self._max_capacity is None or self._capacity < self._max_capacity:
            self.increase()
            try:
                yield
            finally:
                self.decrease()
        else:
            logger.debug("Concurrency ceiling %d reached, lending slot", self._max_capacity)
            self.release()
            try:
                yield
            finally:
                try:
                    await self.acquire()
                except asyncio.CancelledError:
                    # Re-take the lent slot so the enclosing release stays balanced
                    self._in_flight += 1
                    raise

    def _apply_pending_decrease(self) -> None:
        while self._pending_decrease and self._capacity - 1 >= max(self._in_flight, 1):
            self._capacity -= 1
            self._pending_decrease -= 1

    def _wake_waiters(self) -> None:
        while self._waiters and self._in_flight < self._capacity:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # The slot is taken on the waiter's behalf at hand-over time
                self._in_flight += 1
                waiter.set_result(None)
