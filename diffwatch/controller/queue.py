"""Deduplicating, rate-limited work queue for change events.

One ChangeQueue feeds exactly one worker.  Items are tracked by an identity
(``ChangeEvent.identity`` by default) with three sets of bookkeeping:

* queued     -- FIFO of identities waiting for ``get()``.
* dirty      -- identities that need processing (queued, or re-added while
                being processed).
* processing -- identities handed out by ``get()`` and not yet ``done()``.

An identity is never queued twice and never processed concurrently.  An item
re-added while it is processing is parked in ``dirty`` and queued again when
``done()`` is called.

All methods except ``get()`` are synchronous so the informer's notification
handlers can enqueue without awaiting.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Hashable
from typing import Any, Generic, TypeVar

from diffwatch.controller.ratelimit import RateLimiter, default_controller_rate_limiter
from diffwatch.observability.logging import get_logger

T = TypeVar("T")


def _event_identity(item: Any) -> Hashable:
    return item.identity  # type: ignore[no-any-return]


class ChangeQueue(Generic[T]):
    """FIFO work queue with dedup, delayed re-adds and retry accounting.

    Args:
        name:         Used in log lines (typically the resource kind).
        rate_limiter: Decides the delay for ``add_rate_limited``.  Defaults to
                      per-item exponential backoff plus a 10 qps bucket.
        identity:     Maps an item to its dedup identity.
    """

    def __init__(
        self,
        name: str = "",
        rate_limiter: RateLimiter | None = None,
        identity: Callable[[T], Hashable] = _event_identity,
    ) -> None:
        self._name = name
        self._rate_limiter = rate_limiter or default_controller_rate_limiter()
        self._identity = identity
        self._log = get_logger(f"queue.{name}" if name else "queue")

        self._queue: deque[Hashable] = deque()
        self._items: dict[Hashable, T] = {}
        self._dirty: set[Hashable] = set()
        self._processing: set[Hashable] = set()
        self._waiters: deque[asyncio.Future[None]] = deque()
        self._delayed: set[asyncio.TimerHandle] = set()
        self._shutting_down = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def add(self, item: T) -> None:
        """Enqueue *item* unless an identical item is already pending."""
        if self._shutting_down:
            return
        ident = self._identity(item)
        if ident in self._dirty:
            return
        self._dirty.add(ident)
        self._items[ident] = item
        if ident in self._processing:
            return
        self._queue.append(ident)
        self._wakeup_one()

    def add_after(self, item: T, delay: float) -> None:
        """Enqueue *item* once *delay* seconds have passed."""
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(item)
            return
        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle | None = None

        def _fire() -> None:
            if handle is not None:
                self._delayed.discard(handle)
            self.add(item)

        handle = loop.call_later(delay, _fire)
        self._delayed.add(handle)

    def add_rate_limited(self, item: T) -> None:
        """Re-enqueue *item* after the rate limiter's delay; counts as a retry."""
        delay = self._rate_limiter.when(self._identity(item))
        self._log.debug("requeue_scheduled", delay_s=round(delay, 3))
        self.add_after(item, delay)

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    async def get(self) -> tuple[T | None, bool]:
        """Wait for the next item.

        Returns ``(item, False)``, or ``(None, True)`` once the queue is shut
        down and drained.
        """
        loop = asyncio.get_running_loop()
        while not self._queue and not self._shutting_down:
            waiter: asyncio.Future[None] = loop.create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            except asyncio.CancelledError:
                waiter.cancel()
                if self._queue and not waiter.cancelled():
                    self._wakeup_one()
                raise

        if not self._queue:
            return None, True

        ident = self._queue.popleft()
        self._processing.add(ident)
        self._dirty.discard(ident)
        return self._items[ident], False

    def done(self, item: T) -> None:
        """Mark *item* as processed; a re-added duplicate is queued now."""
        ident = self._identity(item)
        self._processing.discard(ident)
        if ident in self._dirty:
            self._queue.append(ident)
            self._wakeup_one()
        else:
            self._items.pop(ident, None)

    def forget(self, item: T) -> None:
        """Reset the retry counter for *item*."""
        self._rate_limiter.forget(self._identity(item))

    def num_requeues(self, item: T) -> int:
        return self._rate_limiter.num_requeues(self._identity(item))

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def shut_down(self) -> None:
        """Stop accepting items and release every blocked ``get()``.

        Items already queued are still handed out until the queue is empty.
        """
        if self._shutting_down:
            return
        self._shutting_down = True
        for handle in self._delayed:
            handle.cancel()
        self._delayed.clear()
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
        self._log.debug("queue_shut_down", pending=len(self._queue))

    def _wakeup_one(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
