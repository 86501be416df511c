"""List+watch informer for a single resource kind.

The informer keeps a local store of raw objects keyed by ``namespace/name``
and turns every change to that store into a tagged notification
(``Added`` / ``Updated`` / ``Deleted``) for its handler.

Lifecycle:

1. List all objects, replace the store, remember the list resourceVersion,
   and mark the informer as synced.
2. Watch from that resourceVersion, applying each watch event to the store.
3. When the watch expires cleanly, watch again from the last seen version.
   A pass that delivered no events backs off before the next watch.
4. On ``410 Gone`` the version is dropped and the next pass relists; the
   relist is diffed against the store so no transition is lost.
5. Any other failure backs off exponentially (1 s doubling up to 60 s) and
   retries; a pass that delivered events resets the delay.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from diffwatch.errors import KeyResolutionError
from diffwatch.models.events import Added, Deleted, Notification, Updated
from diffwatch.observability.logging import get_logger

_BACKOFF_MIN_S = 1.0
_BACKOFF_MAX_S = 60.0
_DEFAULT_WATCH_TIMEOUT_S = 300

RawObject = dict[str, Any]


class ResourceExpiredError(Exception):
    """The watch resourceVersion is too old (HTTP 410); a relist is required."""


class WatchError(Exception):
    """The watch stream delivered an ERROR event."""


@dataclass(frozen=True)
class ListWatch:
    """List and watch capabilities for one resource kind.

    list:  returns the raw list body (``{"metadata": {...}, "items": [...]}``).
    watch: given a resourceVersion and a server-side timeout, yields raw
           watch events ``{"type": ..., "object": {...}}``.
    """

    list: Callable[[], Awaitable[dict[str, Any]]]
    watch: Callable[[str, int], AsyncIterator[dict[str, Any]]]


def object_key(obj: RawObject) -> str:
    """Return ``namespace/name`` for namespaced objects, ``name`` otherwise.

    Raises:
        KeyResolutionError: when the object carries no name.
    """
    if not isinstance(obj, dict):
        raise KeyResolutionError(f"object is not a mapping: {type(obj).__name__}")
    metadata = obj.get("metadata") or {}
    name = metadata.get("name")
    if not name:
        raise KeyResolutionError("object has no metadata.name")
    namespace = metadata.get("namespace")
    return f"{namespace}/{name}" if namespace else str(name)


def _resource_version(obj: RawObject) -> str:
    return str((obj.get("metadata") or {}).get("resourceVersion", ""))


class Informer:
    """Mirrors one resource kind into a local store and reports changes.

    Args:
        name:          Used in log lines (the resource kind tag).
        list_watch:    List/watch capabilities for the kind.
        handler:       Called synchronously with every notification.
        watch_timeout: Server-side watch timeout in seconds.
    """

    def __init__(
        self,
        name: str,
        list_watch: ListWatch,
        handler: Callable[[Notification], None],
        watch_timeout: int = _DEFAULT_WATCH_TIMEOUT_S,
    ) -> None:
        self._name = name
        self._list_watch = list_watch
        self._handler = handler
        self._watch_timeout = watch_timeout
        self._log = get_logger(f"informer.{name}")

        self._store: dict[str, RawObject] = {}
        self._resource_version = ""
        self._synced = asyncio.Event()
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._backoff_s = _BACKOFF_MIN_S

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the list/watch loop as a background task (idempotent)."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name=f"informer-{self._name}")
        self._log.info("informer_started")

    async def stop(self) -> None:
        """Stop the loop and wait for it to finish."""
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._log.info("informer_stopped")

    def has_synced(self) -> bool:
        return self._synced.is_set()

    async def wait_for_sync(self, timeout: float) -> bool:
        """Wait until the initial list has been applied; False on timeout."""
        try:
            await asyncio.wait_for(self._synced.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    def get_by_key(self, key: str) -> RawObject | None:
        return self._store.get(key)

    def keys(self) -> list[str]:
        return list(self._store)

    def __len__(self) -> int:
        return len(self._store)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while self._running:
            try:
                if not self._resource_version:
                    await self._list_and_replace()
                if await self._watch_once():
                    self._reset_backoff()
                    await asyncio.sleep(0)
                else:
                    await self._backoff("empty_watch")
            except asyncio.CancelledError:
                raise
            except ResourceExpiredError:
                self._log.info("watch_expired_relisting", resource_version=self._resource_version)
                self._resource_version = ""
            except Exception as exc:
                self._log.warning("list_watch_failed", error=str(exc), error_type=type(exc).__name__)
                await self._backoff(type(exc).__name__)

    async def _list_and_replace(self) -> None:
        body = await self._list_watch.list()
        items = body.get("items") or []
        self.replace(items)
        self._resource_version = str((body.get("metadata") or {}).get("resourceVersion", ""))
        if not self._synced.is_set():
            self._synced.set()
            self._log.info("informer_synced", objects=len(self._store))

    async def _watch_once(self) -> int:
        """Run one watch pass; return the number of events it delivered."""
        delivered = 0
        async for event in self._list_watch.watch(self._resource_version, self._watch_timeout):
            if not self._running:
                break
            delivered += 1
            self.apply(str(event.get("type", "")), event.get("object") or {})
        return delivered

    # ------------------------------------------------------------------
    # Store mutation
    # ------------------------------------------------------------------

    def replace(self, items: list[RawObject]) -> None:
        """Swap in a fresh listing and notify the difference to the old store."""
        fresh: dict[str, RawObject] = {}
        for obj in items:
            try:
                fresh[object_key(obj)] = obj
            except KeyResolutionError as exc:
                self._log.error("list_item_without_key", error=str(exc))

        previous = self._store
        self._store = fresh

        for key, obj in fresh.items():
            old = previous.get(key)
            if old is None:
                self._notify(Added(obj))
            elif _resource_version(old) != _resource_version(obj):
                self._notify(Updated(old, obj))
        for key, old in previous.items():
            if key not in fresh:
                self._notify(Deleted(old, final_state_unknown=True))

    def apply(self, event_type: str, obj: RawObject) -> None:
        """Apply one watch event to the store."""
        if event_type == "ERROR":
            if obj.get("code") == 410:
                raise ResourceExpiredError(obj.get("message", "resource version expired"))
            raise WatchError(f"{obj.get('reason', 'Unknown')}: {obj.get('message', '')}")

        rv = _resource_version(obj)
        if event_type == "BOOKMARK":
            if rv:
                self._resource_version = rv
            return

        try:
            key = object_key(obj)
        except KeyResolutionError as exc:
            self._log.error("watch_event_without_key", event_type=event_type, error=str(exc))
            return

        if event_type in ("ADDED", "MODIFIED"):
            old = self._store.get(key)
            self._store[key] = obj
            self._notify(Added(obj) if old is None else Updated(old, obj))
        elif event_type == "DELETED":
            self._store.pop(key, None)
            self._notify(Deleted(obj))
        else:
            self._log.warning("unknown_watch_event_type", event_type=event_type)
            return

        if rv:
            self._resource_version = rv

    def _notify(self, notification: Notification) -> None:
        try:
            self._handler(notification)
        except Exception as exc:  # noqa: BLE001
            self._log.error(
                "notification_handler_failed",
                notification=type(notification).__name__,
                error=str(exc),
            )

    # ------------------------------------------------------------------
    # Back-off
    # ------------------------------------------------------------------

    async def _backoff(self, reason: str) -> None:
        self._log.debug("informer_backoff", reason=reason, delay_s=self._backoff_s)
        await asyncio.sleep(self._backoff_s)
        self._backoff_s = min(self._backoff_s * 2, _BACKOFF_MAX_S)

    def _reset_backoff(self) -> None:
        self._backoff_s = _BACKOFF_MIN_S
