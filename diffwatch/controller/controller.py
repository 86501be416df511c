"""Resource controller: one informer, one queue and one worker per kind.

Notification path (synchronous, never blocks on delivery):

    informer notification -> key -> namespace filter -> ChangeQueue.add

Worker path (one item at a time):

    get -> resolve namespace -> classify -> diff (updates) -> dispatch
        success            -> forget + done
        failure, < retries -> add_rate_limited + done
        failure, exhausted -> forget + done + process-wide error handler
"""

from __future__ import annotations

import asyncio
import dataclasses
from typing import Any

from diffwatch.collector.informer import Informer, object_key
from diffwatch.controller.classifier import classify
from diffwatch.controller.diff import compute_diff
from diffwatch.controller.dispatcher import AlertDispatcher
from diffwatch.controller.kinds import WatchedKind
from diffwatch.controller.namespaces import namespace_of_key
from diffwatch.controller.queue import ChangeQueue
from diffwatch.errors import KeyResolutionError
from diffwatch.models.alerts import AlertRecord
from diffwatch.models.context import WatchContext
from diffwatch.models.events import Added, ChangeEvent, Deleted, EventKind, Notification, Updated
from diffwatch.observability.errors import handle_error
from diffwatch.observability.logging import get_logger
from diffwatch.observability.metrics import (
    events_dropped_total,
    events_enqueued_total,
    events_filtered_total,
    processing_retries_total,
    queue_depth,
)

_DEFAULT_SYNC_TIMEOUT_S = 300.0


class ResourceController:
    """Watches one resource kind and turns its changes into alerts.

    Args:
        kind:         Static kind/apiVersion tags for this controller.
        context:      Shared read-only baseline (start time, namespaces,
                      ignore paths, retry bound).
        dispatcher:   Builds alerts and hands them to the sink.
        queue:        Work queue; a fresh ChangeQueue by default.
        sync_timeout: Seconds to wait for the informer's initial list.

    The informer is attached with ``bind_informer`` (or created by
    ``ResourceController.for_kind``), since it needs ``on_notification`` as
    its handler.
    """

    def __init__(
        self,
        kind: WatchedKind,
        context: WatchContext,
        dispatcher: AlertDispatcher,
        queue: ChangeQueue[ChangeEvent] | None = None,
        sync_timeout: float = _DEFAULT_SYNC_TIMEOUT_S,
    ) -> None:
        self.kind = kind
        self._context = context
        self._dispatcher = dispatcher
        self.queue: ChangeQueue[ChangeEvent] = queue or ChangeQueue(name=kind.kind)
        self._sync_timeout = sync_timeout
        self._informer: Informer | None = None
        self._running = False
        self._log = get_logger(f"controller.{kind.kind}").bind(api_version=kind.api_version)

    @classmethod
    def for_kind(
        cls,
        kind: WatchedKind,
        context: WatchContext,
        dispatcher: AlertDispatcher,
        list_watch: Any,
        watch_timeout: int = 300,
        sync_timeout: float = _DEFAULT_SYNC_TIMEOUT_S,
    ) -> ResourceController:
        """Build a controller and its informer from a ListWatch."""
        controller = cls(kind, context, dispatcher, sync_timeout=sync_timeout)
        controller.bind_informer(
            Informer(
                name=kind.kind,
                list_watch=list_watch,
                handler=controller.on_notification,
                watch_timeout=watch_timeout,
            )
        )
        return controller

    def bind_informer(self, informer: Informer) -> None:
        self._informer = informer

    @property
    def name(self) -> str:
        return f"{self.kind.kind} ({self.kind.api_version})"

    def has_synced(self) -> bool:
        return self._informer is not None and self._informer.has_synced()

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Notification path
    # ------------------------------------------------------------------

    def on_notification(self, notification: Notification) -> None:
        """Turn an informer notification into a queued ChangeEvent.

        Objects without a derivable key are dropped here: retrying cannot
        change the outcome.  Events outside the watched namespaces are
        skipped quietly.
        """
        try:
            event = self._to_event(notification)
        except KeyResolutionError as exc:
            events_dropped_total.labels(kind=self.kind.kind, cause="no_key").inc()
            self._log.error(
                "cannot_derive_key",
                notification=type(notification).__name__,
                error=str(exc),
            )
            return

        if not self._context.watches(namespace_of_key(event.key)):
            events_filtered_total.labels(kind=self.kind.kind).inc()
            self._log.debug("namespace_not_watched", key=event.key, event_kind=event.kind.value)
            return

        if isinstance(notification, Deleted) and notification.final_state_unknown:
            # Seen only on relist: current is the last state the store held.
            self._log.info("deletion_inferred_on_relist", key=event.key)
        self._log.info("event_enqueued", key=event.key, event_kind=event.kind.value)
        events_enqueued_total.labels(kind=self.kind.kind, event=event.kind.value).inc()
        self.queue.add(event)
        queue_depth.labels(kind=self.kind.kind).set(len(self.queue))

    def _to_event(self, notification: Notification) -> ChangeEvent:
        if isinstance(notification, Added):
            return self._event(object_key(notification.obj), EventKind.CREATED, current=notification.obj)
        if isinstance(notification, Updated):
            # Keyed by the old object, matching what is in the store.
            return self._event(
                object_key(notification.old),
                EventKind.UPDATED,
                current=notification.new,
                previous=notification.old,
            )
        if isinstance(notification, Deleted):
            return self._event(object_key(notification.obj), EventKind.DELETED, current=notification.obj)
        raise KeyResolutionError(f"unsupported notification: {type(notification).__name__}")

    def _event(
        self,
        key: str,
        kind: EventKind,
        current: dict[str, Any] | None = None,
        previous: dict[str, Any] | None = None,
    ) -> ChangeEvent:
        return ChangeEvent(
            key=key,
            kind=kind,
            resource_type=self.kind.kind,
            api_version=self.kind.api_version,
            current=current,
            previous=previous,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Start the informer, wait for its initial sync, then work the queue.

        Returns when the queue is shut down, or straight away if the
        informer never syncs (other kinds are unaffected).
        """
        if self._informer is None:
            raise RuntimeError(f"controller {self.name} has no informer bound")

        self._log.info("controller_starting")
        self._running = True
        try:
            await self._informer.start()
            if not await self._informer.wait_for_sync(self._sync_timeout):
                self._log.error("timed_out_waiting_for_cache_sync", timeout_s=self._sync_timeout)
                await self._informer.stop()
                return

            self._log.info("controller_synced", objects=len(self._informer))
            while await self.process_next_item():
                pass
        finally:
            self._running = False
            self.queue.shut_down()
            self._log.info("controller_stopped")

    async def stop(self) -> None:
        """Stop watching and let the worker drain what is already queued."""
        self.queue.shut_down()
        if self._informer is not None:
            await self._informer.stop()

    # ------------------------------------------------------------------
    # Worker path
    # ------------------------------------------------------------------

    async def process_next_item(self) -> bool:
        """Process one queued event; False once the queue has shut down."""
        event, shutting_down = await self.queue.get()
        if shutting_down or event is None:
            return False
        queue_depth.labels(kind=self.kind.kind).set(len(self.queue))

        try:
            await self.process_item(event)
        except asyncio.CancelledError:
            self.queue.done(event)
            raise
        except Exception as exc:
            self._handle_failure(event, exc)
        else:
            self.queue.forget(event)
        self.queue.done(event)
        return True

    def _handle_failure(self, event: ChangeEvent, exc: Exception) -> None:
        if self.queue.num_requeues(event) < self._context.max_retries:
            self._log.error(
                "error_processing_event_will_retry",
                key=event.key,
                event_kind=event.kind.value,
                error=str(exc),
                attempt=self.queue.num_requeues(event) + 1,
            )
            processing_retries_total.labels(kind=self.kind.kind).inc()
            self.queue.add_rate_limited(event)
            return

        self._log.error(
            "error_processing_event_giving_up",
            key=event.key,
            event_kind=event.kind.value,
            error=str(exc),
        )
        self.queue.forget(event)
        handle_error(exc, kind=self.kind.kind, key=event.key)

    def resolve(self, event: ChangeEvent) -> ChangeEvent:
        """Return a copy of *event* with its namespace filled in.

        ``namespace/name`` keys are split on the first ``/``; the name
        becomes the key.  Otherwise the namespace comes from the object
        itself, falling back to the informer store.  A store miss (the
        object is already gone after a delete) is not an error.
        """
        if not event.namespace and "/" in event.key:
            namespace, name = event.key.split("/", 1)
            return dataclasses.replace(event, namespace=namespace, key=name)

        obj = event.current
        if obj is None and self._informer is not None:
            obj = self._informer.get_by_key(event.key)
        namespace = str(((obj or {}).get("metadata") or {}).get("namespace") or "")
        return dataclasses.replace(event, namespace=namespace)

    async def process_item(self, queued: ChangeEvent) -> AlertRecord | None:
        """Classify, diff and dispatch one event.

        Returns the dispatched alert, or None when the event is handled
        without alerting.  Sink failures propagate to the caller.
        """
        event = self.resolve(queued)
        classification = classify(event, self._context.started_at)
        if classification is None:
            self._log.debug("pre_existing_object_skipped", key=event.key, namespace=event.namespace)
            return None

        diff = ""
        if classification.needs_diff:
            diff = compute_diff(event.previous, event.current, self._context.diff_ignore)
            if not diff:
                self._log.info("no_diff_or_ignored_paths_only", key=event.key, namespace=event.namespace)
                return None

        return await self._dispatcher.dispatch(event, classification, diff)
