"""Alert assembly and hand-off to the notification sink."""

from __future__ import annotations

import asyncio
from typing import Protocol

from diffwatch.controller.classifier import Classification
from diffwatch.models.alerts import AlertRecord
from diffwatch.models.events import ChangeEvent
from diffwatch.observability.logging import get_logger
from diffwatch.observability.metrics import alerts_dispatched_total

_log = get_logger("controller.dispatcher")


class NotificationSink(Protocol):
    """Anything that can deliver a finished alert.

    ``handle`` raises on failure; the caller decides whether to retry.
    """

    async def handle(self, alert: AlertRecord) -> None: ...


class AlertDispatcher:
    """Builds AlertRecords and delivers them synchronously to the sink.

    Sink errors are not retried here: they propagate to the resource
    controller, whose queue owns retry accounting.

    Args:
        sink:    Delivery target.
        timeout: Seconds to wait for ``sink.handle``; ``None`` or ``0``
                 waits forever.  A timeout surfaces as ``TimeoutError``.
    """

    def __init__(self, sink: NotificationSink, timeout: float | None = 30.0) -> None:
        self._sink = sink
        self._timeout = timeout or None

    @staticmethod
    def build_alert(event: ChangeEvent, classification: Classification, diff: str = "") -> AlertRecord:
        return AlertRecord(
            name=event.key,
            namespace=event.namespace,
            kind=event.resource_type,
            api_version=event.api_version,
            status=classification.status,
            reason=classification.reason,
            diff=diff,
        )

    async def dispatch(self, event: ChangeEvent, classification: Classification, diff: str = "") -> AlertRecord:
        alert = self.build_alert(event, classification, diff)
        if self._timeout is None:
            await self._sink.handle(alert)
        else:
            await asyncio.wait_for(self._sink.handle(alert), timeout=self._timeout)
        alerts_dispatched_total.labels(
            kind=alert.kind,
            reason=alert.reason.value,
            status=alert.status.value,
        ).inc()
        _log.info(
            "alert_dispatched",
            alert_id=alert.alert_id,
            resource=alert.resource,
            reason=alert.reason.value,
            status=alert.status.value,
        )
        return alert
