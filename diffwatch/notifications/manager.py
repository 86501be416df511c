"""Notification fan-out for diffwatch.

NotificationChannel -- ABC every channel must implement.
NotificationManager -- The notification sink: delivers an alert to every
                       registered channel and fails if any channel failed,
                       so the resource controller can retry the event.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

import structlog

from diffwatch.errors import NotificationError
from diffwatch.models.alerts import AlertRecord
from diffwatch.observability.metrics import notifications_total

_log = structlog.get_logger(component="notifications.manager")


class NotificationChannel(ABC):
    """Abstract base class for all notification channels.

    ``send`` raises NotificationError when the remote end did not accept
    the alert.
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Human-readable channel identifier used in metrics and logs."""

    @abstractmethod
    async def send(self, alert: AlertRecord) -> None:
        """Deliver *alert* via this channel.

        Raises:
            NotificationError: delivery failed.
        """


class NotificationManager:
    """Delivers each alert to every registered channel concurrently.

    A retry re-sends to every channel, including those that succeeded the
    first time; delivery is at-least-once per channel.
    """

    def __init__(self, channels: list[NotificationChannel]) -> None:
        self._channels = channels

    @property
    def channel_names(self) -> list[str]:
        return [channel.channel_name for channel in self._channels]

    async def handle(self, alert: AlertRecord) -> None:
        """Deliver *alert* to all channels.

        Raises:
            NotificationError: at least one channel failed.
        """
        if not self._channels:
            _log.debug("no_channels_alert_discarded", alert_id=alert.alert_id)
            return

        results = await asyncio.gather(
            *(self._send_one(channel, alert) for channel in self._channels),
            return_exceptions=True,
        )
        failures = [
            (channel.channel_name, result)
            for channel, result in zip(self._channels, results, strict=True)
            if isinstance(result, BaseException)
        ]
        if failures:
            detail = "; ".join(f"{name}: {exc}" for name, exc in failures)
            raise NotificationError(
                ",".join(name for name, _ in failures),
                f"{len(failures)}/{len(self._channels)} channels failed ({detail})",
            )

    async def _send_one(self, channel: NotificationChannel, alert: AlertRecord) -> None:
        """Deliver to a single channel, recording metrics regardless of outcome."""
        try:
            await channel.send(alert)
        except Exception as exc:
            notifications_total.labels(channel=channel.channel_name, success="false").inc()
            _log.warning(
                "notification_failed",
                channel=channel.channel_name,
                alert_id=alert.alert_id,
                error=str(exc),
            )
            raise

        notifications_total.labels(channel=channel.channel_name, success="true").inc()
        _log.info(
            "notification_sent",
            channel=channel.channel_name,
            alert_id=alert.alert_id,
            status=alert.status.value,
            resource=alert.resource,
        )
