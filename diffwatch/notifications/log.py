"""Log notification channel: writes each alert as a structured log line."""

from __future__ import annotations

import structlog

from diffwatch.models.alerts import AlertRecord
from diffwatch.notifications.manager import NotificationChannel

_log = structlog.get_logger(component="notifications.log")


class LogNotificationChannel(NotificationChannel):
    @property
    def channel_name(self) -> str:
        return "log"

    async def send(self, alert: AlertRecord) -> None:
        _log.info("alert", **alert.to_dict())
