"""Slack notification channel for diffwatch.

Posts a Block Kit message to a Slack incoming-webhook URL.  Update diffs are
rendered in a code block and truncated to fit Slack's per-block limit.
"""

from __future__ import annotations

import httpx

from diffwatch.models.alerts import AlertRecord, AlertStatus
from diffwatch.notifications.manager import NotificationChannel
from diffwatch.notifications.webhook import post_json

_STATUS_EMOJI: dict[AlertStatus, str] = {
    AlertStatus.NORMAL: ":large_green_circle:",
    AlertStatus.WARNING: ":large_orange_circle:",
    AlertStatus.DANGER: ":red_circle:",
}

# Slack rejects section text longer than 3000 characters.
_MAX_DIFF_CHARS = 2800


class SlackNotificationChannel(NotificationChannel):
    """Delivers alerts to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not webhook_url.startswith("https://"):
            raise ValueError("Slack webhook url must start with https://")
        self._url = webhook_url
        self._timeout = timeout
        self._transport = transport

    @property
    def channel_name(self) -> str:
        return "slack"

    async def send(self, alert: AlertRecord) -> None:
        await post_json(
            self.channel_name,
            self._url,
            self.build_payload(alert),
            alert,
            timeout=self._timeout,
            transport=self._transport,
        )

    def build_payload(self, alert: AlertRecord) -> dict[str, object]:
        emoji = _STATUS_EMOJI.get(alert.status, ":white_circle:")
        title = f"{emoji} {alert.kind} {alert.reason.value.lower()}: `{alert.name}`"
        fields = [
            {"type": "mrkdwn", "text": f"*Namespace*\n{alert.namespace or '-'}"},
            {"type": "mrkdwn", "text": f"*Status*\n{alert.status.value}"},
            {"type": "mrkdwn", "text": f"*Kind*\n{alert.kind}"},
            {"type": "mrkdwn", "text": f"*API version*\n{alert.api_version}"},
        ]
        blocks: list[dict[str, object]] = [
            {"type": "section", "text": {"type": "mrkdwn", "text": title}},
            {"type": "section", "fields": fields},
        ]
        if alert.diff:
            diff = alert.diff
            if len(diff) > _MAX_DIFF_CHARS:
                diff = diff[:_MAX_DIFF_CHARS] + "\n..."
            blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"```{diff}```"}})
        return {"text": f"{alert.kind} {alert.resource} {alert.reason.value}", "blocks": blocks}
