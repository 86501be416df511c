"""Generic JSON webhook notification channel for diffwatch.

Posts AlertRecord data as a JSON body to any configured HTTP endpoint.
The payload schema mirrors the AlertRecord fields so that consumers can
parse it without diffwatch-specific knowledge.
"""

from __future__ import annotations

import httpx
import structlog

from diffwatch.errors import NotificationError
from diffwatch.models.alerts import AlertRecord
from diffwatch.notifications.manager import NotificationChannel

_log = structlog.get_logger(component="notifications.webhook")


class WebhookNotificationChannel(NotificationChannel):
    """Delivers alerts by POSTing a JSON payload to a configurable URL.

    Args:
        url:     Full endpoint URL (must be HTTPS in production).
        headers: Optional extra headers (e.g. Authorization).
        timeout: HTTP request timeout in seconds. Defaults to 10.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Webhook url must not be empty")
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport

    @property
    def channel_name(self) -> str:
        return "webhook"

    async def send(self, alert: AlertRecord) -> None:
        """POST *alert* as JSON; any non-2xx response is a failure."""
        await post_json(
            self.channel_name,
            self._url,
            self.build_payload(alert),
            alert,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    def build_payload(self, alert: AlertRecord) -> dict[str, object]:
        return {"event": alert.to_dict()}


async def post_json(
    channel: str,
    url: str,
    payload: dict[str, object],
    alert: AlertRecord,
    headers: dict[str, str] | None = None,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """POST *payload* to *url*, raising NotificationError on any failure."""
    request_headers = {"Content-Type": "application/json", **(headers or {})}
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(url, json=payload, headers=request_headers)
    except httpx.TimeoutException as exc:
        _log.warning("webhook_request_timeout", channel=channel, alert_id=alert.alert_id)
        raise NotificationError(channel, "request timed out") from exc
    except httpx.HTTPError as exc:
        _log.warning("webhook_http_error", channel=channel, error=str(exc), alert_id=alert.alert_id)
        raise NotificationError(channel, str(exc)) from exc

    if not response.is_success:
        _log.warning(
            "webhook_non_2xx_response",
            channel=channel,
            status_code=response.status_code,
            body=response.text[:200],
            alert_id=alert.alert_id,
        )
        raise NotificationError(channel, f"HTTP {response.status_code}")
