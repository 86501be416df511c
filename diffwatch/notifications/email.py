"""Email notification channel for diffwatch.

Sends AlertRecord instances as plain-text + HTML emails via SMTP using the
Python standard-library ``smtplib`` executed in a thread-pool executor so the
asyncio event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import html
import smtplib
import ssl
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import structlog

from diffwatch.errors import NotificationError
from diffwatch.models.alerts import AlertRecord, AlertStatus
from diffwatch.notifications.manager import NotificationChannel

_log = structlog.get_logger(component="notifications.email")

_STATUS_COLOR: dict[AlertStatus, str] = {
    AlertStatus.NORMAL: "#2e7d32",
    AlertStatus.WARNING: "#e65100",
    AlertStatus.DANGER: "#b71c1c",
}


@dataclass(frozen=True)
class SMTPConfig:
    """SMTP connection parameters, usually parsed from an ``smtp[s]://`` DSN.

    ``use_tls`` selects implicit TLS (SMTP_SSL, port 465); otherwise the
    connection is upgraded with STARTTLS.
    """

    host: str
    port: int
    username: str
    password: str = field(repr=False)
    from_addr: str
    use_tls: bool = False
    timeout: float = 10.0

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("SMTP host must not be empty")
        if not self.from_addr:
            raise ValueError("SMTP from_addr must not be empty")


class EmailNotificationChannel(NotificationChannel):
    """Delivers alerts as emails via SMTP.

    Args:
        smtp_config: Connection and authentication parameters.
        to_addr:     Recipient email address.
    """

    def __init__(self, smtp_config: SMTPConfig, to_addr: str) -> None:
        if not to_addr:
            raise ValueError("Email to_addr must not be empty")
        self._smtp = smtp_config
        self._to_addr = to_addr

    @property
    def channel_name(self) -> str:
        return "email"

    async def send(self, alert: AlertRecord) -> None:
        """Send *alert* as an email.

        SMTP I/O is delegated to a thread-pool executor to avoid blocking
        the event loop.
        """
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_sync, alert)
        except smtplib.SMTPException as exc:
            _log.warning("email_smtp_error", error=str(exc), alert_id=alert.alert_id)
            raise NotificationError(self.channel_name, str(exc)) from exc
        except OSError as exc:
            _log.warning("email_connection_error", error=str(exc), alert_id=alert.alert_id)
            raise NotificationError(self.channel_name, str(exc)) from exc

    def _send_sync(self, alert: AlertRecord) -> None:
        """Blocking SMTP delivery; runs inside a thread executor."""
        with self._connect() as server:
            if self._smtp.username:
                server.login(self._smtp.username, self._smtp.password)
            server.send_message(self.build_message(alert))

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self._smtp.use_tls:
            return smtplib.SMTP_SSL(self._smtp.host, self._smtp.port, context=context, timeout=self._smtp.timeout)
        server = smtplib.SMTP(self._smtp.host, self._smtp.port, timeout=self._smtp.timeout)
        try:
            server.starttls(context=context)
        except BaseException:
            server.close()
            raise
        return server

    def build_message(self, alert: AlertRecord) -> MIMEMultipart:
        """Construct a MIME multipart email with a plain-text and HTML part."""
        subject = f"[diffwatch] {alert.status.value.upper()}: {alert.resource} {alert.reason.value}"

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._smtp.from_addr
        msg["To"] = self._to_addr

        msg.attach(MIMEText(self._build_plain(alert), "plain", "utf-8"))
        msg.attach(MIMEText(self._build_html(alert), "html", "utf-8"))
        return msg

    def _build_plain(self, alert: AlertRecord) -> str:
        detected_at = alert.detected_at.strftime("%Y-%m-%d %H:%M:%S UTC")
        text = (
            f"diffwatch alert\n"
            f"{'=' * 60}\n\n"
            f"Status:      {alert.status.value}\n"
            f"Reason:      {alert.reason.value}\n"
            f"Kind:        {alert.kind} ({alert.api_version})\n"
            f"Name:        {alert.name}\n"
            f"Namespace:   {alert.namespace or '-'}\n"
            f"Detected:    {detected_at}\n"
            f"Alert ID:    {alert.alert_id}\n"
        )
        if alert.diff:
            text += f"\nDiff\n{'-' * 60}\n{alert.diff}\n"
        return text

    def _build_html(self, alert: AlertRecord) -> str:
        color = _STATUS_COLOR.get(alert.status, "#333333")
        detected_at = alert.detected_at.strftime("%Y-%m-%d %H:%M:%S UTC")
        diff_block = ""
        if alert.diff:
            diff_block = (
                '<h2 style="font-size: 15px; color: #424242; margin: 0 0 8px;">Diff</h2>'
                f'<pre style="background: #f5f5f5; padding: 12px;">{html.escape(alert.diff)}</pre>'
            )
        return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8" /><title>diffwatch alert</title></head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
             background: #f5f5f5; margin: 0; padding: 24px;">
  <table width="600" cellpadding="0" cellspacing="0"
         style="background: #ffffff; border-radius: 8px; margin: 0 auto;">
    <tr>
      <td style="background: {color}; padding: 20px 28px; border-radius: 8px 8px 0 0;">
        <h1 style="color: #ffffff; margin: 0; font-size: 20px;">
          {html.escape(alert.kind)} {alert.reason.value} &mdash; {alert.status.value}
        </h1>
      </td>
    </tr>
    <tr>
      <td style="padding: 24px 28px;">
        <p style="font-family: monospace;">{html.escape(alert.resource)}</p>
        <p style="color: #757575;">{alert.api_version} &middot; {detected_at}</p>
        {diff_block}
      </td>
    </tr>
    <tr>
      <td style="background: #f5f5f5; padding: 12px 28px; font-size: 12px; color: #9e9e9e;">
        Alert ID: {alert.alert_id}
      </td>
    </tr>
  </table>
</body>
</html>"""
