"""Process-wide handler for errors that end an event's processing."""

from __future__ import annotations

from diffwatch.observability.logging import get_logger
from diffwatch.observability.metrics import events_dropped_total

_log = get_logger("errors")


def handle_error(exc: BaseException, *, kind: str, key: str = "") -> None:
    """Report a terminal, non-fatal error.

    Called when a change event is abandoned.  The error is logged with its
    traceback and counted; it never propagates further.
    """
    events_dropped_total.labels(kind=kind, cause="retries_exhausted").inc()
    _log.error(
        "event_abandoned",
        kind=kind,
        key=key,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
