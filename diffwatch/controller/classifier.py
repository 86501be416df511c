"""Change event classification.

Maps a resolved ChangeEvent to the alert status and reason it should carry,
or to ``None`` when it must not alert at all.  Each event is classified on
its own; the only baseline is the process start time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from diffwatch.models.alerts import AlertStatus
from diffwatch.models.events import ChangeEvent, EventKind

# Resource type tags with a non-default status on creation.
_CREATED_STATUS: dict[str, AlertStatus] = {
    "NodeNotReady": AlertStatus.DANGER,
    "NodeReady": AlertStatus.NORMAL,
    "NodeRebooted": AlertStatus.DANGER,
    "Backoff": AlertStatus.DANGER,
}

_UPDATED_STATUS: dict[str, AlertStatus] = {
    "Backoff": AlertStatus.DANGER,
}


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one event."""

    status: AlertStatus
    reason: EventKind

    @property
    def needs_diff(self) -> bool:
        return self.reason is EventKind.UPDATED


def creation_timestamp(obj: dict[str, Any] | None) -> datetime | None:
    """Parse ``metadata.creationTimestamp`` into an aware UTC datetime."""
    if not obj:
        return None
    raw = (obj.get("metadata") or {}).get("creationTimestamp")
    if isinstance(raw, datetime):
        ts = raw
    elif isinstance(raw, str) and raw:
        try:
            ts = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


def is_new_object(obj: dict[str, Any] | None, started_at: datetime) -> bool:
    """True only when the object was created strictly after *started_at*.

    Objects without a readable creation timestamp count as pre-existing.
    """
    created = creation_timestamp(obj)
    return created is not None and created > started_at


def classify(event: ChangeEvent, started_at: datetime) -> Classification | None:
    """Decide the alert for *event*; ``None`` means "handled, nothing to send".

    Updates always classify; whether they alert also depends on the diff.
    """
    if event.kind is EventKind.CREATED:
        if not is_new_object(event.current, started_at):
            return None
        status = _CREATED_STATUS.get(event.resource_type, AlertStatus.NORMAL)
        return Classification(status=status, reason=EventKind.CREATED)

    if event.kind is EventKind.UPDATED:
        status = _UPDATED_STATUS.get(event.resource_type, AlertStatus.WARNING)
        return Classification(status=status, reason=EventKind.UPDATED)

    return Classification(status=AlertStatus.DANGER, reason=EventKind.DELETED)
