"""Alert data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from diffwatch.models.events import EventKind


class AlertStatus(StrEnum):
    """Alert severity, lowest to highest."""

    NORMAL = "Normal"
    WARNING = "Warning"
    DANGER = "Danger"


@dataclass(frozen=True)
class AlertRecord:
    """Emitted by the alert dispatcher, consumed by the notification sink."""

    name: str
    namespace: str
    kind: str  # resource type tag, e.g. "Pod"
    api_version: str
    status: AlertStatus
    reason: EventKind
    diff: str = ""
    alert_id: str = field(default_factory=lambda: str(uuid4()))
    detected_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def resource(self) -> str:
        """``Kind/namespace/name`` (or ``Kind/name`` when cluster-scoped)."""
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"

    def to_dict(self) -> dict[str, object]:
        """Serialise to a plain dict for JSON encoding."""
        return {
            "alert_id": self.alert_id,
            "name": self.name,
            "namespace": self.namespace,
            "kind": self.kind,
            "api_version": self.api_version,
            "status": self.status.value,
            "reason": self.reason.value,
            "diff": self.diff,
            "detected_at": self.detected_at.isoformat(),
        }
