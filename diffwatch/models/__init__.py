"""Core data structures for diffwatch."""

from diffwatch.models.alerts import AlertRecord, AlertStatus
from diffwatch.models.config import DiffWatchConfig
from diffwatch.models.context import WatchContext
from diffwatch.models.events import (
    Added,
    ChangeEvent,
    Deleted,
    EventKind,
    Notification,
    Updated,
)

__all__ = [
    "Added",
    "AlertRecord",
    "AlertStatus",
    "ChangeEvent",
    "Deleted",
    "DiffWatchConfig",
    "EventKind",
    "Notification",
    "Updated",
    "WatchContext",
]
