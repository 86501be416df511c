"""Change event data structures and enumerations."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from enum import StrEnum
from functools import cached_property
from typing import Any


class EventKind(StrEnum):
    """Lifecycle transition observed on a watched object."""

    CREATED = "Created"
    UPDATED = "Updated"
    DELETED = "Deleted"


# ---------------------------------------------------------------------------
# Informer notifications
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Added:
    """An object appeared in the informer store."""

    obj: dict[str, Any]


@dataclass(frozen=True)
class Updated:
    """An object in the store was replaced by a newer version."""

    old: dict[str, Any]
    new: dict[str, Any]


@dataclass(frozen=True)
class Deleted:
    """An object left the store.

    ``final_state_unknown`` is set when the deletion was inferred during a
    relist, so ``obj`` is the last state the store saw, not the state at
    deletion time.
    """

    obj: dict[str, Any]
    final_state_unknown: bool = False


Notification = Added | Updated | Deleted


# ---------------------------------------------------------------------------
# Queue item
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChangeEvent:
    """One observed transition, as queued for a resource controller.

    Immutable once enqueued.  The worker resolves ``namespace`` on a copy
    (see ``ResourceController.resolve``); the queue keeps tracking the
    original by ``identity``.
    """

    key: str
    kind: EventKind
    resource_type: str
    api_version: str
    namespace: str = ""
    current: dict[str, Any] | None = None
    previous: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("ChangeEvent key must not be empty")

    @cached_property
    def identity(self) -> str:
        """Fingerprint of the whole event value.

        Two events collapse in the queue only when every field, payloads
        included, is identical.
        """
        canonical = json.dumps(
            {
                "key": self.key,
                "kind": self.kind.value,
                "resource_type": self.resource_type,
                "api_version": self.api_version,
                "namespace": self.namespace,
                "current": self.current,
                "previous": self.previous,
            },
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
