"""Process-wide, read-only watch context."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

DEFAULT_MAX_RETRIES = 5


@dataclass(frozen=True)
class WatchContext:
    """Baseline shared by every resource controller.

    Built once at startup, before any watch starts, and never mutated.

    Attributes:
        started_at:  Process start time.  Objects created at or before this
                     instant are treated as pre-existing and never alerted.
        namespaces:  Concrete set of namespaces to watch.
        diff_ignore: Field paths excluded from update diffs.
        max_retries: Failed processing attempts retried before giving up.
    """

    namespaces: frozenset[str]
    diff_ignore: tuple[str, ...] = ()
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    max_retries: int = DEFAULT_MAX_RETRIES

    def watches(self, namespace: str) -> bool:
        return namespace in self.namespaces
