"""Exception hierarchy for diffwatch."""

from __future__ import annotations


class DiffWatchError(Exception):
    """Base class for every diffwatch-specific error."""


class ConfigError(DiffWatchError):
    """Raised when configuration cannot be loaded or is invalid."""


class KeyResolutionError(DiffWatchError):
    """Raised when a stable ``namespace/name`` key cannot be derived from an object.

    Not retryable: the same object always fails the same way.
    """


class NotificationError(DiffWatchError):
    """Raised when an alert could not be delivered by a notification channel."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel
