"""Controller package: the change-detection and alert-dispatch pipeline.

Submodules:
    namespaces -- watch-set computation and key parsing.
    ratelimit  -- retry delay policies.
    queue      -- deduplicating, rate-limited ChangeQueue.
    classifier -- event to alert status/reason mapping.
    diff       -- structural diff with ignored paths.
    dispatcher -- AlertRecord assembly and sink hand-off.
    kinds      -- registry of watchable resource kinds.
    controller -- ResourceController: informer + queue + worker per kind.
"""

from diffwatch.controller.classifier import Classification, classify
from diffwatch.controller.controller import ResourceController
from diffwatch.controller.diff import compute_diff
from diffwatch.controller.dispatcher import AlertDispatcher, NotificationSink
from diffwatch.controller.kinds import WATCHED_KINDS, WatchedKind, enabled_kinds
from diffwatch.controller.namespaces import compute_watch_namespaces
from diffwatch.controller.queue import ChangeQueue

__all__ = [
    "WATCHED_KINDS",
    "AlertDispatcher",
    "ChangeQueue",
    "Classification",
    "NotificationSink",
    "ResourceController",
    "WatchedKind",
    "classify",
    "compute_diff",
    "compute_watch_namespaces",
    "enabled_kinds",
]
