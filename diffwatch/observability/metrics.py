"""Prometheus metrics for diffwatch.

All collectors live in the default registry so ``/metrics`` can expose them
with ``prometheus_client.generate_latest()``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

events_enqueued_total = Counter(
    "diffwatch_events_enqueued_total",
    "Change events accepted into a resource controller queue.",
    ["kind", "event"],
)

events_filtered_total = Counter(
    "diffwatch_events_filtered_total",
    "Change events skipped because their namespace is not watched.",
    ["kind"],
)

events_dropped_total = Counter(
    "diffwatch_events_dropped_total",
    "Change events dropped: unresolvable keys or retries exhausted.",
    ["kind", "cause"],
)

processing_retries_total = Counter(
    "diffwatch_processing_retries_total",
    "Change events re-queued after a processing failure.",
    ["kind"],
)

alerts_dispatched_total = Counter(
    "diffwatch_alerts_dispatched_total",
    "Alerts handed to the notification sink.",
    ["kind", "reason", "status"],
)

notifications_total = Counter(
    "diffwatch_notifications_total",
    "Notification channel deliveries.",
    ["channel", "success"],
)

queue_depth = Gauge(
    "diffwatch_queue_depth",
    "Change events waiting in a resource controller queue.",
    ["kind"],
)
