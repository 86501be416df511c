"""Collector package for diffwatch.

Provides the list+watch informer that mirrors a resource kind into a local
store and emits Added/Updated/Deleted notifications.

Submodules
----------
informer -- Informer, ListWatch, object_key: store, relist recovery, back-off.
"""

from diffwatch.collector.informer import Informer, ListWatch, ResourceExpiredError, object_key

__all__ = [
    "Informer",
    "ListWatch",
    "ResourceExpiredError",
    "object_key",
]
