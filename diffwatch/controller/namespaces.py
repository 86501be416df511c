"""Namespace watch-set computation and key parsing."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from diffwatch.observability.logging import get_logger

_log = get_logger("controller.namespaces")


def compute_watch_namespaces(
    include: Iterable[str],
    exclude: Iterable[str],
    all_namespaces: Iterable[str],
) -> frozenset[str]:
    """Resolve the include/exclude policy into the concrete set to watch.

    A non-empty *include* is taken verbatim and *exclude* is ignored.
    Otherwise every name in *all_namespaces* is watched except the excluded
    ones.
    """
    included = frozenset(include)
    if included:
        return included

    watched = set(all_namespaces)
    for name in exclude:
        if name in watched:
            watched.discard(name)
            _log.info("namespace_excluded", namespace=name)
    return frozenset(watched)


async def list_namespaces(core_api: Any) -> list[str]:
    """Return the name of every namespace in the cluster.

    *core_api* is a ``kubernetes_asyncio.client.CoreV1Api``.  API errors
    propagate: without the listing there is nothing sensible to watch.
    """
    response = await core_api.list_namespace()
    return [item.metadata.name for item in response.items]


async def resolve_watch_namespaces(
    include: list[str],
    exclude: list[str],
    core_api: Any,
) -> frozenset[str]:
    """Compute the watch set, listing the cluster only when *include* is empty."""
    all_namespaces = [] if include else await list_namespaces(core_api)
    namespaces = compute_watch_namespaces(include, exclude, all_namespaces)
    _log.info("namespaces_to_watch", namespaces=sorted(namespaces))
    return namespaces


def namespace_of_key(key: str) -> str:
    """Namespace part of a ``namespace/name`` key, or the key itself."""
    return key.split("/", 1)[0]
