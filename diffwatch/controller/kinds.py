"""Registry of watchable resource kinds.

Each WatchedKind carries the static tags used in alerts (kind and
apiVersion), the ResourceConfig flag that enables it, and the
kubernetes_asyncio API class and cluster-wide list method backing it.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

from diffwatch.collector.informer import ListWatch, ResourceExpiredError

V1 = "v1"
AUTOSCALING_V1 = "autoscaling/v1"
APPS_V1 = "apps/v1"
BATCH_V1 = "batch/v1"
RBAC_V1 = "rbac.authorization.k8s.io/v1"
NETWORKING_V1 = "networking.k8s.io/v1"
EVENTS_V1 = "events.k8s.io/v1"


@dataclass(frozen=True)
class WatchedKind:
    """One resource kind diffwatch knows how to watch."""

    flag: str  # ResourceConfig attribute
    kind: str
    api_version: str
    api_class: str  # kubernetes_asyncio.client attribute
    list_method: str
    namespaced: bool = True


WATCHED_KINDS: tuple[WatchedKind, ...] = (
    WatchedKind("core_event", "Event", V1, "CoreV1Api", "list_event_for_all_namespaces"),
    WatchedKind("event", "Event", EVENTS_V1, "EventsV1Api", "list_event_for_all_namespaces"),
    WatchedKind("pod", "Pod", V1, "CoreV1Api", "list_pod_for_all_namespaces"),
    WatchedKind(
        "hpa",
        "HorizontalPodAutoscaler",
        AUTOSCALING_V1,
        "AutoscalingV1Api",
        "list_horizontal_pod_autoscaler_for_all_namespaces",
    ),
    WatchedKind("daemon_set", "DaemonSet", APPS_V1, "AppsV1Api", "list_daemon_set_for_all_namespaces"),
    WatchedKind("stateful_set", "StatefulSet", APPS_V1, "AppsV1Api", "list_stateful_set_for_all_namespaces"),
    WatchedKind("replica_set", "ReplicaSet", APPS_V1, "AppsV1Api", "list_replica_set_for_all_namespaces"),
    WatchedKind("service", "Service", V1, "CoreV1Api", "list_service_for_all_namespaces"),
    WatchedKind("deployment", "Deployment", APPS_V1, "AppsV1Api", "list_deployment_for_all_namespaces"),
    WatchedKind("namespace", "Namespace", V1, "CoreV1Api", "list_namespace", namespaced=False),
    WatchedKind(
        "replication_controller",
        "ReplicationController",
        V1,
        "CoreV1Api",
        "list_replication_controller_for_all_namespaces",
    ),
    WatchedKind("job", "Job", BATCH_V1, "BatchV1Api", "list_job_for_all_namespaces"),
    WatchedKind("node", "Node", V1, "CoreV1Api", "list_node", namespaced=False),
    WatchedKind("service_account", "ServiceAccount", V1, "CoreV1Api", "list_service_account_for_all_namespaces"),
    WatchedKind("cluster_role", "ClusterRole", RBAC_V1, "RbacAuthorizationV1Api", "list_cluster_role", namespaced=False),
    WatchedKind(
        "cluster_role_binding",
        "ClusterRoleBinding",
        RBAC_V1,
        "RbacAuthorizationV1Api",
        "list_cluster_role_binding",
        namespaced=False,
    ),
    WatchedKind("persistent_volume", "PersistentVolume", V1, "CoreV1Api", "list_persistent_volume", namespaced=False),
    WatchedKind("secret", "Secret", V1, "CoreV1Api", "list_secret_for_all_namespaces"),
    WatchedKind("config_map", "ConfigMap", V1, "CoreV1Api", "list_config_map_for_all_namespaces"),
    WatchedKind("ingress", "Ingress", NETWORKING_V1, "NetworkingV1Api", "list_ingress_for_all_namespaces"),
)


def enabled_kinds(resources: Any) -> list[WatchedKind]:
    """Kinds whose ResourceConfig flag is switched on, in registry order."""
    return [kind for kind in WATCHED_KINDS if getattr(resources, kind.flag, False)]


def list_watch_for(kind: WatchedKind, api_client: Any = None) -> ListWatch:
    """Build a kubernetes_asyncio backed ListWatch for *kind*."""
    from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

    api = getattr(k8s_client, kind.api_class)(api_client)
    return list_watch_from_method(getattr(api, kind.list_method))


def list_watch_from_method(list_method: Callable[..., Any]) -> ListWatch:
    """Wrap a kubernetes_asyncio ``list_*`` method as raw list and watch calls.

    Objects are kept as the raw JSON the API server sent (camelCase keys),
    which is what gets diffed and alerted on.
    """

    async def _list() -> dict[str, Any]:
        response = await list_method(_preload_content=False)
        try:
            return json.loads(await response.read())  # type: ignore[no-any-return]
        finally:
            response.release()

    async def _watch(resource_version: str, timeout_seconds: int) -> AsyncIterator[dict[str, Any]]:
        from kubernetes_asyncio import watch  # type: ignore[import-untyped]
        from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

        try:
            async with watch.Watch().stream(
                list_method,
                resource_version=resource_version,
                timeout_seconds=timeout_seconds,
                allow_watch_bookmarks=True,
            ) as stream:
                async for event in stream:
                    raw = event.get("raw_object") or {}
                    yield {"type": event.get("type", ""), "object": raw}
        except ApiException as exc:
            if exc.status == 410:
                raise ResourceExpiredError(str(exc.reason)) from exc
            raise

    return ListWatch(list=_list, watch=_watch)
