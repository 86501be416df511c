"""Shared fixtures: a scriptable fake cluster, a recording sink and object factories."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from diffwatch.collector.informer import ListWatch
from diffwatch.errors import NotificationError
from diffwatch.models.alerts import AlertRecord

STARTED_AT = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeCluster:
    """List/watch source for one kind, driven by the test.

    ``watch`` blocks on an internal queue, so an informer sits idle until
    the test pushes an event.
    """

    def __init__(self, items: list[dict[str, Any]] | None = None, resource_version: str = "1") -> None:
        self.items = list(items or [])
        self.resource_version = resource_version
        self.list_calls = 0
        self.watch_versions: list[str] = []
        self.fail_list: Exception | None = None
        self._events: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def list(self) -> dict[str, Any]:
        self.list_calls += 1
        if self.fail_list is not None:
            raise self.fail_list
        return {"metadata": {"resourceVersion": self.resource_version}, "items": list(self.items)}

    async def watch(self, resource_version: str, timeout: int) -> AsyncIterator[dict[str, Any]]:
        self.watch_versions.append(resource_version)
        while True:
            yield await self._events.get()

    def push(self, event_type: str, obj: dict[str, Any]) -> None:
        self._events.put_nowait({"type": event_type, "object": obj})

    def list_watch(self) -> ListWatch:
        return ListWatch(list=self.list, watch=self.watch)


class RecordingSink:
    """Notification sink that records alerts, optionally failing first."""

    def __init__(self, fail_times: int = 0, always_fail: bool = False, delay: float = 0.0) -> None:
        self.alerts: list[AlertRecord] = []
        self.attempts = 0
        self._fail_times = fail_times
        self._always_fail = always_fail
        self._delay = delay

    async def handle(self, alert: AlertRecord) -> None:
        self.attempts += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._always_fail or self.attempts <= self._fail_times:
            raise NotificationError("recording", f"attempt {self.attempts} failed")
        self.alerts.append(alert)


def make_pod(
    name: str = "web-1",
    namespace: str | None = "default",
    created: datetime | None = None,
    resource_version: str = "1",
    **spec: Any,
) -> dict[str, Any]:
    """Raw Pod-shaped object; created after STARTED_AT unless told otherwise."""
    metadata: dict[str, Any] = {
        "name": name,
        "resourceVersion": resource_version,
        "creationTimestamp": (created or STARTED_AT + timedelta(minutes=1)).isoformat(),
    }
    if namespace:
        metadata["namespace"] = namespace
    return {"apiVersion": "v1", "kind": "Pod", "metadata": metadata, "spec": dict(spec)}


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* until it holds; fail the test after *timeout* seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def started_at() -> datetime:
    return STARTED_AT


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def pod_factory() -> Callable[..., dict[str, Any]]:
    return make_pod


@pytest.fixture
def eventually() -> Callable[..., Any]:
    return wait_until


@pytest.fixture
def sink_factory() -> type[RecordingSink]:
    return RecordingSink
