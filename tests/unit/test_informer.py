"""Tests for the list+watch Informer: store mirroring, notifications, relists."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import pytest

from diffwatch.collector.informer import (
    Informer,
    ListWatch,
    ResourceExpiredError,
    WatchError,
    object_key,
)
from diffwatch.errors import KeyResolutionError
from diffwatch.models.events import Added, Deleted, Notification, Updated


def _informer(fake_cluster: Any, seen: list[Notification]) -> Informer:
    return Informer(name="Pod", list_watch=fake_cluster.list_watch(), handler=seen.append)


# ---------------------------------------------------------------------------
# object_key
# ---------------------------------------------------------------------------


class TestObjectKey:
    def test_namespaced(self, pod_factory: Any) -> None:
        assert object_key(pod_factory("web-1", "default")) == "default/web-1"

    def test_cluster_scoped(self, pod_factory: Any) -> None:
        assert object_key(pod_factory("node-1", namespace=None)) == "node-1"

    @pytest.mark.parametrize("obj", [{}, {"metadata": {}}, {"metadata": {"name": ""}}, "not-an-object"])
    def test_no_name_raises(self, obj: Any) -> None:
        with pytest.raises(KeyResolutionError):
            object_key(obj)


# ---------------------------------------------------------------------------
# Store mutation (no loop)
# ---------------------------------------------------------------------------


class TestReplace:
    def test_initial_list_emits_added(self, fake_cluster: Any, pod_factory: Any) -> None:
        seen: list[Notification] = []
        informer = _informer(fake_cluster, seen)
        informer.replace([pod_factory("a"), pod_factory("b")])
        assert [type(n) for n in seen] == [Added, Added]
        assert sorted(informer.keys()) == ["default/a", "default/b"]

    def test_relist_diffs_against_store(self, fake_cluster: Any, pod_factory: Any) -> None:
        seen: list[Notification] = []
        informer = _informer(fake_cluster, seen)
        informer.replace([pod_factory("a", resource_version="1"), pod_factory("b", resource_version="1")])
        seen.clear()

        informer.replace([pod_factory("a", resource_version="2"), pod_factory("c")])

        by_type = {type(n): n for n in seen}
        assert isinstance(by_type[Updated], Updated)
        assert by_type[Updated].new["metadata"]["resourceVersion"] == "2"
        assert by_type[Added].obj["metadata"]["name"] == "c"
        deleted = by_type[Deleted]
        assert deleted.obj["metadata"]["name"] == "b"
        assert deleted.final_state_unknown is True

    def test_unchanged_object_is_silent(self, fake_cluster: Any, pod_factory: Any) -> None:
        seen: list[Notification] = []
        informer = _informer(fake_cluster, seen)
        informer.replace([pod_factory("a")])
        seen.clear()
        informer.replace([pod_factory("a")])
        assert seen == []

    def test_items_without_key_skipped(self, fake_cluster: Any, pod_factory: Any) -> None:
        seen: list[Notification] = []
        informer = _informer(fake_cluster, seen)
        informer.replace([{"metadata": {}}, pod_factory("a")])
        assert len(informer) == 1


class TestApply:
    def test_added_then_modified_then_deleted(self, fake_cluster: Any, pod_factory: Any) -> None:
        seen: list[Notification] = []
        informer = _informer(fake_cluster, seen)

        informer.apply("ADDED", pod_factory("a", resource_version="5"))
        informer.apply("MODIFIED", pod_factory("a", resource_version="6"))
        informer.apply("DELETED", pod_factory("a", resource_version="7"))

        assert [type(n) for n in seen] == [Added, Updated, Deleted]
        assert isinstance(seen[1], Updated)
        assert seen[1].old["metadata"]["resourceVersion"] == "5"
        assert informer.get_by_key("default/a") is None

    def test_modified_unknown_object_is_added(self, fake_cluster: Any, pod_factory: Any) -> None:
        seen: list[Notification] = []
        informer = _informer(fake_cluster, seen)
        informer.apply("MODIFIED", pod_factory("a"))
        assert isinstance(seen[0], Added)

    def test_gone_raises_resource_expired(self, fake_cluster: Any) -> None:
        informer = _informer(fake_cluster, [])
        with pytest.raises(ResourceExpiredError):
            informer.apply("ERROR", {"code": 410, "message": "too old resource version"})

    def test_other_error_raises_watch_error(self, fake_cluster: Any) -> None:
        informer = _informer(fake_cluster, [])
        with pytest.raises(WatchError):
            informer.apply("ERROR", {"code": 500, "reason": "InternalError"})

    def test_bookmark_only_moves_version(self, fake_cluster: Any) -> None:
        seen: list[Notification] = []
        informer = _informer(fake_cluster, seen)
        informer.apply("BOOKMARK", {"metadata": {"resourceVersion": "99"}})
        assert seen == []
        assert len(informer) == 0

    def test_handler_errors_do_not_break_the_store(self, fake_cluster: Any, pod_factory: Any) -> None:
        def _boom(_: Notification) -> None:
            raise RuntimeError("handler failed")

        informer = Informer(name="Pod", list_watch=fake_cluster.list_watch(), handler=_boom)
        informer.apply("ADDED", pod_factory("a"))
        assert informer.get_by_key("default/a") is not None


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------


class TestRunLoop:
    async def test_syncs_and_watches_from_list_version(
        self, fake_cluster: Any, pod_factory: Any, eventually: Any
    ) -> None:
        fake_cluster.items = [pod_factory("a")]
        fake_cluster.resource_version = "42"
        seen: list[Notification] = []
        informer = _informer(fake_cluster, seen)

        await informer.start()
        try:
            assert await informer.wait_for_sync(timeout=1.0) is True
            assert informer.has_synced()
            await eventually(lambda: fake_cluster.watch_versions == ["42"])

            fake_cluster.push("ADDED", pod_factory("b"))
            await eventually(lambda: len(seen) == 2)
        finally:
            await informer.stop()

    async def test_gone_triggers_relist(self, fake_cluster: Any, pod_factory: Any, eventually: Any) -> None:
        fake_cluster.items = [pod_factory("a")]
        seen: list[Notification] = []
        informer = _informer(fake_cluster, seen)

        await informer.start()
        try:
            await informer.wait_for_sync(timeout=1.0)
            await eventually(lambda: len(fake_cluster.watch_versions) == 1)

            fake_cluster.items = []
            fake_cluster.push("ERROR", {"code": 410, "message": "expired"})
            await eventually(lambda: fake_cluster.list_calls == 2)
            await eventually(lambda: any(isinstance(n, Deleted) for n in seen))
        finally:
            await informer.stop()

    async def test_sync_times_out_when_list_fails(self, fake_cluster: Any) -> None:
        fake_cluster.fail_list = RuntimeError("apiserver unavailable")
        informer = _informer(fake_cluster, [])

        await informer.start()
        try:
            assert await informer.wait_for_sync(timeout=0.05) is False
            assert not informer.has_synced()
        finally:
            await informer.stop()

    async def test_stop_is_idempotent(self, fake_cluster: Any) -> None:
        informer = _informer(fake_cluster, [])
        await informer.start()
        await informer.stop()
        await informer.stop()

    async def test_empty_watch_passes_back_off(self, fake_cluster: Any) -> None:
        watch_calls = 0

        async def _closed_watch(resource_version: str, timeout: int) -> AsyncIterator[dict[str, Any]]:
            nonlocal watch_calls
            watch_calls += 1
            return
            yield

        list_watch = ListWatch(list=fake_cluster.list, watch=_closed_watch)
        informer = Informer(name="Pod", list_watch=list_watch, handler=lambda _: None)

        await informer.start()
        try:
            assert await informer.wait_for_sync(timeout=1.0) is True
            await asyncio.sleep(0.2)
        finally:
            await informer.stop()

        assert fake_cluster.list_calls == 1
        assert 1 <= watch_calls < 10
