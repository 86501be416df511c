"""Tests for namespace watch-set computation and key parsing."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from hypothesis import given
from hypothesis import strategies as st

from diffwatch.controller.namespaces import (
    compute_watch_namespaces,
    list_namespaces,
    namespace_of_key,
    resolve_watch_namespaces,
)

_NAMES = st.lists(st.from_regex(r"[a-z][a-z0-9-]{0,10}", fullmatch=True), max_size=8)


def _core_api(names: list[str]) -> MagicMock:
    items = []
    for name in names:
        item = MagicMock()
        item.metadata.name = name
        items.append(item)
    api = MagicMock()
    api.list_namespace = AsyncMock(return_value=MagicMock(items=items))
    return api


# ---------------------------------------------------------------------------
# compute_watch_namespaces
# ---------------------------------------------------------------------------


class TestComputeWatchNamespaces:
    def test_include_taken_verbatim(self) -> None:
        result = compute_watch_namespaces(["team-a", "team-b"], ["team-a"], ["default", "kube-system"])
        assert result == {"team-a", "team-b"}

    def test_exclude_removed_from_all(self) -> None:
        result = compute_watch_namespaces([], ["kube-system"], ["default", "kube-system", "prod"])
        assert result == {"default", "prod"}

    def test_exclude_of_unknown_namespace_is_harmless(self) -> None:
        result = compute_watch_namespaces([], ["missing"], ["default"])
        assert result == {"default"}

    def test_no_policy_watches_everything(self) -> None:
        assert compute_watch_namespaces([], [], ["a", "b"]) == {"a", "b"}

    def test_result_is_immutable(self) -> None:
        assert isinstance(compute_watch_namespaces([], [], ["a"]), frozenset)

    @given(include=_NAMES.filter(bool), exclude=_NAMES, everything=_NAMES)
    def test_non_empty_include_ignores_exclude(
        self, include: list[str], exclude: list[str], everything: list[str]
    ) -> None:
        assert compute_watch_namespaces(include, exclude, everything) == set(include)

    @given(exclude=_NAMES, everything=_NAMES)
    def test_empty_include_is_all_minus_exclude(self, exclude: list[str], everything: list[str]) -> None:
        assert compute_watch_namespaces([], exclude, everything) == set(everything) - set(exclude)


# ---------------------------------------------------------------------------
# Cluster listing
# ---------------------------------------------------------------------------


class TestListNamespaces:
    async def test_lists_names(self) -> None:
        api = _core_api(["default", "prod"])
        assert await list_namespaces(api) == ["default", "prod"]

    async def test_api_error_propagates(self) -> None:
        api = MagicMock()
        api.list_namespace = AsyncMock(side_effect=RuntimeError("forbidden"))
        with pytest.raises(RuntimeError):
            await list_namespaces(api)

    async def test_include_skips_cluster_listing(self) -> None:
        api = _core_api(["default"])
        result = await resolve_watch_namespaces(["team-a"], [], api)
        assert result == {"team-a"}
        api.list_namespace.assert_not_called()

    async def test_empty_include_lists_cluster(self) -> None:
        api = _core_api(["default", "kube-system"])
        result = await resolve_watch_namespaces([], ["kube-system"], api)
        assert result == {"default"}
        api.list_namespace.assert_awaited_once()


# ---------------------------------------------------------------------------
# namespace_of_key
# ---------------------------------------------------------------------------


class TestNamespaceOfKey:
    def test_namespaced_key(self) -> None:
        assert namespace_of_key("default/web-1") == "default"

    def test_bare_key_is_its_own_namespace(self) -> None:
        assert namespace_of_key("kube-system") == "kube-system"

    def test_splits_on_first_slash_only(self) -> None:
        assert namespace_of_key("ns/a/b") == "ns"
