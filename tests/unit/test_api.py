"""Tests for the health, readiness, status and metrics endpoints."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from diffwatch.api import create_app
from diffwatch.controller.controller import ResourceController
from diffwatch.controller.dispatcher import AlertDispatcher
from diffwatch.controller.kinds import WATCHED_KINDS
from diffwatch.models.context import WatchContext
from diffwatch.notifications import LogNotificationChannel, NotificationManager

_POD = next(kind for kind in WATCHED_KINDS if kind.flag == "pod")


def _context(started_at: Any) -> WatchContext:
    return WatchContext(
        namespaces=frozenset({"prod", "default"}),
        diff_ignore=("/metadata/resourceVersion",),
        started_at=started_at,
    )


def _controller(context: WatchContext, synced: bool) -> ResourceController:
    controller = ResourceController(_POD, context, AlertDispatcher(NotificationManager([])))
    informer = MagicMock()
    informer.has_synced.return_value = synced
    controller.bind_informer(informer)
    return controller


@pytest.fixture
def context(started_at: Any) -> WatchContext:
    return _context(started_at)


class TestProbes:
    def test_healthz(self, context: WatchContext) -> None:
        client = TestClient(create_app(context))
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_readyz_pending_until_synced(self, context: WatchContext) -> None:
        client = TestClient(create_app(context, controllers=[_controller(context, synced=False)]))
        response = client.get("/readyz")
        assert response.status_code == 503
        assert response.json() == {"ready": False, "pending": ["Pod (v1)"]}

    def test_readyz_ok_when_all_synced(self, context: WatchContext) -> None:
        client = TestClient(create_app(context, controllers=[_controller(context, synced=True)]))
        response = client.get("/readyz")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_readyz_with_no_controllers(self, context: WatchContext) -> None:
        client = TestClient(create_app(context))
        assert client.get("/readyz").status_code == 200

    def test_metrics_exposition(self, context: WatchContext) -> None:
        client = TestClient(create_app(context))
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "diffwatch_" in response.text


class TestStatus:
    def test_reports_context_and_controllers(self, context: WatchContext) -> None:
        sink = NotificationManager([LogNotificationChannel()])
        app = create_app(context, controllers=[_controller(context, synced=True)], sink=sink)
        client = TestClient(app)

        body = client.get("/api/v1/status").json()

        assert body["namespaces"] == ["default", "prod"]
        assert body["diff_ignore"] == ["/metadata/resourceVersion"]
        assert body["max_retries"] == 5
        assert body["notification_channels"] == ["log"]
        assert body["controllers"] == [
            {"kind": "Pod", "api_version": "v1", "synced": True, "running": False, "queue_depth": 0}
        ]

    def test_unhandled_errors_become_500(self, context: WatchContext) -> None:
        broken = MagicMock()
        broken.has_synced.side_effect = RuntimeError("boom")
        client = TestClient(create_app(context, controllers=[broken]), raise_server_exceptions=False)

        response = client.get("/api/v1/status")

        assert response.status_code == 500
        assert response.json()["error"] == "INTERNAL_ERROR"
