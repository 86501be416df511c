"""Tests for event classification and the pre-existing object filter."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from diffwatch.controller.classifier import classify, creation_timestamp, is_new_object
from diffwatch.models.alerts import AlertStatus
from diffwatch.models.events import ChangeEvent, EventKind

_STARTED = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


def _obj(created: datetime | str | None) -> dict:
    metadata: dict = {"name": "web-1", "namespace": "default"}
    if created is not None:
        metadata["creationTimestamp"] = created.isoformat() if isinstance(created, datetime) else created
    return {"metadata": metadata}


def _make_event(kind: EventKind, resource_type: str = "Pod", created: datetime | None = None) -> ChangeEvent:
    current = _obj(created or _STARTED + timedelta(seconds=5))
    return ChangeEvent(
        key="default/web-1",
        kind=kind,
        resource_type=resource_type,
        api_version="v1",
        current=current,
        previous=current if kind is EventKind.UPDATED else None,
    )


# ---------------------------------------------------------------------------
# Creation timestamps
# ---------------------------------------------------------------------------


class TestCreationTimestamp:
    def test_parses_kubernetes_format(self) -> None:
        ts = creation_timestamp(_obj("2026-01-01T12:00:05Z"))
        assert ts == _STARTED + timedelta(seconds=5)

    def test_naive_timestamp_assumed_utc(self) -> None:
        ts = creation_timestamp(_obj("2026-01-01T12:00:05"))
        assert ts is not None
        assert ts.tzinfo is not None

    def test_datetime_value_passed_through(self) -> None:
        obj = {"metadata": {"creationTimestamp": _STARTED}}
        assert creation_timestamp(obj) == _STARTED

    @pytest.mark.parametrize("obj", [None, {}, {"metadata": {}}, _obj("not-a-date")])
    def test_missing_or_unreadable(self, obj: dict | None) -> None:
        assert creation_timestamp(obj) is None


class TestIsNewObject:
    def test_created_after_start(self) -> None:
        assert is_new_object(_obj(_STARTED + timedelta(milliseconds=1)), _STARTED) is True

    def test_created_exactly_at_start_is_pre_existing(self) -> None:
        assert is_new_object(_obj(_STARTED), _STARTED) is False

    def test_created_before_start(self) -> None:
        assert is_new_object(_obj(_STARTED - timedelta(days=3)), _STARTED) is False

    def test_no_timestamp_is_pre_existing(self) -> None:
        assert is_new_object(_obj(None), _STARTED) is False


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------


class TestClassifyCreated:
    def test_new_object_is_normal(self) -> None:
        result = classify(_make_event(EventKind.CREATED), _STARTED)
        assert result is not None
        assert result.status is AlertStatus.NORMAL
        assert result.reason is EventKind.CREATED
        assert result.needs_diff is False

    def test_pre_existing_object_suppressed(self) -> None:
        event = _make_event(EventKind.CREATED, created=_STARTED - timedelta(hours=1))
        assert classify(event, _STARTED) is None

    @pytest.mark.parametrize(
        ("resource_type", "expected"),
        [
            ("NodeNotReady", AlertStatus.DANGER),
            ("NodeRebooted", AlertStatus.DANGER),
            ("Backoff", AlertStatus.DANGER),
            ("NodeReady", AlertStatus.NORMAL),
            ("Deployment", AlertStatus.NORMAL),
        ],
    )
    def test_status_by_resource_type(self, resource_type: str, expected: AlertStatus) -> None:
        result = classify(_make_event(EventKind.CREATED, resource_type=resource_type), _STARTED)
        assert result is not None
        assert result.status is expected


class TestClassifyUpdated:
    def test_update_is_warning(self) -> None:
        result = classify(_make_event(EventKind.UPDATED), _STARTED)
        assert result is not None
        assert result.status is AlertStatus.WARNING
        assert result.reason is EventKind.UPDATED
        assert result.needs_diff is True

    def test_backoff_update_is_danger(self) -> None:
        result = classify(_make_event(EventKind.UPDATED, resource_type="Backoff"), _STARTED)
        assert result is not None
        assert result.status is AlertStatus.DANGER

    def test_update_of_pre_existing_object_still_classified(self) -> None:
        event = _make_event(EventKind.UPDATED, created=_STARTED - timedelta(days=30))
        assert classify(event, _STARTED) is not None


class TestClassifyDeleted:
    @pytest.mark.parametrize("resource_type", ["Pod", "Node", "Backoff"])
    def test_delete_is_always_danger(self, resource_type: str) -> None:
        result = classify(_make_event(EventKind.DELETED, resource_type=resource_type), _STARTED)
        assert result is not None
        assert result.status is AlertStatus.DANGER
        assert result.reason is EventKind.DELETED

    def test_delete_of_pre_existing_object_alerts(self) -> None:
        event = _make_event(EventKind.DELETED, created=_STARTED - timedelta(days=30))
        assert classify(event, _STARTED) is not None
