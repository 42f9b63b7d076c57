"""Tests for the sync completion bus."""

from __future__ import annotations

import logging

import pytest

from campussync.storage import bus


@pytest.fixture(autouse=True)
def _clean_bus():
    yield
    with bus._lock:
        bus._listeners.clear()


def test_listeners_receive_notifications() -> None:
    seen = []
    bus.register_listener(lambda user_id, result: seen.append((user_id, result)))

    bus.notify("u1", {"pushed_count": 1})

    assert seen == [("u1", {"pushed_count": 1})]


def test_unregister() -> None:
    seen = []

    def listener(user_id, result):
        seen.append(user_id)

    bus.register_listener(listener)
    bus.unregister_listener(listener)
    bus.unregister_listener(listener)

    bus.notify("u1", None)
    assert seen == []


def test_listener_errors_are_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    seen = []

    def broken(user_id, result):
        raise RuntimeError("ui went away")

    bus.register_listener(broken)
    bus.register_listener(lambda user_id, result: seen.append(user_id))

    with caplog.at_level(logging.WARNING, logger="campussync.storage.bus"):
        bus.notify("u1", None)

    assert seen == ["u1"]
    assert "ui went away" in caplog.text
