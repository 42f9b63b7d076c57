"""Tests for CancelToken and the connectivity probe."""

from __future__ import annotations

import socket

import pytest

from campussync.sync.cancel import CancelToken
from campussync.sync.connectivity import probe_from_config, tcp_probe


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestCancelToken:
    def test_not_cancelled_by_default(self):
        token = CancelToken()
        assert not token.cancelled
        assert not token.timed_out

    def test_explicit_cancel(self):
        token = CancelToken()
        token.cancel()
        assert token.cancelled
        assert not token.timed_out

    def test_deadline(self):
        clock = FakeClock()
        token = CancelToken(5, clock=clock)

        clock.now = 104.9
        assert not token.cancelled
        clock.now = 105.0
        assert token.timed_out
        assert token.cancelled


class TestConnectivity:
    def test_no_host_means_online(self):
        assert probe_from_config({})() is True
        assert probe_from_config(None)() is True
        assert probe_from_config({"connectivity": {"host": ""}})() is True

    def test_probe_succeeds_against_listening_socket(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(("127.0.0.1", 0))
            server.listen(1)
            port = server.getsockname()[1]

            assert tcp_probe("127.0.0.1", port, timeout=1.0) is True
            probe = probe_from_config(
                {"connectivity": {"host": "127.0.0.1", "port": port, "timeout_seconds": 1.0}}
            )
            assert probe() is True

    def test_probe_fails_on_closed_port(self, caplog: pytest.LogCaptureFixture):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            port = s.getsockname()[1]
        # Socket closed without listening; nothing accepts on the port now.
        with caplog.at_level("INFO", logger="campussync.sync.connectivity"):
            assert tcp_probe("127.0.0.1", port, timeout=1.0) is False
        assert "connectivity probe" in caplog.text
