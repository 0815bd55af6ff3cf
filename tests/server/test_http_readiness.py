"""
Tests for wait_healthy against real local HTTP servers.
"""
from __future__ import annotations

import time

from devserve.core.server import is_http_responsive, wait_healthy
from helpers.servers import DelayedHttpServer


def _url(port: int) -> str:
    return f"http://127.0.0.1:{port}/"


def test_returns_true_once_target_starts_responding(port):
    began = time.monotonic()
    with DelayedHttpServer(port, delay=0.4) as server:
        assert wait_healthy(_url(port), 0.05, 5.0)
        elapsed = time.monotonic() - began

    assert server.started_at is not None
    assert elapsed >= 0.4
    assert elapsed < 5.0


def test_returns_false_only_after_timeout(port):
    began = time.monotonic()
    assert wait_healthy(_url(port), 0.05, 0.5) is False
    assert time.monotonic() - began >= 0.5


def test_error_status_counts_as_reachable(port):
    with DelayedHttpServer(port, status=503):
        assert wait_healthy(_url(port), 0.05, 5.0)


def test_should_abort_stops_polling_early(port):
    began = time.monotonic()
    assert wait_healthy(_url(port), 0.05, 10.0, should_abort=lambda: True) is False
    assert time.monotonic() - began < 5.0


def test_zero_timeout_makes_no_attempt(port):
    with DelayedHttpServer(port):
        time.sleep(0.2)
        assert wait_healthy(_url(port), 0.05, 0) is False


def test_is_http_responsive_on_closed_port(port):
    assert is_http_responsive(_url(port), timeout_seconds=0.5) is False


def test_is_http_responsive_rejects_malformed_url():
    assert is_http_responsive("not a url", timeout_seconds=0.5) is False
