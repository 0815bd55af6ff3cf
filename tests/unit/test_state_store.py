"""
Tests for StateStore: the only channel between start and stop invocations.
"""
from __future__ import annotations

import json

import pytest

from devserve.core.exceptions import StateNotFoundError, StateUnavailableError
from devserve.core.server import PersistedRuntimeState, StateStore


@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / ".devserve" / "state" / "server.json")


@pytest.fixture
def state():
    return PersistedRuntimeState(
        address="127.0.0.1:3000",
        process_name="server-bin",
        pid=555,
        started_at="2026-01-01T00:00:00+00:00",
        log_path="/tmp/server.log",
    )


def test_save_then_load_returns_equal_state(store, state):
    store.save(state)
    assert store.load() == state
    assert store.path.is_file()


def test_minimal_record_loads(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text(json.dumps({"address": "localhost:8080", "process_name": "srv"}), encoding="utf-8")

    loaded = store.load()

    assert loaded.address == "localhost:8080"
    assert loaded.pid is None


def test_clear_then_load_is_not_found(store, state):
    store.save(state)
    assert store.clear() is True

    with pytest.raises(StateNotFoundError):
        store.load()


def test_clear_is_idempotent(store):
    assert store.clear() is False
    assert store.clear() is False


def test_missing_state_is_state_unavailable(store):
    with pytest.raises(StateUnavailableError):
        store.load()


def test_corrupt_record_is_unavailable_not_missing(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text('{"address": "127.0.0.1:30', encoding="utf-8")

    with pytest.raises(StateUnavailableError) as exc_info:
        store.load()
    assert not isinstance(exc_info.value, StateNotFoundError)


def test_record_that_is_not_utf8_is_unavailable(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_bytes(b'{"address": "127.0.0.1:3000", "process_name": "\xff\xfe"}')

    with pytest.raises(StateUnavailableError) as exc_info:
        store.load()
    assert exc_info.value.context["path"] == str(store.path)


@pytest.mark.parametrize("address", ["127.0.0.1:0", "localhost:99999", "::1:3000"])
def test_record_with_unusable_address_is_unavailable(store, address):
    store.path.parent.mkdir(parents=True)
    store.path.write_text(json.dumps({"address": address, "process_name": "srv"}), encoding="utf-8")

    with pytest.raises(StateUnavailableError, match="address") as exc_info:
        store.load()
    assert exc_info.value.context["address"] == address


def test_record_missing_process_name_is_rejected(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text(json.dumps({"address": "127.0.0.1:3000"}), encoding="utf-8")

    with pytest.raises(StateUnavailableError, match="process_name"):
        store.load()


def test_save_refuses_invalid_state(store):
    with pytest.raises(ValueError):
        store.save(PersistedRuntimeState(address="no-port", process_name="srv"))
    assert not store.path.is_file()


def test_save_overwrites_previous_record(store, state):
    store.save(state)
    newer = PersistedRuntimeState(address="127.0.0.1:4000", process_name="other")
    store.save(newer)
    assert store.load() == newer
