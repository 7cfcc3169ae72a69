"""JsonStore, RateLimitState and EventBus."""
import logging
import os
import stat

import pytest

from cadence.core.events import ConnectionStatus, ConnectionStatusChanged, EventBus
from cadence.core.rate_limit import RateLimitState, parse_retry_after
from cadence.core.store import JsonStore
from tests.fakes import FakeClock


def test_store_set_update_delete(tmp_path) -> None:
    store = JsonStore(tmp_path / "nested" / "settings.json")
    assert store.get("last_volume") is None
    store.set("last_volume", 40)
    store.update({"a": 1, "b": 2, "last_volume": None})
    assert store.get("last_volume") is None
    assert store.get("a") == 1
    store.delete("a", "missing")
    assert store.get("a") is None
    assert store.get("b") == 2
    store.clear()
    store.clear()
    assert not store.path.exists()


def test_secret_store_is_owner_only(tmp_path) -> None:
    store = JsonStore(tmp_path / "session.json", secret=True)
    store.set("access_token", "secret")
    mode = stat.S_IMODE(os.stat(store.path).st_mode)
    assert mode == 0o600


def test_corrupt_store_reads_as_empty(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    store = JsonStore(path)
    assert store.get("a") is None
    store.set("a", 1)
    assert store.get("a") == 1


def test_rate_limit_window() -> None:
    clock = FakeClock()
    state = RateLimitState(30, clock=clock)
    assert not state.is_limited()
    assert state.block() == 30
    assert state.is_limited()
    clock.now += 29
    assert state.remaining() == pytest.approx(1)
    clock.now += 1
    assert not state.is_limited()
    state.block(5)
    state.reset()
    assert not state.is_limited()


def test_rate_limit_block_never_shortens() -> None:
    clock = FakeClock()
    state = RateLimitState(30, clock=clock)
    state.block(60)
    state.block(5)
    assert state.remaining() == pytest.approx(60)


@pytest.mark.parametrize(
    "headers,expected",
    [
        ({"Retry-After": "12"}, 12.0),
        ({"retry-after": "3"}, 3.0),
        ({"Retry-After": "soon"}, None),
        ({}, None),
        (None, None),
    ],
)
def test_parse_retry_after(headers, expected) -> None:
    assert parse_retry_after(headers) == expected


def test_event_bus_survives_broken_listener(caplog) -> None:
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("render failed")

    bus.subscribe(broken)
    unsubscribe = bus.subscribe(received.append)
    event = ConnectionStatusChanged(ConnectionStatus.CONNECTED)
    with caplog.at_level(logging.ERROR, logger="cadence.core.events"):
        bus.emit(event)
    assert received == [event]
    assert "connectionStatus" in caplog.text

    unsubscribe()
    unsubscribe()
    bus.emit(event)
    assert received == [event]
