# tests/conftest.py
from __future__ import annotations
import logging
import threading
from collections import deque
from typing import Deque, List, Optional, Tuple

import pytest

from naev_relay.apps.bootstrap import build_relay
from naev_relay.domain.types import EventKind, TransportEvent
from naev_relay.services.directory_mem import InMemoryDirectory
from naev_relay.services.dispatcher import Dispatcher
from naev_relay.services.reaper import Reaper
from naev_relay.services.relay_loop import RelayLoop
from naev_relay.services.settings import Settings

_RELAY_ENV = (
    "PORT",
    "RELAY_HOST",
    "RELAY_HEARTBEAT_TIMEOUT",
    "RELAY_CLEANUP_INTERVAL",
    "RELAY_POLL_TIMEOUT_MS",
    "RELAY_LOG_LEVEL",
)


# ---- controllable clock ----
class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


# ---- transport doubles ----
class FakePeer:
    _ids = 0

    def __init__(self, address: str) -> None:
        FakePeer._ids += 1
        self.peer_id = FakePeer._ids
        self.address = address

    def __repr__(self) -> str:
        return f"FakePeer({self.address})"


class FakeTransport:
    """Hands out queued events one by one; records everything sent."""

    def __init__(self) -> None:
        self.max_payload: Optional[int] = None
        self.events: Deque[TransportEvent] = deque()
        self.sent: List[Tuple[FakePeer, bytes]] = []
        self.waits: List[int] = []
        self.closed = False

    def push(self, kind: EventKind, peer: FakePeer, data: bytes | str = b"") -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.events.append(TransportEvent(kind, peer, data))

    def service(self, timeout_ms: int = 0) -> Optional[TransportEvent]:
        self.waits.append(timeout_ms)
        return self.events.popleft() if self.events else None

    def send(self, peer: FakePeer, data: bytes) -> None:
        if self.max_payload is not None and len(data) > self.max_payload:
            raise ValueError(f"payload too large: {len(data)}")
        self.sent.append((peer, data))

    def disconnect(self, peer: FakePeer) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    def replies_to(self, peer: FakePeer) -> List[str]:
        return [data.decode("utf-8") for p, data in self.sent if p is peer]


# ---------- fixtures ----------


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    """No PORT/RELAY_* leaking in from the outer shell, no stray .env."""
    for key in _RELAY_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    logger = logging.getLogger("naev_relay")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def directory() -> InMemoryDirectory:
    return InMemoryDirectory()


@pytest.fixture
def dispatcher(directory, clock) -> Dispatcher:
    return Dispatcher(directory, heartbeat_timeout=90, clock=clock)


@pytest.fixture
def peer_a() -> FakePeer:
    return FakePeer("10.0.0.1:5000")


@pytest.fixture
def peer_b() -> FakePeer:
    return FakePeer("10.0.0.2:6000")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def relay(transport, directory, dispatcher, clock) -> RelayLoop:
    reaper = Reaper(directory, timeout=90, interval=30, clock=clock)
    return RelayLoop(transport, directory, dispatcher, reaper, poll_timeout_ms=100)


@pytest.fixture
def cli_app():
    from naev_relay.apps.cli.app import app

    return app


@pytest.fixture
def relay_server():
    """A real relay on a loopback UDP port, driven by its own thread."""
    relay = build_relay(Settings(host="127.0.0.1", port=0, poll_timeout_ms=20))
    stop = threading.Event()
    thread = threading.Thread(target=relay.run_forever, kwargs={"stop": stop}, daemon=True)
    thread.start()
    try:
        yield relay
    finally:
        stop.set()
        thread.join(timeout=5)
        relay.transport.close()
