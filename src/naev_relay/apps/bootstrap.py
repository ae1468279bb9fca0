# src/naev_relay/apps/bootstrap.py
from __future__ import annotations
import time
from typing import Callable, Optional

from naev_relay.adapters.transport import UdpHost
from naev_relay.ports.transport import TransportPort
from naev_relay.services.directory_mem import InMemoryDirectory
from naev_relay.services.dispatcher import Dispatcher
from naev_relay.services.reaper import Reaper
from naev_relay.services.relay_loop import RelayLoop
from naev_relay.services.settings import Settings


def build_relay(
    settings: Settings,
    transport: Optional[TransportPort] = None,
    clock: Callable[[], float] = time.monotonic,
) -> RelayLoop:
    """Wire one relay: a fresh Directory shared by the Dispatcher, the Reaper and the loop.

    Without ``transport`` a UDP host is bound to ``settings.host:settings.port``
    (raises TransportCreationFailure).
    """
    transport = transport or UdpHost.listening(settings.host, settings.port)
    directory = InMemoryDirectory()
    dispatcher = Dispatcher(directory, heartbeat_timeout=settings.heartbeat_timeout, clock=clock)
    reaper = Reaper(directory, timeout=settings.heartbeat_timeout, interval=settings.cleanup_interval, clock=clock)
    return RelayLoop(transport, directory, dispatcher, reaper, poll_timeout_ms=settings.poll_timeout_ms)
