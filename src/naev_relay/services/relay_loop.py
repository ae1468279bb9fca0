# src/naev_relay/services/relay_loop.py
from __future__ import annotations
import enum
import logging
import threading
from typing import Optional

from naev_relay.config import const
from naev_relay.domain.types import EventKind, TransportEvent
from naev_relay.ports.directory import DirectoryPort
from naev_relay.ports.transport import TransportPort
from naev_relay.services.dispatcher import Dispatcher
from naev_relay.services.reaper import Reaper

_log = logging.getLogger("naev_relay.loop")


class LoopState(enum.Enum):
    RUNNING = "running"
    FATAL = "fatal"


class RelayLoop:
    """
    Single control flow that owns every Directory mutation:
      * polls the transport (bounded wait), then drains ready events without waiting
      * receive -> Dispatcher -> reply to the sender
      * disconnect -> drop every record owned by that peer
      * runs the Reaper whenever its interval has elapsed
    """

    def __init__(
        self,
        transport: TransportPort,
        directory: DirectoryPort,
        dispatcher: Dispatcher,
        reaper: Reaper,
        *,
        poll_timeout_ms: int = const.POLL_TIMEOUT_MS,
    ) -> None:
        self.transport = transport
        self.directory = directory
        self.dispatcher = dispatcher
        self.reaper = reaper
        self.poll_timeout_ms = poll_timeout_ms
        self.state = LoopState.RUNNING

    def handle_event(self, event: TransportEvent) -> None:
        peer = event.peer
        if event.kind is EventKind.CONNECT:
            _log.info("peer.connect", extra={"extra": {"address": peer.address}})
        elif event.kind is EventKind.RECEIVE:
            reply = self.dispatcher.handle(event.data, peer, peer.address)
            if reply is not None:
                self._reply(peer, reply)
        elif event.kind is EventKind.DISCONNECT:
            _log.info("peer.disconnect", extra={"extra": {"address": peer.address}})
            self.directory.remove_all_owned_by(peer)

    def _reply(self, peer, reply: str) -> None:
        data = reply.encode("utf-8")
        try:
            self.transport.send(peer, data)
        except ValueError as e:
            # does not fit in one datagram; the peer gets nothing
            _log.warning(
                "relay.reply_dropped",
                extra={"extra": {"address": peer.address, "size": len(data), "error": str(e)}},
            )

    def run_once(self) -> int:
        """One iteration; returns the number of transport events processed."""
        handled = 0
        event = self.transport.service(self.poll_timeout_ms)
        while event is not None:
            self.handle_event(event)
            handled += 1
            event = self.transport.service(0)
        self.reaper.maybe_run()
        return handled

    def run_forever(self, stop: Optional[threading.Event] = None) -> None:
        try:
            while stop is None or not stop.is_set():
                self.run_once()
        except Exception:
            self.state = LoopState.FATAL
            _log.critical("relay.fatal", exc_info=True)
            raise
