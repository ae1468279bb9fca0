# src/naev_relay/services/client.py
from __future__ import annotations
import logging
import time
from typing import List, Optional, Tuple

from naev_relay.adapters.transport import Peer, UdpHost
from naev_relay.config import const
from naev_relay.domain.types import EventKind, SystemListing
from naev_relay.sdk.errors import RelayUnavailable
from naev_relay.services import protocol
from naev_relay.services.protocol import Advertise, Command, Deadvertise, Find, Heartbeat, ListSystems, Unknown

_log = logging.getLogger("naev_relay.client")

# first reply line each request may be answered with
_REPLY_HEADS = {
    Advertise: ("advertise_ack",),
    Find: ("found", "not_found"),
    Heartbeat: ("heartbeat_ack",),
    Deadvertise: ("deadvertise_ack",),
    ListSystems: ("active_systems",),
    Unknown: ("error",),
}


def parse_server(server: str, default_port: int = const.DEFAULT_PORT) -> Tuple[str, int]:
    """``"host:port"`` or ``"host"`` -> (host, port)."""
    host, sep, port = server.rpartition(":")
    if not sep:
        return server, default_port
    return host, int(port)


class RelayClient:
    """
    Client side of the relay protocol, one transport connection per instance.

    Usable as a context manager; the connection is opened on enter and
    closed (DISCONNECT sent) on exit. Records advertised through this client
    are owned by its connection and vanish from the relay when it closes.
    """

    def __init__(self, server: str, *, timeout: float = const.CLIENT_TIMEOUT, host: Optional[UdpHost] = None) -> None:
        self.server = server
        self.timeout = timeout
        self.host = host or UdpHost.client()
        self.peer: Optional[Peer] = None

    def __enter__(self) -> "RelayClient":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def open(self) -> None:
        try:
            self.peer = self.host.connect(parse_server(self.server))
        except (OSError, ValueError) as e:
            self.close()
            raise RelayUnavailable(self.server, message=f"bad relay address {self.server}: {e}") from e
        deadline = time.monotonic() + self.timeout
        while time.monotonic() < deadline:
            event = self.host.service(self._remaining_ms(deadline))
            if event is None:
                continue
            if event.peer is self.peer and event.kind is EventKind.CONNECT:
                _log.debug("client.connected", extra={"extra": {"server": self.server}})
                return
            if event.peer is self.peer and event.kind is EventKind.DISCONNECT:
                break
        self.close()
        raise RelayUnavailable(self.server)

    def close(self) -> None:
        if self.peer is not None:
            self.host.disconnect(self.peer)
            self.peer = None
        self.host.close()

    def pump(self, seconds: float) -> None:
        """Keep the connection alive for ``seconds`` (keepalives, acks) without sending requests."""
        deadline = time.monotonic() + seconds
        while time.monotonic() < deadline:
            event = self.host.service(self._remaining_ms(deadline))
            if event is not None and event.peer is self.peer and event.kind is EventKind.DISCONNECT:
                self._lost()

    # ---------- requests ----------

    def request(self, command: Command, *, timeout: Optional[float] = None) -> Optional[str]:
        """
        Send one command; return the reply text or None if none arrived within ``timeout``.

        Replies left over from earlier timed-out requests are discarded, both
        those already queued and those whose first line does not answer ``command``.
        """
        if self.peer is None:
            raise RelayUnavailable(self.server, message="client is not connected")
        self._drain()
        self.host.send(self.peer, protocol.request(command).encode(protocol.ENCODING))
        heads = _REPLY_HEADS[type(command)]
        deadline = time.monotonic() + (self.timeout if timeout is None else timeout)
        while time.monotonic() < deadline:
            event = self.host.service(self._remaining_ms(deadline))
            if event is None or event.peer is not self.peer:
                continue
            if event.kind is EventKind.DISCONNECT:
                self._lost()
            if event.kind is EventKind.RECEIVE:
                reply = event.data.decode(protocol.ENCODING, errors="replace")
                lines = protocol.parse_message(reply)
                if lines and lines[0] in heads:
                    return reply
                _log.debug("client.stale_reply", extra={"extra": {"reply": reply[:64]}})
        return None

    def _drain(self) -> None:
        event = self.host.service(0)
        while event is not None:
            if event.peer is self.peer:
                if event.kind is EventKind.DISCONNECT:
                    self._lost()
                if event.kind is EventKind.RECEIVE:
                    stale = event.data[:64].decode(protocol.ENCODING, errors="replace")
                    _log.debug("client.stale_reply", extra={"extra": {"reply": stale}})
            event = self.host.service(0)

    def _lost(self) -> None:
        self.peer = None
        raise RelayUnavailable(self.server, message=f"relay {self.server} closed the connection")

    def advertise(self, name: str) -> bool:
        reply = self.request(Advertise(name))
        return reply is not None and protocol.parse_message(reply)[:1] == ["advertise_ack"]

    def find(self, name: str) -> Optional[str]:
        """Address of the live host of ``name``, or None."""
        reply = self.request(Find(name))
        if reply is None:
            raise RelayUnavailable(self.server, message=f"no reply from {self.server}")
        lines = protocol.parse_message(reply)
        if len(lines) >= 2 and lines[0] == "found":
            return lines[1]
        return None

    def heartbeat(self, name: str, *, timeout: Optional[float] = None) -> bool:
        return self.request(Heartbeat(name), timeout=timeout) == protocol.heartbeat_ack()

    def deadvertise(self, name: str, *, timeout: Optional[float] = None) -> bool:
        return self.request(Deadvertise(name), timeout=timeout) == protocol.deadvertise_ack()

    def list_systems(self) -> List[SystemListing]:
        reply = self.request(ListSystems())
        if reply is None:
            raise RelayUnavailable(self.server, message=f"no reply from {self.server}")
        return protocol.parse_listing(reply)

    @staticmethod
    def _remaining_ms(deadline: float) -> int:
        return max(0, min(const.POLL_TIMEOUT_MS, int((deadline - time.monotonic()) * 1000)))
