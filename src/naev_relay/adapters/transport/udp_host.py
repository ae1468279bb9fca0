from __future__ import annotations

import enum
import itertools
import logging
import random
import socket
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Optional, Tuple

from naev_relay.config import const
from naev_relay.domain.types import EventKind, TransportEvent
from naev_relay.sdk.errors import FrameError, TransportCreationFailure

from .frame import Frame, FrameKind, MAX_PAYLOAD

_log = logging.getLogger("naev_relay.transport")

Addr = Tuple[str, int]
_PEER_IDS = itertools.count(1)
_EARLY_LIMIT = 256


class PeerState(enum.Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(slots=True)
class _Pending:
    raw: bytes
    sent_at: float
    retries: int = 0


@dataclass(eq=False, slots=True)
class Peer:
    """One remote endpoint. Identity is the object itself; ``peer_id`` is for logs."""

    addr: Addr
    state: PeerState
    last_recv: float
    last_send: float
    peer_id: int = field(default_factory=lambda: next(_PEER_IDS))
    next_out_seq: int = 1
    next_in_seq: int = 1
    connect_retries: int = 0
    session: int = 0
    pending: Dict[int, _Pending] = field(default_factory=dict)
    early: Dict[int, bytes] = field(default_factory=dict)

    @property
    def address(self) -> str:
        host, port = self.addr[0], self.addr[1]
        return f"{host}:{port}"

    def __repr__(self) -> str:
        return f"Peer(id={self.peer_id}, {self.address}, {self.state.value})"


class UdpHost:
    """
    Connection-oriented reliable datagrams over one UDP socket.

    ``service`` returns at most one event per call, like an ENet host: call it
    with the bounded wait first, then with 0 until it returns None.
    """

    def __init__(
        self,
        sock: socket.socket,
        *,
        retransmit_ms: int = const.RETRANSMIT_MS,
        max_retries: int = const.MAX_RETRIES,
        ping_interval: float = const.PING_INTERVAL,
        peer_timeout: float = const.PEER_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.sock = sock
        self.retransmit_s = retransmit_ms / 1000.0
        self.max_retries = max_retries
        self.ping_interval = ping_interval
        self.peer_timeout = peer_timeout
        self.clock = clock
        self._peers: Dict[Addr, Peer] = {}
        self._events: Deque[TransportEvent] = deque()

    @classmethod
    def listening(cls, host: str, port: int, **kw) -> "UdpHost":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            raise TransportCreationFailure(host, port, detail=str(e)) from e
        return cls(sock, **kw)

    @classmethod
    def client(cls, **kw) -> "UdpHost":
        return cls.listening("0.0.0.0", 0, **kw)

    @property
    def local_address(self) -> Addr:
        return self.sock.getsockname()

    @property
    def peers(self) -> Tuple[Peer, ...]:
        return tuple(self._peers.values())

    # ---------- public API ----------

    def connect(self, addr: Addr) -> Peer:
        # datagrams come back from the resolved ip, peers are keyed by it
        addr = (socket.gethostbyname(addr[0]), int(addr[1]))
        now = self.clock()
        peer = self._peers.get(addr)
        if peer is not None:
            return peer
        peer = Peer(addr=addr, state=PeerState.CONNECTING, last_recv=now, last_send=now, session=random.getrandbits(32))
        self._peers[addr] = peer
        self._transmit(peer, self._connect_frame(peer), now)
        return peer

    def send(self, peer: Peer, data: bytes) -> None:
        """Queue ``data`` for reliable, ordered delivery. Sends to a dropped peer are discarded."""
        if len(data) > MAX_PAYLOAD:
            raise ValueError(f"payload too large: {len(data)}")
        if self._peers.get(peer.addr) is not peer:
            _log.debug("transport.send_to_gone_peer", extra={"extra": {"address": peer.address}})
            return
        now = self.clock()
        seq = peer.next_out_seq
        peer.next_out_seq += 1
        raw = Frame.data(seq, data).to_bytes()
        peer.pending[seq] = _Pending(raw=raw, sent_at=now)
        if peer.state is PeerState.CONNECTED:
            self._transmit(peer, raw, now)

    def disconnect(self, peer: Peer) -> None:
        if self._peers.get(peer.addr) is not peer:
            return
        self._transmit(peer, Frame.control(FrameKind.DISCONNECT).to_bytes(), self.clock())
        del self._peers[peer.addr]

    def service(self, timeout_ms: int = 0) -> Optional[TransportEvent]:
        deadline = self.clock() + timeout_ms / 1000.0
        while not self._events:
            now = self.clock()
            self._tick(now)
            if self._events:
                break
            wait = max(0.0, min(deadline - now, self.retransmit_s))
            self._receive(wait)
            # traffic that raises no event (pings, acks, junk) must not extend the wait
            if not self._events and self.clock() >= deadline:
                break
        return self._events.popleft() if self._events else None

    def close(self) -> None:
        self.sock.close()

    # ---------- internals ----------

    def _transmit(self, peer: Peer, raw: bytes, now: float) -> None:
        peer.last_send = now
        try:
            self.sock.sendto(raw, peer.addr)
        except OSError as e:
            _log.debug("transport.sendto_failed", extra={"extra": {"address": peer.address, "error": str(e)}})

    @staticmethod
    def _connect_frame(peer: Peer) -> bytes:
        return Frame(kind=FrameKind.CONNECT, seq=peer.session).to_bytes()

    def _drop(self, peer: Peer, reason: str) -> None:
        if self._peers.get(peer.addr) is peer:
            del self._peers[peer.addr]
            _log.debug("transport.peer_dropped", extra={"extra": {"address": peer.address, "reason": reason}})
            self._events.append(TransportEvent(EventKind.DISCONNECT, peer))

    def _receive(self, wait: float) -> bool:
        self.sock.settimeout(wait)
        try:
            raw, addr = self.sock.recvfrom(const.MAX_DATAGRAM)
        except (socket.timeout, BlockingIOError):
            return False
        except (ConnectionResetError, ConnectionRefusedError):
            # ICMP port unreachable surfaced by some platforms; peer timeouts handle it
            return False
        self._on_datagram(raw, addr, self.clock())
        return True

    def _on_datagram(self, raw: bytes, addr: Addr, now: float) -> None:
        try:
            frame = Frame.from_bytes(raw)
        except FrameError as e:
            _log.debug("transport.bad_frame", extra={"extra": {"from": f"{addr[0]}:{addr[1]}", "error": str(e)}})
            return

        peer = self._peers.get(addr)
        if frame.kind is FrameKind.CONNECT:
            if peer is not None and peer.session != frame.seq:
                # same address, new connection: the old one is gone
                self._drop(peer, "reconnect")
                peer = None
            if peer is None:
                peer = Peer(addr=addr, state=PeerState.CONNECTED, last_recv=now, last_send=now, session=frame.seq)
                self._peers[addr] = peer
                self._events.append(TransportEvent(EventKind.CONNECT, peer))
            peer.last_recv = now
            self._transmit(peer, Frame.control(FrameKind.VERIFY).to_bytes(), now)
            return

        if peer is None:
            if frame.kind not in (FrameKind.DISCONNECT, FrameKind.VERIFY):
                # tell a forgotten remote that its connection is gone
                try:
                    self.sock.sendto(Frame.control(FrameKind.DISCONNECT).to_bytes(), addr)
                except OSError:
                    pass
            return

        peer.last_recv = now
        if frame.kind is FrameKind.VERIFY:
            if peer.state is PeerState.CONNECTING:
                peer.state = PeerState.CONNECTED
                self._events.append(TransportEvent(EventKind.CONNECT, peer))
                for seq in sorted(peer.pending):
                    item = peer.pending[seq]
                    item.sent_at = now
                    self._transmit(peer, item.raw, now)
        elif frame.kind is FrameKind.DATA:
            self._transmit(peer, Frame.make_ack(frame.seq).to_bytes(), now)
            self._accept(peer, frame)
        elif frame.kind is FrameKind.ACK:
            peer.pending.pop(frame.ack, None)
        elif frame.kind is FrameKind.DISCONNECT:
            del self._peers[addr]
            self._events.append(TransportEvent(EventKind.DISCONNECT, peer))

    def _accept(self, peer: Peer, frame: Frame) -> None:
        if frame.seq < peer.next_in_seq:
            return  # duplicate of something already delivered
        if frame.seq > peer.next_in_seq:
            if len(peer.early) < _EARLY_LIMIT:
                peer.early[frame.seq] = frame.payload
            return
        self._events.append(TransportEvent(EventKind.RECEIVE, peer, frame.payload))
        peer.next_in_seq += 1
        while peer.next_in_seq in peer.early:
            payload = peer.early.pop(peer.next_in_seq)
            self._events.append(TransportEvent(EventKind.RECEIVE, peer, payload))
            peer.next_in_seq += 1

    def _tick(self, now: float) -> None:
        for peer in list(self._peers.values()):
            if peer.state is PeerState.CONNECTING:
                if now - peer.last_send < self.retransmit_s:
                    continue
                if peer.connect_retries >= self.max_retries:
                    self._drop(peer, "connect_timeout")
                    continue
                peer.connect_retries += 1
                self._transmit(peer, self._connect_frame(peer), now)
                continue

            if now - peer.last_recv > self.peer_timeout:
                self._drop(peer, "timeout")
                continue

            for seq in sorted(peer.pending):
                item = peer.pending[seq]
                if now - item.sent_at < self.retransmit_s:
                    continue
                if item.retries >= self.max_retries:
                    self._drop(peer, "unacknowledged")
                    break
                item.retries += 1
                item.sent_at = now
                self._transmit(peer, item.raw, now)
            else:
                if now - peer.last_send >= self.ping_interval:
                    self._transmit(peer, Frame.control(FrameKind.PING).to_bytes(), now)
