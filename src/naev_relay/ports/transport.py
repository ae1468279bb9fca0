from __future__ import annotations
from typing import Protocol, Optional, Tuple

from naev_relay.domain.types import TransportEvent


class PeerHandle(Protocol):
    @property
    def peer_id(self) -> int: ...

    @property
    def address(self) -> str: ...


class TransportPort(Protocol):
    def service(self, timeout_ms: int = 0) -> Optional[TransportEvent]: ...
    def send(self, peer: PeerHandle, data: bytes) -> None:
        """Raises ValueError when ``data`` does not fit in one datagram."""
        ...
    def disconnect(self, peer: PeerHandle) -> None: ...
    def close(self) -> None: ...


Address = Tuple[str, int]
