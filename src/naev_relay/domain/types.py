# src/naev_relay/domain/types.py
from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class HostingRecord:
    system_name: str
    peer: Any  # non-owning handle; compared by identity only
    address: str
    last_seen: float

    def age(self, now: float) -> float:
        return now - self.last_seen


@dataclass(frozen=True, slots=True)
class SystemListing:
    name: str
    address: str
    age: int


class EventKind(enum.Enum):
    CONNECT = "connect"
    RECEIVE = "receive"
    DISCONNECT = "disconnect"


@dataclass(frozen=True, slots=True)
class TransportEvent:
    kind: EventKind
    peer: Any
    data: bytes = b""
