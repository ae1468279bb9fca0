from __future__ import annotations
import logging
from threading import RLock
from typing import Any, Dict, List, Optional

from naev_relay.domain.types import HostingRecord, SystemListing
from naev_relay.ports.directory import DirectoryPort

_log = logging.getLogger("naev_relay.directory")


class InMemoryDirectory(DirectoryPort):
    """
    Authoritative table: system name -> HostingRecord.

    - at most one record per name; ``upsert`` is last-writer-wins
    - heartbeat refresh and deadvertise require the recorded address
    - ``peer`` is a non-owning handle, matched by identity on disconnect
    """

    def __init__(self) -> None:
        self._reg: Dict[str, HostingRecord] = {}
        self._lock = RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._reg)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._reg

    def upsert(self, name: str, peer: Any, address: str, now: float) -> Optional[HostingRecord]:
        """Insert or overwrite ``name``. Returns the replaced record, or None for a new name."""
        with self._lock:
            previous = self._reg.get(name)
            last_seen = now if previous is None else max(previous.last_seen, now)
            self._reg[name] = HostingRecord(system_name=name, peer=peer, address=address, last_seen=last_seen)
            return previous

    def lookup(self, name: str) -> Optional[HostingRecord]:
        with self._lock:
            return self._reg.get(name)

    def refresh_if_address_matches(self, name: str, address: str, now: float) -> bool:
        with self._lock:
            info = self._reg.get(name)
            if info is None or info.address != address:
                return False
            info.last_seen = max(info.last_seen, now)
            return True

    def remove_if_address_matches(self, name: str, address: str) -> bool:
        with self._lock:
            info = self._reg.get(name)
            if info is None or info.address != address:
                return False
            del self._reg[name]
            return True

    def remove_all_owned_by(self, peer: Any) -> int:
        with self._lock:
            owned = [name for name, info in self._reg.items() if info.peer is peer]
            for name in owned:
                _log.info("directory.owner_gone", extra={"extra": {"system": name, "address": self._reg[name].address}})
                del self._reg[name]
            return len(owned)

    def remove_stale(self, now: float, timeout: float) -> int:
        with self._lock:
            stale = [info for info in self._reg.values() if now - info.last_seen > timeout]
            for info in stale:
                _log.info(
                    "directory.stale",
                    extra={"extra": {"system": info.system_name, "last_seen_ago": int(info.age(now))}},
                )
                del self._reg[info.system_name]
            return len(stale)

    def list_all(self, now: float) -> List[SystemListing]:
        with self._lock:
            return [SystemListing(name=info.system_name, address=info.address, age=int(info.age(now))) for info in self._reg.values()]
