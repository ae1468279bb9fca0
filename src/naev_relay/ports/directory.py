from __future__ import annotations
from typing import Protocol, Any, List, Optional

from naev_relay.domain.types import HostingRecord, SystemListing


class DirectoryPort(Protocol):
    def upsert(self, name: str, peer: Any, address: str, now: float) -> Optional[HostingRecord]: ...
    def lookup(self, name: str) -> Optional[HostingRecord]: ...
    def refresh_if_address_matches(self, name: str, address: str, now: float) -> bool: ...
    def remove_if_address_matches(self, name: str, address: str) -> bool: ...
    def remove_all_owned_by(self, peer: Any) -> int: ...
    def remove_stale(self, now: float, timeout: float) -> int: ...
    def list_all(self, now: float) -> List[SystemListing]: ...
