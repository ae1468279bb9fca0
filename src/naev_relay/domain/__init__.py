from .types import HostingRecord, SystemListing, EventKind, TransportEvent

__all__ = ["HostingRecord", "SystemListing", "EventKind", "TransportEvent"]
