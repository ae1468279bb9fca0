from .directory import DirectoryPort
from .transport import PeerHandle, TransportPort, Address

__all__ = ["DirectoryPort", "PeerHandle", "TransportPort", "Address"]
