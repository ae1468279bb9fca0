from .frame import Frame, FrameKind
from .udp_host import Peer, PeerState, UdpHost

__all__ = ["Frame", "FrameKind", "Peer", "PeerState", "UdpHost"]
