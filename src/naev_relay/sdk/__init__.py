from .errors import RelayError, MalformedMessage, TransportCreationFailure, FrameError, RelayUnavailable

__all__ = ["RelayError", "MalformedMessage", "TransportCreationFailure", "FrameError", "RelayUnavailable"]
