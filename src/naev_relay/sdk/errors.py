"""Exceptions shared by the relay services, transport and client."""

from __future__ import annotations

from typing import Optional

__all__ = [
    "RelayError",
    "MalformedMessage",
    "TransportCreationFailure",
    "FrameError",
    "RelayUnavailable",
]


class RelayError(RuntimeError):
    """Base class for relay failures."""


class MalformedMessage(RelayError):
    """Raised when a payload carries no command line at all."""

    def __init__(self, message: str = "empty message", *, payload: bytes | str | None = None) -> None:
        self.payload = payload
        super().__init__(message)


class TransportCreationFailure(RelayError):
    """Raised when the listening endpoint cannot be created."""

    def __init__(self, host: str, port: int, *, detail: Optional[str] = None) -> None:
        self.host = host
        self.port = port
        self.detail = detail
        text = f"failed to create transport on {host}:{port}"
        super().__init__(text if detail is None else f"{text}: {detail}")


class FrameError(RelayError):
    """Raised for datagrams that are not valid transport frames."""


class RelayUnavailable(RelayError):
    """Raised by the client when the relay cannot be reached."""

    def __init__(self, server: str, *, message: str | None = None) -> None:
        self.server = server
        super().__init__(message or f"relay unavailable: {server}")
