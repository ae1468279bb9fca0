from __future__ import annotations

import enum
import hashlib
import struct
from dataclasses import dataclass

from naev_relay.sdk.errors import FrameError

VERSION = 1
HEADER_FORMAT = "!BBHII"  # version, kind, flags, seq, ack
HEADER_LEN = struct.calcsize(HEADER_FORMAT)
SHA1_LEN = 20
MAX_PAYLOAD = 65507 - HEADER_LEN - SHA1_LEN  # largest UDP/IPv4 datagram minus frame overhead


class FrameKind(enum.IntEnum):
    CONNECT = 0
    VERIFY = 1
    DATA = 2
    ACK = 3
    PING = 4
    DISCONNECT = 5


@dataclass(frozen=True, slots=True)
class Frame:
    kind: FrameKind
    seq: int = 0
    ack: int = 0
    payload: bytes = b""
    flags: int = 0
    version: int = VERSION

    def to_bytes(self) -> bytes:
        header = struct.pack(HEADER_FORMAT, self.version, int(self.kind), self.flags, self.seq, self.ack)
        checksum = hashlib.sha1(header + self.payload).digest()
        return header + checksum + self.payload

    @staticmethod
    def from_bytes(raw: bytes) -> "Frame":
        if len(raw) < HEADER_LEN + SHA1_LEN:
            raise FrameError("datagram too small to be a valid frame")

        header = raw[:HEADER_LEN]
        checksum = raw[HEADER_LEN : HEADER_LEN + SHA1_LEN]
        payload = raw[HEADER_LEN + SHA1_LEN :]

        if hashlib.sha1(header + payload).digest() != checksum:
            raise FrameError("checksum mismatch")

        version, kind, flags, seq, ack = struct.unpack(HEADER_FORMAT, header)
        if version != VERSION:
            raise FrameError(f"version mismatch: expected {VERSION}, got {version}")
        try:
            kind = FrameKind(kind)
        except ValueError as e:
            raise FrameError(f"unknown frame kind: {kind}") from e

        return Frame(kind=kind, seq=seq, ack=ack, payload=payload, flags=flags, version=version)

    @staticmethod
    def data(seq: int, payload: bytes) -> "Frame":
        return Frame(kind=FrameKind.DATA, seq=seq, payload=payload)

    @staticmethod
    def make_ack(seq: int) -> "Frame":
        return Frame(kind=FrameKind.ACK, ack=seq)

    @staticmethod
    def control(kind: FrameKind) -> "Frame":
        return Frame(kind=kind)
