# src/naev_relay/services/protocol.py
"""
Wire protocol of the relay: newline-delimited text, one message per payload.

Requests::

    advertise\\n<system>\\n      find\\n<system>\\n      heartbeat\\n<system>\\n
    deadvertise\\n<system>\\n    list\\n

Parsing happens in two steps: ``parse_message`` splits a payload into its
non-empty lines, ``to_command`` turns the lines into one of the command
variants below. Response builders produce the exact reply strings.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Union

from naev_relay.domain.types import SystemListing
from naev_relay.sdk.errors import MalformedMessage

ENCODING = "utf-8"


@dataclass(frozen=True, slots=True)
class Advertise:
    name: str


@dataclass(frozen=True, slots=True)
class Find:
    name: str


@dataclass(frozen=True, slots=True)
class Heartbeat:
    name: str


@dataclass(frozen=True, slots=True)
class Deadvertise:
    name: str


@dataclass(frozen=True, slots=True)
class ListSystems:
    pass


@dataclass(frozen=True, slots=True)
class Unknown:
    command: str


Command = Union[Advertise, Find, Heartbeat, Deadvertise, ListSystems, Unknown]

_NAMED = {
    "advertise": Advertise,
    "find": Find,
    "heartbeat": Heartbeat,
    "deadvertise": Deadvertise,
}


def parse_message(data: bytes | str) -> List[str]:
    """Split a payload into its non-empty lines."""
    text = data.decode(ENCODING, errors="replace") if isinstance(data, (bytes, bytearray)) else data
    return [line for line in text.split("\n") if line]


def to_command(lines: Sequence[str]) -> Command:
    if not lines:
        raise MalformedMessage()
    head = lines[0]
    arg = lines[1] if len(lines) > 1 else None
    if head in _NAMED:
        # a named command without its argument is treated like an unknown one
        return _NAMED[head](arg) if arg is not None else Unknown(head)
    if head == "list":
        return ListSystems()
    return Unknown(head)


def parse_command(data: bytes | str) -> Command:
    return to_command(parse_message(data))


# ---------- requests ----------


def request(command: Command) -> str:
    if isinstance(command, ListSystems):
        return "list\n"
    if isinstance(command, Unknown):
        return f"{command.command}\n"
    return f"{type(command).__name__.lower()}\n{command.name}\n"


# ---------- responses ----------


def advertise_ack(name: str) -> str:
    return f"advertise_ack\n{name}\n"


def found(address: str) -> str:
    return f"found\n{address}\n"


def not_found() -> str:
    return "not_found\n"


def heartbeat_ack() -> str:
    return "heartbeat_ack\n"


def deadvertise_ack() -> str:
    return "deadvertise_ack\n"


def active_systems(rows: Iterable[SystemListing]) -> str:
    rows = list(rows)
    out = [f"active_systems\n{len(rows)}\n"]
    out.extend(f"{r.name},{r.address},{r.age}\n" for r in rows)
    return "".join(out)


def unknown_command() -> str:
    return "error\nUnknown command\n"


def parse_listing(reply: bytes | str) -> List[SystemListing]:
    """Decode an ``active_systems`` reply. System names may contain commas; addresses and ages may not."""
    lines = parse_message(reply)
    if not lines or lines[0] != "active_systems":
        raise ValueError(f"not an active_systems reply: {lines[:1]}")
    rows: List[SystemListing] = []
    for line in lines[2:]:
        name, address, age = line.rsplit(",", 2)
        rows.append(SystemListing(name=name, address=address, age=int(age)))
    return rows
