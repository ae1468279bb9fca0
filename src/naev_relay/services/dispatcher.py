from __future__ import annotations
import logging
import time
from typing import Any, Callable, Dict, Optional

from naev_relay.config import const
from naev_relay.ports.directory import DirectoryPort
from naev_relay.sdk.errors import MalformedMessage
from naev_relay.services import protocol
from naev_relay.services.protocol import Advertise, Command, Deadvertise, Find, Heartbeat, ListSystems, Unknown

_log = logging.getLogger("naev_relay.dispatcher")


class Dispatcher:
    """
    Maps one parsed command to a Directory operation and builds the reply.

    ``dispatch`` returns the reply text, or None when nothing must be sent
    (heartbeat/deadvertise from a peer that does not own the record).
    """

    def __init__(
        self,
        directory: DirectoryPort,
        *,
        heartbeat_timeout: float = const.HEARTBEAT_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.directory = directory
        self.heartbeat_timeout = heartbeat_timeout
        self.clock = clock
        self._handlers: Dict[type, Callable[[Any, Any, str, float], Optional[str]]] = {
            Advertise: self._advertise,
            Find: self._find,
            Heartbeat: self._heartbeat,
            Deadvertise: self._deadvertise,
            ListSystems: self._list,
            Unknown: self._unknown,
        }

    def handle(self, data: bytes | str, sender: Any, address: str) -> Optional[str]:
        """Parse a raw payload and dispatch it. Malformed payloads are logged and dropped."""
        try:
            command = protocol.parse_command(data)
        except MalformedMessage:
            _log.warning("dispatch.empty_message", extra={"extra": {"from": address}})
            return None
        return self.dispatch(command, sender, address)

    def dispatch(self, command: Command, sender: Any, address: str, now: float | None = None) -> Optional[str]:
        now = self.clock() if now is None else now
        return self._handlers[type(command)](command, sender, address, now)

    # ---------- handlers ----------

    def _advertise(self, cmd: Advertise, sender: Any, address: str, now: float) -> str:
        previous = self.directory.upsert(cmd.name, sender, address, now)
        if previous is None:
            _log.info("directory.new", extra={"extra": {"system": cmd.name, "address": address}})
        else:
            _log.info("directory.update", extra={"extra": {"system": cmd.name, "address": address, "was": previous.address}})
        return protocol.advertise_ack(cmd.name)

    def _find(self, cmd: Find, sender: Any, address: str, now: float) -> str:
        _log.info("query.find", extra={"extra": {"system": cmd.name, "from": address}})
        info = self.directory.lookup(cmd.name)
        if info is None:
            _log.info("query.not_found", extra={"extra": {"system": cmd.name}})
            return protocol.not_found()
        age = info.age(now)
        if age < self.heartbeat_timeout:
            _log.info("query.found", extra={"extra": {"system": cmd.name, "address": info.address, "age": int(age)}})
            return protocol.found(info.address)
        _log.info("query.stale", extra={"extra": {"system": cmd.name, "age": int(age)}})
        return protocol.not_found()

    def _heartbeat(self, cmd: Heartbeat, sender: Any, address: str, now: float) -> Optional[str]:
        if self.directory.refresh_if_address_matches(cmd.name, address, now):
            return protocol.heartbeat_ack()
        if self.directory.lookup(cmd.name) is not None:
            _log.warning("heartbeat.wrong_peer", extra={"extra": {"system": cmd.name, "from": address}})
        return None

    def _deadvertise(self, cmd: Deadvertise, sender: Any, address: str, now: float) -> Optional[str]:
        if not self.directory.remove_if_address_matches(cmd.name, address):
            return None
        _log.info("directory.shutdown", extra={"extra": {"system": cmd.name, "address": address}})
        return protocol.deadvertise_ack()

    def _list(self, cmd: ListSystems, sender: Any, address: str, now: float) -> str:
        return protocol.active_systems(self.directory.list_all(now))

    def _unknown(self, cmd: Unknown, sender: Any, address: str, now: float) -> str:
        _log.warning("dispatch.unknown_command", extra={"extra": {"command": cmd.command, "from": address}})
        return protocol.unknown_command()
