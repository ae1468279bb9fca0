from __future__ import annotations
import logging
import time
from typing import Callable

from naev_relay.config import const
from naev_relay.ports.directory import DirectoryPort

_log = logging.getLogger("naev_relay.reaper")


class Reaper:
    """Periodic sweep that evicts records whose last heartbeat is older than ``timeout``."""

    def __init__(
        self,
        directory: DirectoryPort,
        *,
        timeout: float = const.HEARTBEAT_TIMEOUT,
        interval: float = const.CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.directory = directory
        self.timeout = timeout
        self.interval = interval
        self.clock = clock
        self.last_run = clock()

    def due(self, now: float) -> bool:
        return now - self.last_run >= self.interval

    def run(self, now: float) -> int:
        removed = self.directory.remove_stale(now, self.timeout)
        self.last_run = now
        if removed > 0:
            _log.info("reaper.cleaned", extra={"extra": {"removed": removed}})
        return removed

    def maybe_run(self, now: float | None = None) -> int:
        now = self.clock() if now is None else now
        if not self.due(now):
            return 0
        return self.run(now)
