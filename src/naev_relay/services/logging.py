from __future__ import annotations
import json
import logging
import sys
from typing import IO, Optional


class JsonFormatter(logging.Formatter):
    """One JSON object per line; structured fields come from ``extra={"extra": {...}}``."""

    def format(self, record: logging.LogRecord) -> str:
        base = {
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "time": self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            base.update(extra)
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", stream: Optional[IO[str]] = None) -> logging.Logger:
    """
    Logging setup for the relay:
      - a single stderr handler (or ``stream``), JSON lines
      - no log file; all relay state is volatile anyway
    """
    logger = logging.getLogger("naev_relay")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    stream_h = logging.StreamHandler(stream or sys.stderr)
    stream_h.setFormatter(JsonFormatter())
    stream_h.setLevel(logger.level)

    logger.addHandler(stream_h)
    logger.propagate = False
    logger.debug("logging.initialized", extra={"extra": {"level": logging.getLevelName(logger.level)}})
    return logger
