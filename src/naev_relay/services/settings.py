# src/naev_relay/services/settings.py
from __future__ import annotations
from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Optional, Dict
from naev_relay.config import const


def _parse_env_file(path: str) -> Dict[str, str]:
    data: Dict[str, str] = {}
    p = Path(path)
    if not p.exists():
        return data
    for line in p.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" in line:
            k, v = line.split("=", 1)
            data[k.strip()] = v.strip().strip('"').strip("'")
    return data


def _as_int(raw: str, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _as_float(raw: str, default: float) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True, slots=True)
class Settings:
    host: str = const.DEFAULT_HOST
    port: int = const.DEFAULT_PORT
    heartbeat_timeout: float = const.HEARTBEAT_TIMEOUT
    cleanup_interval: float = const.CLEANUP_INTERVAL
    poll_timeout_ms: int = const.POLL_TIMEOUT_MS
    log_level: str = const.DEFAULT_LOG_LEVEL

    @staticmethod
    def from_sources(env_file: Optional[str] = ".env") -> "Settings":
        env_file_vars = _parse_env_file(env_file) if env_file else {}

        def pick_env(key: str, default: Optional[str] = None) -> str:
            return os.environ.get(key) or env_file_vars.get(key) or (default or "")

        # PORT is what container platforms inject; anything unparsable falls back to the default
        port = _as_int(pick_env("PORT"), const.DEFAULT_PORT)
        if not 0 <= port <= 65535:
            port = const.DEFAULT_PORT

        return Settings(
            host=pick_env("RELAY_HOST", const.DEFAULT_HOST),
            port=port,
            heartbeat_timeout=_as_float(pick_env("RELAY_HEARTBEAT_TIMEOUT"), const.HEARTBEAT_TIMEOUT),
            cleanup_interval=_as_float(pick_env("RELAY_CLEANUP_INTERVAL"), const.CLEANUP_INTERVAL),
            poll_timeout_ms=_as_int(pick_env("RELAY_POLL_TIMEOUT_MS"), const.POLL_TIMEOUT_MS),
            log_level=pick_env("RELAY_LOG_LEVEL", const.DEFAULT_LOG_LEVEL).upper(),
        )

    def with_overrides(self, **kw) -> "Settings":
        # only the listening endpoint and log level can be changed from the CLI
        safe = {k: v for k, v in kw.items() if k in {"host", "port", "log_level"} and v is not None}
        if "log_level" in safe:
            safe["log_level"] = str(safe["log_level"]).upper()
        return replace(self, **safe)
