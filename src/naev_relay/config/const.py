# src/naev_relay/config/const.py
from __future__ import annotations

# Hard defaults; Settings.from_sources() layers ENV and .env on top of these.
DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 60939

HEARTBEAT_TIMEOUT: float = 90.0  # seconds before a hosted system is considered dead
CLEANUP_INTERVAL: float = 30.0  # seconds between reaper sweeps
POLL_TIMEOUT_MS: int = 100  # bounded wait of one transport poll

DEFAULT_LOG_LEVEL: str = "INFO"

# Transport tuning
RETRANSMIT_MS: int = 250
MAX_RETRIES: int = 20
PING_INTERVAL: float = 1.0
PEER_TIMEOUT: float = 10.0
MAX_DATAGRAM: int = 65535

# Client side
CLIENT_TIMEOUT: float = 5.0
CLIENT_HEARTBEAT_INTERVAL: float = 30.0
