from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_PORT = 3001


def _float_env(name: str, *, default: float, lo: float, hi: float) -> float:
    try:
        val = float(os.environ.get(name) or default)
    except Exception:
        val = default
    return max(lo, min(val, hi))


def _int_env(name: str, *, default: int, lo: int, hi: int) -> int:
    try:
        val = int(os.environ.get(name) or default)
    except Exception:
        val = default
    return max(lo, min(val, hi))


@dataclass
class BridgeConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    endpoint: str = f"ws://localhost:{DEFAULT_PORT}"
    call_timeout: float = 15.0
    heartbeat_interval: float = 20.0
    backoff_base: float = 0.5
    backoff_cap: float = 30.0
    backoff_max_attempts: int = 8
    liveness_timeout: float = 0.0
    connect_wait: float = 2.0

    @classmethod
    def from_env(cls) -> BridgeConfig:
        host = (os.environ.get("MCP_BRIDGE_HOST") or "127.0.0.1").strip() or "127.0.0.1"
        port = _int_env("MCP_BRIDGE_PORT", default=DEFAULT_PORT, lo=1, hi=65535)
        endpoint = (os.environ.get("MCP_BRIDGE_ENDPOINT") or "").strip() or f"ws://localhost:{port}"
        return cls(
            host=host,
            port=port,
            endpoint=endpoint,
            call_timeout=_float_env("MCP_BRIDGE_TIMEOUT", default=15.0, lo=0.1, hi=600.0),
            heartbeat_interval=_float_env("MCP_BRIDGE_HEARTBEAT", default=20.0, lo=0.0, hi=3600.0),
            backoff_base=_float_env("MCP_BRIDGE_BACKOFF_BASE", default=0.5, lo=0.01, hi=60.0),
            backoff_cap=_float_env("MCP_BRIDGE_BACKOFF_CAP", default=30.0, lo=0.01, hi=3600.0),
            backoff_max_attempts=_int_env("MCP_BRIDGE_BACKOFF_MAX_ATTEMPTS", default=8, lo=0, hi=32),
            liveness_timeout=_float_env("MCP_BRIDGE_LIVENESS_TIMEOUT", default=0.0, lo=0.0, hi=3600.0),
            connect_wait=_float_env("MCP_BRIDGE_CONNECT_WAIT", default=2.0, lo=0.0, hi=60.0),
        )


__all__ = ["DEFAULT_PORT", "BridgeConfig"]
