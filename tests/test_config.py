from __future__ import annotations

import pytest

from mcp_servers.ws_bridge.config import BridgeConfig


def test_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("MCP_BRIDGE_HOST", "MCP_BRIDGE_PORT", "MCP_BRIDGE_ENDPOINT", "MCP_BRIDGE_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    cfg = BridgeConfig.from_env()
    assert cfg.host == "127.0.0.1"
    assert cfg.port == 3001
    assert cfg.endpoint == "ws://localhost:3001"
    assert cfg.call_timeout == 15.0


def test_config_reads_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCP_BRIDGE_PORT", "4555")
    monkeypatch.setenv("MCP_BRIDGE_TIMEOUT", "3.5")
    monkeypatch.setenv("MCP_BRIDGE_BACKOFF_MAX_ATTEMPTS", "4")
    monkeypatch.delenv("MCP_BRIDGE_ENDPOINT", raising=False)
    cfg = BridgeConfig.from_env()
    assert cfg.port == 4555
    assert cfg.endpoint == "ws://localhost:4555"
    assert cfg.call_timeout == 3.5
    assert cfg.backoff_max_attempts == 4


def test_config_clamps_and_ignores_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCP_BRIDGE_PORT", "not-a-port")
    monkeypatch.setenv("MCP_BRIDGE_TIMEOUT", "99999")
    monkeypatch.setenv("MCP_BRIDGE_HEARTBEAT", "-5")
    monkeypatch.setenv("MCP_BRIDGE_ENDPOINT", "ws://10.0.0.2:9000")
    cfg = BridgeConfig.from_env()
    assert cfg.port == 3001
    assert cfg.call_timeout == 600.0
    assert cfg.heartbeat_interval == 0.0
    assert cfg.endpoint == "ws://10.0.0.2:9000"
