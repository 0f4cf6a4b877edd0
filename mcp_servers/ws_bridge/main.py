"""
Stdio MCP server for the websocket browser bridge.

JSON-RPC 2.0, one message per line. stdout carries protocol frames only; logs go to stderr.
Tool calls are routed through server/registry.py and forwarded to the connected peer.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any

from .config import BridgeConfig
from .errors import BridgeError
from .gateway import BridgeGateway
from .server.contract import (
    DEFAULT_PROTOCOL_VERSION,
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    initialize_result,
    select_protocol,
    tools_list,
)
from .server.registry import create_default_registry
from .server.types import ToolResult

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
)
logger = logging.getLogger("mcp.ws_bridge")

__all__ = [
    "SUPPORTED_PROTOCOL_VERSIONS",
    "LATEST_PROTOCOL_VERSION",
    "DEFAULT_PROTOCOL_VERSION",
    "McpServer",
    "main",
]

METHOD_NOT_FOUND = -32601

# Tool arguments that may hold page data or secrets; logged as a placeholder.
_REDACTED_ARGS = frozenset({"code", "value", "args"})


def _write_message(payload: dict[str, Any]) -> None:
    out = sys.stdout.buffer
    out.write(json.dumps(payload, ensure_ascii=False).encode() + b"\n")
    out.flush()


def _read_message() -> dict[str, Any] | None:
    """Next JSON-RPC message from stdin; {} for a blank line, None at EOF."""
    raw = sys.stdin.buffer.readline()
    if not raw:
        return None
    raw = raw.strip()
    if not raw:
        return {}
    msg = json.loads(raw.decode())
    if os.environ.get("MCP_TRACE"):
        logger.info("recv %s", msg)
    return msg


def _reply(request_id: Any, result: dict[str, Any]) -> None:
    _write_message({"jsonrpc": "2.0", "id": request_id, "result": result})


class McpServer:
    """Owns the gateway and answers MCP requests with the bridge tool catalog."""

    def __init__(self, config: BridgeConfig | None = None, gateway: BridgeGateway | None = None) -> None:
        self.config = config or BridgeConfig.from_env()
        self.registry = create_default_registry()
        self.gateway_error: str | None = None
        self.gateway = gateway if gateway is not None else self._start_gateway()
        logger.info("waiting for extension on ws://%s:%s", self.gateway.host, self.gateway.port)

    def _start_gateway(self) -> BridgeGateway:
        gw = BridgeGateway.from_config(self.config)
        try:
            # Keep initialize fast: a busy port is retried in the background.
            gw.start(wait_timeout=0.5, require_listening=False)
        except Exception as exc:  # noqa: BLE001
            self.gateway_error = str(exc)
            logger.error("bridge_gateway_start_failed: %s", exc)
        return gw

    def close(self) -> None:
        self.gateway.stop()

    # ─────────────────────────────────────────────────────────────────────────
    # Methods
    # ─────────────────────────────────────────────────────────────────────────

    def handle_initialize(self, request_id: Any, params: dict[str, Any] | None = None) -> None:
        requested = params.get("protocolVersion") if isinstance(params, dict) else None
        _reply(request_id, initialize_result(select_protocol(requested)))

    def handle_list_tools(self, request_id: Any) -> None:
        _reply(request_id, {"tools": tools_list()})

    def handle_call_tool(self, request_id: Any, name: str, arguments: dict[str, Any]) -> None:
        shown = {k: "<redacted>" if k in _REDACTED_ARGS else v for k, v in arguments.items()}
        logger.info("tool=%s args=%s", name, shown)
        result = self._run_tool(name, arguments)
        _reply(request_id, {"content": result.to_content_list(), "isError": result.is_error})

    def _run_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        if not name:
            return ToolResult.error("Missing tool name")
        if not self.registry.has(name):
            return ToolResult.error(f"Unknown tool: {name}", tool=name)
        try:
            return self.registry.dispatch(name, self.gateway, self.config, arguments)
        except BridgeError as exc:
            logger.info("bridge_error tool=%s error=%s", name, exc)
            details = {"gatewayError": self.gateway_error} if self.gateway_error else None
            return ToolResult.error(str(exc), tool=name, details=details)
        except Exception as exc:
            logger.exception("tool_call_failed")
            return ToolResult.error(str(exc), tool=name)

    def dispatch(self, message: dict[str, Any]) -> None:
        """Route one JSON-RPC message. Notifications (no id) never get a reply."""
        if not message:
            return

        method = message.get("method")
        request_id = message.get("id")
        params = message.get("params") or {}

        if method == "initialize":
            self.handle_initialize(request_id, params)
        elif method in ("tools/list", "list_tools"):
            self.handle_list_tools(request_id)
        elif method in ("tools/call", "call_tool"):
            arguments = params.get("arguments") or params.get("args") or {}
            self.handle_call_tool(request_id, params.get("name") or "", arguments)
        elif method == "ping":
            _reply(request_id, {})
        elif request_id is None:
            return
        else:
            _write_message(
                {
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "error": {"code": METHOD_NOT_FOUND, "message": f"Method {method} not found"},
                }
            )


def main() -> None:
    server = McpServer()
    try:
        while (message := _read_message_safe()) is not None:
            server.dispatch(message)
    except KeyboardInterrupt:
        pass
    finally:
        server.close()


def _read_message_safe() -> dict[str, Any] | None:
    try:
        return _read_message()
    except json.JSONDecodeError as exc:
        logger.info("ignoring malformed stdin line: %s", exc)
        return {}


if __name__ == "__main__":
    main()
