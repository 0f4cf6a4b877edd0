"""
Tests for the bridge MCP server.

Tests cover:
- Server initialization and tool listing
- Tool dispatch through a stubbed gateway
- Bridge failure reporting
- Protocol handling
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from mcp_servers.ws_bridge import main as mcp_server
from mcp_servers.ws_bridge.config import BridgeConfig
from mcp_servers.ws_bridge.errors import BridgeTimeoutError, NoPeerError, RemoteError


class _FakeGateway:
    host = "127.0.0.1"
    port = 3001

    def __init__(self, replies: dict[str, Any] | None = None, *, connected: bool = True) -> None:
        self.replies = replies or {}
        self.connected = connected
        self.calls: list[dict[str, Any]] = []
        self.waited: list[float] = []

    def call(self, type: str, payload: Any = None, *, timeout: float | None = None, label: str | None = None) -> Any:
        self.calls.append({"type": type, "payload": payload, "timeout": timeout, "label": label})
        if not self.connected:
            raise NoPeerError()
        reply = self.replies.get(label or type)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def is_connected(self) -> bool:
        return self.connected

    def wait_for_peer(self, *, timeout: float = 5.0) -> bool:
        self.waited.append(timeout)
        return self.connected

    def status(self) -> dict[str, Any]:
        return {"listening": True, "host": self.host, "port": self.port, "peerCount": int(self.connected)}

    def stop(self, *, timeout: float = 2.0) -> None:
        pass


def _server(monkeypatch: pytest.MonkeyPatch, gateway: _FakeGateway) -> tuple[mcp_server.McpServer, list[dict]]:
    sent: list[dict] = []
    monkeypatch.setattr(mcp_server, "_write_message", lambda payload: sent.append(payload))
    srv = mcp_server.McpServer(config=BridgeConfig(connect_wait=0.25), gateway=gateway)  # type: ignore[arg-type]
    return srv, sent


def _call(srv: mcp_server.McpServer, sent: list[dict], name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    srv.handle_call_tool(request_id="1", name=name, arguments=arguments)
    return sent[-1]["result"]


# ═══════════════════════════════════════════════════════════════════════════════
# PROTOCOL TESTS
# ═══════════════════════════════════════════════════════════════════════════════


def test_server_list_tools_output(monkeypatch: pytest.MonkeyPatch) -> None:
    srv, sent = _server(monkeypatch, _FakeGateway())
    srv.handle_list_tools(request_id="1")

    tools = sent[0]["result"]["tools"]
    names = [t["name"] for t in tools]
    assert names[:2] == ["tabs.create", "tabs.query"]
    for expected in ("scripting.run", "dom.queryAll", "page.fullScreenshot", "history.deleteUrl", "bridge.status"):
        assert expected in names
    assert len(tools) == 21
    assert all(t["inputSchema"]["additionalProperties"] is False for t in tools)
    assert set(names) == set(srv.registry.tool_names)


def test_server_initialize(monkeypatch: pytest.MonkeyPatch) -> None:
    srv, sent = _server(monkeypatch, _FakeGateway())
    srv.handle_initialize(request_id="init")
    result = sent[0]["result"]
    assert result["serverInfo"] == {"name": "ws-browser-bridge", "version": "0.1.0"}
    assert result["protocolVersion"] == mcp_server.LATEST_PROTOCOL_VERSION
    assert "tools" in result["capabilities"]


def test_initialize_respects_client_protocol(monkeypatch: pytest.MonkeyPatch) -> None:
    srv, sent = _server(monkeypatch, _FakeGateway())
    srv.dispatch({"id": 1, "method": "initialize", "params": {"protocolVersion": "2024-11-05"}})
    assert sent[0]["result"]["protocolVersion"] == "2024-11-05"


def test_server_unknown_method_and_notifications(monkeypatch: pytest.MonkeyPatch) -> None:
    srv, sent = _server(monkeypatch, _FakeGateway())
    srv.dispatch({"method": "notifications/initialized"})
    srv.dispatch({"method": "notifications/cancelled"})
    assert sent == []
    srv.dispatch({"id": "x", "method": "unknown"})
    assert sent[0]["error"]["code"] == -32601
    srv.dispatch({"id": "p", "method": "ping"})
    assert sent[1] == {"jsonrpc": "2.0", "id": "p", "result": {}}


# ═══════════════════════════════════════════════════════════════════════════════
# TOOL TESTS
# ═══════════════════════════════════════════════════════════════════════════════


def test_server_call_tool_tabs_create(monkeypatch: pytest.MonkeyPatch) -> None:
    gw = _FakeGateway({"tabs.create": {"id": 7}})
    srv, sent = _server(monkeypatch, gw)
    result = _call(srv, sent, "tabs.create", {"url": "https://example.com"})

    assert result["isError"] is False
    assert result["content"][0]["text"] == 'tabs.create ok {"id": 7}'
    assert gw.calls[0]["type"] == "tabs.create"
    assert gw.calls[0]["payload"] == {"url": "https://example.com", "active": True}


def test_server_call_tool_empty_result_reads_ok(monkeypatch: pytest.MonkeyPatch) -> None:
    gw = _FakeGateway({"tabs.remove": None})
    srv, sent = _server(monkeypatch, gw)
    result = _call(srv, sent, "tabs.remove", {"tabId": None})
    assert result["content"][0]["text"] == 'tabs.remove ok {"ok": true}'
    assert gw.calls[0]["payload"] == {"tabId": None}


def test_server_call_tool_scripting_uses_longer_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    gw = _FakeGateway({"scripting.run": [1, 2]})
    srv, sent = _server(monkeypatch, gw)
    result = _call(srv, sent, "scripting.run", {"code": "return 1"})
    assert result["content"][0]["text"] == "scripting.run ok [1, 2]"
    assert gw.calls[0]["timeout"] == 20.0
    assert gw.calls[0]["payload"] == {"code": "return 1", "allFrames": False}


def test_server_call_tool_dom_helpers_use_nested_message(monkeypatch: pytest.MonkeyPatch) -> None:
    nodes = [{"tag": "a", "text": "Home"}]
    gw = _FakeGateway({"dom.queryAll": {"nodes": nodes}, "dom.clickByText": None})
    srv, sent = _server(monkeypatch, gw)

    result = _call(srv, sent, "dom.queryAll", {"tabId": 3, "selector": "a", "limit": 5})
    assert json.loads(result["content"][0]["text"]) == nodes
    assert gw.calls[0]["type"] == "dom.dispatch"
    assert gw.calls[0]["payload"] == {"tabId": 3, "message": {"type": "dom.queryAll", "selector": "a", "limit": 5}}

    result = _call(srv, sent, "dom.clickByText", {"text": "Home"})
    assert json.loads(result["content"][0]["text"]) == {"ok": False}
    assert gw.calls[1]["payload"] == {"message": {"type": "dom.clickByText", "text": "Home"}}
    assert gw.calls[1]["label"] == "dom.clickByText"


def test_server_call_tool_get_content(monkeypatch: pytest.MonkeyPatch) -> None:
    gw = _FakeGateway({"page.getContent": {"text": "Hello", "html": "<html></html>"}})
    srv, sent = _server(monkeypatch, gw)

    result = _call(srv, sent, "page.getContent", {})
    assert result["content"][0]["text"] == "Hello"
    assert gw.calls[0]["payload"]["message"] == {"type": "dom.readText", "selector": "body"}

    result = _call(srv, sent, "page.getContent", {"format": "html", "includeDoctype": False})
    assert result["content"][0]["text"] == "<html></html>"
    assert gw.calls[1]["payload"]["message"] == {"type": "dom.readHTML", "includeDoctype": False}


def test_server_call_tool_screenshot_returns_image(monkeypatch: pytest.MonkeyPatch) -> None:
    gw = _FakeGateway({"page.screenshot": {"dataUrl": "data:image/jpeg;base64,QUJD"}})
    srv, sent = _server(monkeypatch, gw)
    result = _call(srv, sent, "page.screenshot", {"format": "jpeg"})

    assert result["content"] == [{"type": "image", "data": "QUJD", "mimeType": "image/jpeg"}]
    assert gw.calls[0]["payload"] == {"format": "jpeg", "quality": 90, "bringToFront": True}
    assert gw.calls[0]["timeout"] == 20.0


def test_server_call_tool_screenshot_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    gw = _FakeGateway({"page.screenshot": {}, "page.fullScreenshot": {"parts": []}})
    srv, sent = _server(monkeypatch, gw)

    result = _call(srv, sent, "page.screenshot", {})
    assert result["isError"] is True
    assert json.loads(result["content"][0]["text"])["error"] == "no_image"

    result = _call(srv, sent, "page.fullScreenshot", {})
    assert json.loads(result["content"][0]["text"])["error"] == "no_image_parts"


def test_server_call_tool_full_screenshot_parts(monkeypatch: pytest.MonkeyPatch) -> None:
    parts = ["data:image/png;base64,AAA", "not-a-data-url"]
    gw = _FakeGateway({"page.fullScreenshot": {"parts": parts}})
    srv, sent = _server(monkeypatch, gw)
    result = _call(srv, sent, "page.fullScreenshot", {"step": 0.5})

    assert result["content"] == [
        {"type": "image", "data": "AAA", "mimeType": "image/png"},
        {"type": "text", "text": "not-a-data-url"},
    ]
    assert gw.calls[0]["timeout"] == 60.0
    assert gw.calls[0]["payload"]["step"] == 0.5


def test_server_call_tool_reports_bridge_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    gw = _FakeGateway({"tabs.query": RemoteError("tabs_api_unavailable"), "history.search": BridgeTimeoutError()})
    srv, sent = _server(monkeypatch, gw)

    result = _call(srv, sent, "tabs.query", {})
    body = json.loads(result["content"][0]["text"])
    assert result["isError"] is True
    assert body == {"ok": False, "error": "tabs_api_unavailable", "tool": "tabs.query"}

    result = _call(srv, sent, "history.search", {"text": "news"})
    assert json.loads(result["content"][0]["text"])["error"] == "timeout"


def test_server_call_tool_without_peer_waits_then_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    gw = _FakeGateway(connected=False)
    srv, sent = _server(monkeypatch, gw)

    result = _call(srv, sent, "navigate.to", {"url": "https://example.com"})
    assert gw.waited == [0.25]
    assert result["isError"] is True
    assert json.loads(result["content"][0]["text"])["error"] == "no_extension_connected"

    # Local tools never wait for a peer.
    result = _call(srv, sent, "bridge.status", {})
    assert result["isError"] is False
    assert json.loads(result["content"][0]["text"])["peerCount"] == 0
    assert gw.waited == [0.25]


def test_server_call_tool_missing_arguments_and_unknown_tool(monkeypatch: pytest.MonkeyPatch) -> None:
    gw = _FakeGateway()
    srv, sent = _server(monkeypatch, gw)

    result = _call(srv, sent, "bookmarks.create", {"title": "x"})
    assert result["isError"] is True
    assert "url" in json.loads(result["content"][0]["text"])["error"]

    result = _call(srv, sent, "no.such.tool", {})
    assert json.loads(result["content"][0]["text"])["error"] == "Unknown tool: no.such.tool"
    assert gw.calls == []


def test_server_call_tool_via_dispatch(monkeypatch: pytest.MonkeyPatch) -> None:
    gw = _FakeGateway({"extension.reload": None})
    srv, sent = _server(monkeypatch, gw)
    srv.dispatch(
        {"jsonrpc": "2.0", "id": 9, "method": "tools/call", "params": {"name": "extension.reload", "arguments": {}}}
    )
    assert sent[0]["id"] == 9
    assert sent[0]["result"]["content"] == [{"type": "text", "text": "extension.reload ok"}]
