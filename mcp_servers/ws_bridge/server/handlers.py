"""
Bridge tool handlers.

Each handler builds the command payload from the tool arguments, performs one bridge call and
shapes the peer's result into MCP content. Bridge failures (no peer, timeout, remote error)
propagate as BridgeError and are turned into error results by the server.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from ..errors import RemoteError
from .types import ToolContent, ToolResult

if TYPE_CHECKING:
    from ..config import BridgeConfig
    from ..gateway import BridgeGateway

SCRIPT_TIMEOUT = 20.0
SCREENSHOT_TIMEOUT = 20.0
FULL_SCREENSHOT_TIMEOUT = 60.0
CONTENT_TIMEOUT = 20.0


def _pick(args: dict[str, Any], *keys: str, **defaults: Any) -> dict[str, Any]:
    """Copy the supplied keys (null included) and fill the rest from defaults."""
    out: dict[str, Any] = {}
    for key in keys:
        if key in args:
            out[key] = args[key]
        elif key in defaults:
            out[key] = defaults[key]
    return out


def _or_ok(result: Any) -> Any:
    if result is None or result is False or result == "" or result == 0:
        return {"ok": True}
    return result


def _ok_text(tool: str, result: Any) -> ToolResult:
    return ToolResult.text(f"{tool} ok {json.dumps(result, ensure_ascii=False)}", value=result)


def _dom_message(gateway: BridgeGateway, tool: str, args: dict[str, Any], message: dict[str, Any], **kw: Any) -> Any:
    """Send a content-script operation: a dom.dispatch command carrying a nested message."""
    payload = {**_pick(args, "tabId"), "message": message}
    return gateway.call("dom.dispatch", payload, label=tool, **kw)


# ─────────────────────────────────────────────────────────────────────────────
# Plain commands: "<tool> ok <json result>"
# ─────────────────────────────────────────────────────────────────────────────


def _simple(
    tool: str,
    keys: tuple[str, ...],
    *,
    defaults: dict[str, Any] | None = None,
    default_ok: bool = True,
    timeout: float | None = None,
):
    def handler(gateway: BridgeGateway, config: BridgeConfig, args: dict[str, Any]) -> ToolResult:
        payload = _pick(args, *keys, **(defaults or {}))
        result = gateway.call(tool, payload, timeout=timeout, label=tool)
        return _ok_text(tool, _or_ok(result) if default_ok else result)

    handler.__name__ = "handle_" + tool.replace(".", "_")
    return handler


handle_tabs_create = _simple("tabs.create", ("url", "active"), defaults={"active": True})
handle_tabs_activate = _simple("tabs.activate", ("tabId",))
handle_tabs_remove = _simple("tabs.remove", ("tabId",))
handle_tabs_reload = _simple("tabs.reload", ("tabId", "bypassCache"))
handle_navigate_to = _simple("navigate.to", ("tabId", "url"))
handle_dom_dispatch = _simple("dom.dispatch", ("tabId", "message"))
handle_scripting_run = _simple(
    "scripting.run",
    ("tabId", "code", "args", "allFrames"),
    defaults={"allFrames": False},
    default_ok=False,
    timeout=SCRIPT_TIMEOUT,
)
handle_bookmarks_create = _simple("bookmarks.create", ("parentId", "title", "url"), default_ok=False)
handle_bookmarks_search = _simple("bookmarks.search", ("query",), default_ok=False)
handle_bookmarks_remove = _simple("bookmarks.remove", ("id",))
handle_history_search = _simple("history.search", ("text", "startTime", "endTime", "maxResults"), default_ok=False)
handle_history_delete_url = _simple("history.deleteUrl", ("url",))


def handle_tabs_query(gateway: BridgeGateway, config: BridgeConfig, args: dict[str, Any]) -> ToolResult:
    query = args.get("query") or {}
    result = gateway.call("tabs.query", {"query": query}, label="tabs.query")
    return _ok_text("tabs.query", result)


def handle_extension_reload(gateway: BridgeGateway, config: BridgeConfig, args: dict[str, Any]) -> ToolResult:
    gateway.call("extension.reload", {}, label="extension.reload")
    return ToolResult.text("extension.reload ok")


# ─────────────────────────────────────────────────────────────────────────────
# DOM helpers (nested dom.dispatch messages)
# ─────────────────────────────────────────────────────────────────────────────


def handle_dom_query_all(gateway: BridgeGateway, config: BridgeConfig, args: dict[str, Any]) -> ToolResult:
    message = {"type": "dom.queryAll", **_pick(args, "selector", "limit")}
    result = _dom_message(gateway, "dom.queryAll", args, message)
    nodes = result.get("nodes") if isinstance(result, dict) else None
    return ToolResult.json(nodes if nodes is not None else [])


def handle_dom_click_by_text(gateway: BridgeGateway, config: BridgeConfig, args: dict[str, Any]) -> ToolResult:
    message = {"type": "dom.clickByText", **_pick(args, "text", "selector", "exact", "nth")}
    result = _dom_message(gateway, "dom.clickByText", args, message)
    return ToolResult.json(result if result is not None else {"ok": False})


def handle_dom_fill_by_label(gateway: BridgeGateway, config: BridgeConfig, args: dict[str, Any]) -> ToolResult:
    message = {"type": "dom.fillByLabel", **_pick(args, "label", "value", "exact")}
    result = _dom_message(gateway, "dom.fillByLabel", args, message)
    return ToolResult.json(result if result is not None else {"ok": False})


def handle_page_get_content(gateway: BridgeGateway, config: BridgeConfig, args: dict[str, Any]) -> ToolResult:
    fmt = str(args.get("format") or "text").lower()
    if fmt == "text":
        message: dict[str, Any] = {"type": "dom.readText", "selector": "body"}
        key = "text"
    elif fmt == "html":
        message = {"type": "dom.readHTML", "includeDoctype": bool(args.get("includeDoctype", True))}
        key = "html"
    else:
        return ToolResult.error(f"Unknown format: {fmt}", tool="page.getContent")

    result = _dom_message(gateway, "page.getContent", args, message, timeout=CONTENT_TIMEOUT)
    value = result.get(key) if isinstance(result, dict) else None
    return ToolResult.text(value if isinstance(value, str) else "")


# ─────────────────────────────────────────────────────────────────────────────
# Screenshots
# ─────────────────────────────────────────────────────────────────────────────


def handle_page_screenshot(gateway: BridgeGateway, config: BridgeConfig, args: dict[str, Any]) -> ToolResult:
    payload = _pick(args, "tabId", "format", "quality", "bringToFront", format="png", quality=90, bringToFront=True)
    result = gateway.call("page.screenshot", payload, timeout=SCREENSHOT_TIMEOUT, label="page.screenshot")
    data_url = result.get("dataUrl") if isinstance(result, dict) else None
    if not isinstance(data_url, str) or not data_url:
        raise RemoteError("no_image")
    fallback = "image/jpeg" if payload.get("format") == "jpeg" else "image/png"
    return ToolResult.parts([ToolContent.of_data_url(data_url, fallback_mime=fallback)])


def handle_page_full_screenshot(gateway: BridgeGateway, config: BridgeConfig, args: dict[str, Any]) -> ToolResult:
    payload = _pick(args, "tabId", "format", "quality", "step", format="png", quality=90, step=0.8)
    result = gateway.call("page.fullScreenshot", payload, timeout=FULL_SCREENSHOT_TIMEOUT, label="page.fullScreenshot")
    parts = result.get("parts") if isinstance(result, dict) else None
    if not isinstance(parts, list) or not parts:
        raise RemoteError("no_image_parts")
    return ToolResult.parts([ToolContent.of_data_url(str(p)) for p in parts])


# ─────────────────────────────────────────────────────────────────────────────
# Local
# ─────────────────────────────────────────────────────────────────────────────


def handle_bridge_status(gateway: BridgeGateway, config: BridgeConfig, args: dict[str, Any]) -> ToolResult:
    return ToolResult.json(gateway.status())


# name -> (handler, requires_peer)
BRIDGE_HANDLERS: dict[str, tuple[Any, bool]] = {
    "tabs.create": (handle_tabs_create, True),
    "tabs.query": (handle_tabs_query, True),
    "tabs.activate": (handle_tabs_activate, True),
    "tabs.remove": (handle_tabs_remove, True),
    "tabs.reload": (handle_tabs_reload, True),
    "navigate.to": (handle_navigate_to, True),
    "scripting.run": (handle_scripting_run, True),
    "dom.dispatch": (handle_dom_dispatch, True),
    "dom.queryAll": (handle_dom_query_all, True),
    "dom.clickByText": (handle_dom_click_by_text, True),
    "dom.fillByLabel": (handle_dom_fill_by_label, True),
    "page.screenshot": (handle_page_screenshot, True),
    "page.fullScreenshot": (handle_page_full_screenshot, True),
    "page.getContent": (handle_page_get_content, True),
    "bookmarks.create": (handle_bookmarks_create, True),
    "bookmarks.search": (handle_bookmarks_search, True),
    "bookmarks.remove": (handle_bookmarks_remove, True),
    "history.search": (handle_history_search, True),
    "history.deleteUrl": (handle_history_delete_url, True),
    "extension.reload": (handle_extension_reload, True),
    "bridge.status": (handle_bridge_status, False),
}

__all__ = ["BRIDGE_HANDLERS"]
