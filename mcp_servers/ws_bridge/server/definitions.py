"""Tool schema definitions for the bridge tool catalog."""

from __future__ import annotations

from typing import Any

_TAB_ID: dict[str, Any] = {
    "type": ["integer", "null"],
    "description": "Target tab id (default: the active tab)",
}


def _schema(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "type": "object",
        "properties": properties,
        "additionalProperties": False,
    }
    if required:
        schema["required"] = required
    return schema


TABS_TOOLS: list[dict[str, Any]] = [
    {
        "name": "tabs.create",
        "description": "Open a new browser tab.",
        "inputSchema": _schema(
            {
                "url": {"type": "string", "description": "URL to open"},
                "active": {"type": "boolean", "default": True, "description": "Focus the new tab"},
            },
            ["url"],
        ),
    },
    {
        "name": "tabs.query",
        "description": "List tabs, optionally filtered by a chrome.tabs.query object.",
        "inputSchema": _schema({"query": {"type": "object", "description": "Query filter (e.g. {\"active\": true})"}}),
    },
    {
        "name": "tabs.activate",
        "description": "Activate a tab (default: the active tab).",
        "inputSchema": _schema({"tabId": _TAB_ID}),
    },
    {
        "name": "tabs.remove",
        "description": "Close a tab (default: the active tab).",
        "inputSchema": _schema({"tabId": _TAB_ID}),
    },
    {
        "name": "tabs.reload",
        "description": "Reload a tab, optionally bypassing the cache.",
        "inputSchema": _schema(
            {
                "tabId": _TAB_ID,
                "bypassCache": {"type": "boolean", "description": "Skip the HTTP cache"},
            }
        ),
    },
    {
        "name": "navigate.to",
        "description": "Navigate a tab (default: the active tab) to a URL.",
        "inputSchema": _schema({"tabId": _TAB_ID, "url": {"type": "string"}}, ["url"]),
    },
]

SCRIPTING_TOOLS: list[dict[str, Any]] = [
    {
        "name": "scripting.run",
        "description": "Run JavaScript in the extension's isolated world and return its result.",
        "inputSchema": _schema(
            {
                "tabId": _TAB_ID,
                "code": {"type": "string", "description": "Function body to evaluate"},
                "args": {"type": "object", "description": "Arguments passed to the code"},
                "allFrames": {"type": "boolean", "default": False},
            },
            ["code"],
        ),
    },
]

DOM_TOOLS: list[dict[str, Any]] = [
    {
        "name": "dom.dispatch",
        "description": """Run a DOM operation in the page content script.
USAGE:
- Click: dom.dispatch(message={"type": "dom.click", "selector": "#submit"})
- Type: dom.dispatch(message={"type": "dom.input", "selector": "input[name=q]", "value": "hello"})
- Read text: dom.dispatch(message={"type": "dom.readText", "selector": "h1"})
- Scroll: dom.dispatch(message={"type": "dom.scroll", "top": 800, "smooth": true})""",
        "inputSchema": _schema(
            {
                "tabId": _TAB_ID,
                "message": {
                    "type": "object",
                    "properties": {
                        "type": {"type": "string"},
                        "selector": {"type": ["string", "null"]},
                        "value": {"type": ["string", "null"]},
                        "top": {"type": ["number", "null"]},
                        "left": {"type": ["number", "null"]},
                        "smooth": {"type": ["boolean", "null"]},
                    },
                    "required": ["type"],
                },
            },
            ["message"],
        ),
    },
    {
        "name": "dom.queryAll",
        "description": "List nodes matching a selector (tag/id/class/text/href/value and rect).",
        "inputSchema": _schema(
            {
                "tabId": _TAB_ID,
                "selector": {"type": "string"},
                "limit": {"type": "integer", "description": "Maximum nodes to return"},
            }
        ),
    },
    {
        "name": "dom.clickByText",
        "description": "Click an element by its visible text.",
        "inputSchema": _schema(
            {
                "tabId": _TAB_ID,
                "text": {"type": "string"},
                "selector": {"type": "string", "description": "Restrict candidates to this selector"},
                "exact": {"type": "boolean", "description": "Require an exact text match"},
                "nth": {"type": "integer", "description": "Pick the n-th match (0-based)"},
            },
            ["text"],
        ),
    },
    {
        "name": "dom.fillByLabel",
        "description": "Fill an input located by its label text.",
        "inputSchema": _schema(
            {
                "tabId": _TAB_ID,
                "label": {"type": "string"},
                "value": {"type": "string"},
                "exact": {"type": "boolean"},
            },
            ["label", "value"],
        ),
    },
]

PAGE_TOOLS: list[dict[str, Any]] = [
    {
        "name": "page.screenshot",
        "description": "Capture the visible area of a tab as an image.",
        "inputSchema": _schema(
            {
                "tabId": _TAB_ID,
                "format": {"type": "string", "enum": ["png", "jpeg"], "default": "png"},
                "quality": {"type": "number", "minimum": 0, "maximum": 100, "default": 90},
                "bringToFront": {"type": "boolean", "default": True},
            }
        ),
    },
    {
        "name": "page.fullScreenshot",
        "description": "Capture a whole page by scrolling; returns one image per segment.",
        "inputSchema": _schema(
            {
                "tabId": _TAB_ID,
                "format": {"type": "string", "enum": ["png", "jpeg"], "default": "png"},
                "quality": {"type": "number", "minimum": 0, "maximum": 100, "default": 90},
                "step": {
                    "type": "number",
                    "minimum": 0.2,
                    "maximum": 1,
                    "default": 0.8,
                    "description": "Scroll step as a fraction of the viewport height",
                },
            }
        ),
    },
    {
        "name": "page.getContent",
        "description": "Read the page as visible text or as full HTML.",
        "inputSchema": _schema(
            {
                "tabId": _TAB_ID,
                "format": {"type": "string", "enum": ["text", "html"], "default": "text"},
                "includeDoctype": {"type": "boolean", "default": True},
            }
        ),
    },
]

BOOKMARK_TOOLS: list[dict[str, Any]] = [
    {
        "name": "bookmarks.create",
        "description": "Create a bookmark, optionally inside a folder.",
        "inputSchema": _schema(
            {
                "parentId": {"type": "string"},
                "title": {"type": "string"},
                "url": {"type": "string"},
            },
            ["title", "url"],
        ),
    },
    {
        "name": "bookmarks.search",
        "description": "Search bookmarks by keyword or query object.",
        "inputSchema": _schema({"query": {"type": ["string", "object"]}}),
    },
    {
        "name": "bookmarks.remove",
        "description": "Remove a bookmark by id.",
        "inputSchema": _schema({"id": {"type": "string"}}, ["id"]),
    },
]

HISTORY_TOOLS: list[dict[str, Any]] = [
    {
        "name": "history.search",
        "description": "Search browsing history within an optional time range.",
        "inputSchema": _schema(
            {
                "text": {"type": "string"},
                "startTime": {"type": "number", "description": "Epoch milliseconds"},
                "endTime": {"type": "number", "description": "Epoch milliseconds"},
                "maxResults": {"type": "integer"},
            }
        ),
    },
    {
        "name": "history.deleteUrl",
        "description": "Delete all history entries for a URL.",
        "inputSchema": _schema({"url": {"type": "string"}}, ["url"]),
    },
]

EXTENSION_TOOLS: list[dict[str, Any]] = [
    {
        "name": "extension.reload",
        "description": "Reload the browser extension (runtime.reload()).",
        "inputSchema": _schema({}),
    },
    {
        "name": "bridge.status",
        "description": "Local bridge status: listening address, connected peers, in-flight calls.",
        "inputSchema": _schema({}),
    },
]

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    *TABS_TOOLS,
    *SCRIPTING_TOOLS,
    *DOM_TOOLS,
    *PAGE_TOOLS,
    *BOOKMARK_TOOLS,
    *HISTORY_TOOLS,
    *EXTENSION_TOOLS,
]

__all__ = ["TOOL_DEFINITIONS"]
