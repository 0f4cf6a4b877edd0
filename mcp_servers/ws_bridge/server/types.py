"""MCP tool result shapes shared by the handlers and the stdio server."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..config import BridgeConfig
    from ..gateway import BridgeGateway

_DATA_URL_RE = re.compile(r"^data:(.+?);base64,(.*)$", re.DOTALL)


@dataclass(slots=True)
class ToolContent:
    """One MCP content item: text, or a base64 image with its mime type."""

    kind: str
    text: str | None = None
    data: str | None = None
    mime_type: str | None = None

    @classmethod
    def of_text(cls, text: str) -> ToolContent:
        return cls(kind="text", text=text)

    @classmethod
    def of_data_url(cls, value: str, *, fallback_mime: str | None = None) -> ToolContent:
        """`data:<mime>;base64,<data>` becomes an image item; anything else stays text."""
        m = _DATA_URL_RE.match(value)
        if not m:
            return cls.of_text(value)
        return cls(kind="image", data=m.group(2) or "", mime_type=m.group(1) or fallback_mime)

    def as_mcp(self) -> dict[str, Any]:
        if self.kind == "image":
            return {"type": "image", "data": self.data, "mimeType": self.mime_type}
        return {"type": "text", "text": self.text or ""}


@dataclass(slots=True)
class ToolResult:
    items: list[ToolContent] = field(default_factory=list)
    is_error: bool = False
    # What the handler produced before rendering; handy for in-process callers.
    value: Any | None = None

    @classmethod
    def text(cls, text: str, *, value: Any | None = None) -> ToolResult:
        return cls(items=[ToolContent.of_text(text or "")], value=value)

    @classmethod
    def json(cls, value: Any) -> ToolResult:
        return cls(items=[ToolContent.of_text(json.dumps(value, ensure_ascii=False))], value=value)

    @classmethod
    def parts(cls, items: list[ToolContent]) -> ToolResult:
        return cls(items=list(items))

    @classmethod
    def error(cls, message: str, *, tool: str | None = None, details: dict[str, Any] | None = None) -> ToolResult:
        """Error results carry a JSON body so clients can tell the failure kinds apart."""
        body: dict[str, Any] = {"ok": False, "error": message}
        if tool:
            body["tool"] = tool
        if details:
            body["details"] = details
        return cls(items=[ToolContent.of_text(json.dumps(body, ensure_ascii=False))], is_error=True, value=body)

    def to_content_list(self) -> list[dict[str, Any]]:
        return [item.as_mcp() for item in self.items]


class ToolHandler(Protocol):
    def __call__(self, gateway: BridgeGateway, config: BridgeConfig, arguments: dict[str, Any]) -> ToolResult: ...


__all__ = ["ToolContent", "ToolHandler", "ToolResult"]
