"""Tool name -> handler table used by the stdio server."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .types import ToolResult

if TYPE_CHECKING:
    from ..config import BridgeConfig
    from ..gateway import BridgeGateway

logger = logging.getLogger("mcp.ws_bridge.registry")

HandlerFunc = Callable[["BridgeGateway", "BridgeConfig", dict[str, Any]], ToolResult]


class ToolRegistry:
    """Registry for tool handlers; waits briefly for a peer before peer-bound tools run."""

    def __init__(self) -> None:
        # name -> (handler, requires_peer)
        self._handlers: dict[str, tuple[HandlerFunc, bool]] = {}
        # name -> required argument names
        self._required: dict[str, list[str]] = {}

    def register(
        self,
        name: str,
        handler: HandlerFunc,
        requires_peer: bool = True,
        required: list[str] | None = None,
    ) -> None:
        self._handlers[name] = (handler, requires_peer)
        if required:
            self._required[name] = list(required)

    def register_many(self, handlers: dict[str, tuple[HandlerFunc, bool]]) -> None:
        self._handlers.update(handlers)

    def set_required(self, name: str, required: list[str]) -> None:
        self._required[name] = list(required)

    def get(self, name: str) -> tuple[HandlerFunc, bool] | None:
        return self._handlers.get(name)

    def has(self, name: str) -> bool:
        return name in self._handlers

    def dispatch(
        self,
        name: str,
        gateway: BridgeGateway,
        config: BridgeConfig,
        arguments: dict[str, Any],
    ) -> ToolResult:
        """Run one tool. Unknown names raise KeyError; bridge failures propagate as BridgeError."""
        handler_info = self._handlers.get(name)
        if handler_info is None:
            raise KeyError(f"Unknown tool: {name}")

        handler, requires_peer = handler_info

        missing = [k for k in self._required.get(name, []) if arguments.get(k) is None]
        if missing:
            return ToolResult.error(f"Missing required argument(s): {', '.join(missing)}", tool=name)

        if requires_peer and not gateway.is_connected() and config.connect_wait > 0:
            # Fail-soft: a peer that is (re)connecting right now gets a short grace period.
            # If it never shows up the call itself raises no_extension_connected.
            logger.info("tool=%s waiting up to %.1fs for a bridge peer", name, config.connect_wait)
            gateway.wait_for_peer(timeout=config.connect_wait)

        return handler(gateway, config, arguments)

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers.keys())

    def __len__(self) -> int:
        return len(self._handlers)


def create_default_registry() -> ToolRegistry:
    """Create registry with the bridge tool catalog."""
    from .definitions import TOOL_DEFINITIONS
    from .handlers import BRIDGE_HANDLERS

    registry = ToolRegistry()
    registry.register_many(BRIDGE_HANDLERS)
    for tool in TOOL_DEFINITIONS:
        required = (tool.get("inputSchema") or {}).get("required") or []
        if required and registry.has(tool["name"]):
            registry.set_required(tool["name"], required)
    return registry


__all__ = ["HandlerFunc", "ToolRegistry", "create_default_registry"]
