"""
Dispatch table for the peer side: command type -> handler.

Handlers take the request payload and return a JSON-like result (or raise).
Coroutine functions are awaited on the loop; plain callables run in a worker thread so a slow
handler never blocks the receive loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .envelope import RequestEnvelope, ResponseEnvelope

logger = logging.getLogger("mcp.ws_bridge.dispatch")

CommandHandler = Callable[[Any], Any | Awaitable[Any]]


def unknown_type_error(command_type: str) -> str:
    return f"unknown_type:{command_type}"


class DispatchTable:
    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}

    def register(self, command_type: str, handler: CommandHandler) -> None:
        """Register a handler (replaces any previous one for the same type)."""
        self._handlers[command_type] = handler

    def register_many(self, handlers: dict[str, CommandHandler]) -> None:
        self._handlers.update(handlers)

    def unregister(self, command_type: str) -> None:
        self._handlers.pop(command_type, None)

    def has(self, command_type: str) -> bool:
        return command_type in self._handlers

    @property
    def types(self) -> list[str]:
        return list(self._handlers.keys())

    def __len__(self) -> int:
        return len(self._handlers)

    async def dispatch(self, request: RequestEnvelope) -> ResponseEnvelope:
        """Run the handler for request.type. Always returns a response envelope."""
        handler = self._handlers.get(request.type)
        if handler is None:
            return ResponseEnvelope.failure(request.id, unknown_type_error(request.type))

        try:
            if inspect.iscoroutinefunction(handler):
                result = await handler(request.payload)
            else:
                result = await asyncio.to_thread(handler, request.payload)
                if inspect.isawaitable(result):
                    result = await result
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.info("handler failed type=%s id=%s: %s", request.type, request.id, exc)
            return ResponseEnvelope.failure(request.id, str(exc) or type(exc).__name__)
        return ResponseEnvelope.success(request.id, result)


__all__ = ["CommandHandler", "DispatchTable", "unknown_type_error"]
