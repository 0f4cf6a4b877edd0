from __future__ import annotations

import logging
import uuid
from typing import Any

from .correlation import CorrelationRegistry
from .envelope import RequestEnvelope, ResponseEnvelope, encode
from .errors import BridgeError, RemoteError
from .peers import PeerConnectionSet

logger = logging.getLogger("mcp.ws_bridge.bridge")

DEFAULT_CALL_TIMEOUT = 15.0


class Bridge:
    """Turns the multiplexed peer channel into awaitable, deadline-bounded remote calls."""

    def __init__(
        self,
        *,
        peers: PeerConnectionSet | None = None,
        registry: CorrelationRegistry | None = None,
        default_timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        self.peers = peers if peers is not None else PeerConnectionSet()
        self.registry = registry if registry is not None else CorrelationRegistry()
        self.default_timeout = float(default_timeout)

    async def call(
        self,
        type: str,
        payload: Any = None,
        *,
        timeout: float | None = None,
        request_id: str | None = None,
        label: str | None = None,
    ) -> Any:
        """Send one command to the peer and wait for its answer.

        Raises NoPeerError, BridgeTimeoutError, RemoteError, or DuplicateRequestIdError when
        request_id is still pending. A peer failure without a message reads "<label>_failed"
        (label defaults to the command type). A payload that cannot be written as JSON raises
        BridgeError before anything is registered or sent.
        """
        if not isinstance(type, str) or not type.strip():
            raise BridgeError("command type is required")

        rid = request_id or uuid.uuid4().hex
        wait = self.default_timeout if timeout is None else float(timeout)

        try:
            frame = encode(RequestEnvelope(id=rid, type=type, payload=payload))
        except (TypeError, ValueError) as exc:
            raise BridgeError(f"payload is not JSON-serializable: {exc}") from exc

        fut = self.registry.register(rid, wait)
        try:
            await self.peers.broadcast(frame)
            response: ResponseEnvelope = await fut
        finally:
            # No-op once resolved or expired; covers send failures and caller cancellation.
            self.registry.discard(rid)

        if response.ok:
            return response.result
        logger.debug("remote failure type=%s id=%s error=%s", type, rid, response.error)
        raise RemoteError(response.error or f"{label or type}_failed")

    def handle_response(self, response: ResponseEnvelope) -> bool:
        return self.registry.resolve(response.id, response)

    @property
    def pending_count(self) -> int:
        return len(self.registry)


__all__ = ["DEFAULT_CALL_TIMEOUT", "Bridge"]
