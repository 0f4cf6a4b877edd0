from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from .envelope import ResponseEnvelope
from .errors import BridgeTimeoutError, DuplicateRequestIdError

logger = logging.getLogger("mcp.ws_bridge.correlation")


@dataclass(slots=True)
class PendingCall:
    id: str
    created_at: float
    deadline: float
    future: asyncio.Future
    timer: asyncio.TimerHandle | None = None


class CorrelationRegistry:
    """In-flight request ids -> waiting callers.

    The registry is owned by a single event loop: register/resolve/deadline callbacks all run on
    that loop, so a pending call is popped exactly once (by a response or by its timer).
    """

    def __init__(self, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._pending: dict[str, PendingCall] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop if self._loop is not None else asyncio.get_running_loop()

    def register(self, request_id: str, timeout: float) -> asyncio.Future:
        if request_id in self._pending:
            raise DuplicateRequestIdError(request_id)

        loop = self._get_loop()
        now = time.monotonic()
        timeout = max(0.0, float(timeout))
        fut: asyncio.Future = loop.create_future()
        call = PendingCall(id=request_id, created_at=now, deadline=now + timeout, future=fut)
        call.timer = loop.call_later(timeout, self._expire, request_id, fut)
        self._pending[request_id] = call
        return fut

    def resolve(self, request_id: str, outcome: ResponseEnvelope) -> bool:
        """Fulfill the pending call for request_id. Unknown ids (late/duplicate/unsolicited) are dropped."""
        call = self._pending.pop(request_id, None)
        if call is None:
            logger.debug("dropping response for unknown id %s", request_id)
            return False
        if call.timer is not None:
            call.timer.cancel()
        if call.future.done():
            return False
        call.future.set_result(outcome)
        return True

    def discard(self, request_id: str) -> None:
        call = self._pending.pop(request_id, None)
        if call is None:
            return
        if call.timer is not None:
            call.timer.cancel()
        if not call.future.done():
            call.future.cancel()

    def pending_ids(self) -> list[str]:
        return list(self._pending)

    def _expire(self, request_id: str, fut: asyncio.Future) -> None:
        call = self._pending.get(request_id)
        # The id may have been re-registered after a discard; only reap our own entry.
        if call is None or call.future is not fut:
            return
        del self._pending[request_id]
        if not fut.done():
            fut.set_exception(BridgeTimeoutError(request_id, call.deadline - call.created_at))


__all__ = ["CorrelationRegistry", "PendingCall"]
