from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

from .errors import NoPeerError

logger = logging.getLogger("mcp.ws_bridge.peers")


class PeerConnection(Protocol):
    async def send(self, message: str) -> Any: ...


class PeerConnectionSet:
    """Currently connected peer sockets, used as the fan-out target for requests.

    Membership changes come from connection handlers and may race with a broadcast, so
    broadcast iterates over a snapshot.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._conns: set[Any] = set()

    def add(self, conn: PeerConnection) -> None:
        with self._lock:
            self._conns.add(conn)

    def remove(self, conn: PeerConnection) -> None:
        with self._lock:
            self._conns.discard(conn)

    def snapshot(self) -> list[Any]:
        with self._lock:
            return list(self._conns)

    def __len__(self) -> int:
        with self._lock:
            return len(self._conns)

    def __bool__(self) -> bool:
        return len(self) > 0

    async def broadcast(self, frame: bytes) -> int:
        """Send frame to every peer; returns how many sends succeeded.

        Raises NoPeerError before any await when nothing is connected.
        """
        targets = self.snapshot()
        if not targets:
            raise NoPeerError()

        text = frame.decode("utf-8")
        delivered = 0
        for conn in targets:
            try:
                await conn.send(text)
            except Exception as exc:  # noqa: BLE001
                logger.info("peer send failed: %s", exc)
                continue
            delivered += 1
        return delivered


__all__ = ["PeerConnection", "PeerConnectionSet"]
