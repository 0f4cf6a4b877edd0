from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import errno
import logging
import threading
import time
from typing import Any

from .bridge import DEFAULT_CALL_TIMEOUT, Bridge
from .config import BridgeConfig
from .correlation import CorrelationRegistry
from .envelope import Heartbeat, ResponseEnvelope, encode
from .envelope import decode as decode_envelope
from .errors import BridgeError, BridgeTimeoutError, DecodeError, NoPeerError
from .peers import PeerConnectionSet

logger = logging.getLogger("mcp.ws_bridge.gateway")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _import_websockets():
    try:
        import websockets  # type: ignore[import-not-found]

        return websockets
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(
            "The bridge gateway requires the 'websockets' Python package. Install it (pip install websockets)."
        ) from exc


class BridgeGateway:
    """Local WebSocket endpoint the browser-side peer connects to.

    Design goals:
    - Sync API for the MCP server (blocking call / status / wait_for_peer).
    - Async server internally (runs in a dedicated daemon thread with its own loop).
    - Fail fast: with no peer connected a call raises NoPeerError instead of waiting.
    - Every request goes to every connected socket; the first matching response wins.
    """

    def __init__(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        heartbeat_interval: float = 20.0,
    ) -> None:
        self.host = (host or "127.0.0.1").strip() or "127.0.0.1"
        self.port = int(port if port is not None else 3001)
        self.heartbeat_interval = max(0.0, float(heartbeat_interval))
        self._server_started_at_ms = _now_ms()

        self.peers = PeerConnectionSet()
        self.bridge = Bridge(peers=self.peers, registry=CorrelationRegistry(), default_timeout=call_timeout)

        self._lock = threading.Lock()
        self._peer_connected = threading.Condition(self._lock)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

        # NOTE: typed as Any to stay independent of the websockets server class across versions.
        self._server: Any | None = None
        self._bind_error: str | None = None
        self._stop_event: asyncio.Event | None = None

    @classmethod
    def from_config(cls, config: BridgeConfig) -> BridgeGateway:
        return cls(
            host=config.host,
            port=config.port,
            call_timeout=config.call_timeout,
            heartbeat_interval=config.heartbeat_interval,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def start(self, *, wait_timeout: float = 5.0, require_listening: bool = True) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop.clear()
        with self._lock:
            self._bind_error = None

        t = threading.Thread(target=self._run_thread, name="mcp-bridge-gateway", daemon=True)
        self._thread = t
        t.start()

        # Wait for the server to actually bind (not just for the thread to start).
        deadline = time.time() + max(0.05, float(wait_timeout))
        while time.time() < deadline:
            with self._lock:
                server = self._server
                bind_error = self._bind_error
            if server is not None:
                return
            if bind_error and require_listening:
                break
            if not t.is_alive():
                break
            time.sleep(0.02)

        with self._lock:
            bind_error = self._bind_error
            server = self._server
        if server is not None:
            return
        if not t.is_alive():
            raise RuntimeError(f"Bridge gateway thread died during startup on {self.host}:{self.port}")
        if require_listening:
            self.stop(timeout=1.0)
            raise RuntimeError(f"Bridge gateway bind failed on {self.host}:{self.port}: {bind_error or 'timeout'}")
        # Otherwise fail-soft: the gateway thread keeps retrying to bind.

    def stop(self, *, timeout: float = 2.0) -> None:
        self._stop.set()
        loop = self._loop
        evt = self._stop_event
        if loop is not None and evt is not None:
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(evt.set)
        t = self._thread
        if t is not None:
            t.join(timeout=timeout)

    def status(self) -> dict[str, Any]:
        with self._lock:
            server = self._server
            bind_error = self._bind_error
            thread_alive = bool(self._thread is not None and self._thread.is_alive())
        return {
            "listening": server is not None,
            "host": self.host,
            "port": self.port,
            "peerCount": len(self.peers),
            "pendingCalls": self.bridge.pending_count,
            **({"threadAlive": True} if thread_alive else {}),
            **({"bindError": bind_error} if bind_error else {}),
            "serverStartedAtMs": int(self._server_started_at_ms),
        }

    def is_connected(self) -> bool:
        return len(self.peers) > 0

    def wait_for_peer(self, *, timeout: float = 5.0) -> bool:
        """Block until at least one peer socket is connected, or timeout."""
        deadline = time.monotonic() + max(0.0, float(timeout))
        with self._peer_connected:
            while not self.peers:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._peer_connected.wait(timeout=remaining)
            return True

    # ─────────────────────────────────────────────────────────────────────────
    # Calls
    # ─────────────────────────────────────────────────────────────────────────

    def call(
        self,
        type: str,
        payload: Any = None,
        *,
        timeout: float | None = None,
        label: str | None = None,
    ) -> Any:
        """Blocking remote call from any thread other than the gateway loop."""
        loop = self._loop
        if loop is None or self._stop.is_set():
            raise NoPeerError()
        wait = self.bridge.default_timeout if timeout is None else float(timeout)
        fut = asyncio.run_coroutine_threadsafe(self.bridge.call(type, payload, timeout=wait, label=label), loop)
        try:
            # The registry deadline fires first; the extra second only guards a wedged loop.
            return fut.result(timeout=wait + 1.0)
        except BridgeError:
            raise
        except concurrent.futures.TimeoutError as exc:
            fut.cancel()
            raise BridgeTimeoutError(None, wait) from exc

    # ─────────────────────────────────────────────────────────────────────────
    # Internals (async)
    # ─────────────────────────────────────────────────────────────────────────

    def _run_thread(self) -> None:
        asyncio.run(self._run_async())

    async def _handle_connection(self, ws) -> None:  # type: ignore[no-untyped-def]
        with self._peer_connected:
            self.peers.add(ws)
            self._peer_connected.notify_all()
        logger.info("bridge peer connected (%d total)", len(self.peers))
        try:
            async for raw in ws:
                self._on_frame(raw)
        except Exception as exc:  # noqa: BLE001
            logger.info("bridge peer connection error: %s", exc)
        finally:
            self.peers.remove(ws)
            logger.info("bridge peer disconnected (%d left)", len(self.peers))

    def _on_frame(self, raw: Any) -> None:
        try:
            env = decode_envelope(raw)
        except DecodeError as exc:
            logger.debug("ignoring malformed frame: %s", exc)
            return
        if isinstance(env, ResponseEnvelope):
            self.bridge.handle_response(env)
            return
        logger.debug("ignoring non-response frame from peer: %r", env)

    async def _heartbeat_loop(self) -> None:
        frame = encode(Heartbeat())
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            if not self.peers:
                continue
            with contextlib.suppress(NoPeerError):
                await self.peers.broadcast(frame)

    async def _run_async(self) -> None:
        websockets = _import_websockets()
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        if self._stop.is_set():
            return

        heartbeat: asyncio.Task | None = None
        if self.heartbeat_interval > 0:
            heartbeat = asyncio.create_task(self._heartbeat_loop())

        # Keep retrying bind with backoff until stop: another process may still hold the port.
        backoff_s = 0.25
        max_backoff_s = 5.0
        try:
            while not self._stop.is_set():
                try:
                    server = await websockets.serve(
                        self._handle_connection,
                        self.host,
                        int(self.port),
                        max_size=64_000_000,
                        ping_interval=None,
                    )
                except OSError as exc:
                    with self._lock:
                        self._bind_error = str(exc)
                    level = logging.INFO if getattr(exc, "errno", None) in {errno.EADDRINUSE, errno.EACCES} else logging.ERROR
                    logger.log(level, "gateway bind failed on %s:%s: %s", self.host, self.port, exc)
                    with contextlib.suppress(asyncio.TimeoutError):
                        await asyncio.wait_for(self._stop_event.wait(), timeout=backoff_s)
                    backoff_s = min(backoff_s * 1.6, max_backoff_s)
                    continue

                with self._lock:
                    self._server = server
                    self._bind_error = None
                logger.info("gateway listening on %s:%s", self.host, self.port)
                await self._stop_event.wait()
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await heartbeat
            await self._shutdown_async()

    async def _shutdown_async(self) -> None:
        with self._lock:
            srv = self._server
            self._server = None
        if srv is not None:
            srv.close()
            with contextlib.suppress(Exception):
                await srv.wait_closed()
        for ws in self.peers.snapshot():
            with contextlib.suppress(Exception):
                await ws.close()
            self.peers.remove(ws)
        self._loop = None


__all__ = ["BridgeGateway"]
