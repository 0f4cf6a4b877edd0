from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .dispatch import DispatchTable
from .envelope import Heartbeat, RequestEnvelope, encode
from .envelope import decode as decode_envelope
from .errors import DecodeError

logger = logging.getLogger("mcp.ws_bridge.lifecycle")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _import_websockets():
    try:
        import websockets  # type: ignore[import-not-found]

        return websockets
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(
            "The bridge peer requires the 'websockets' Python package. Install it (pip install websockets)."
        ) from exc


class ConnectionState(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """delay(attempt) = min(cap, base * 2**attempt); the attempt counter saturates at max_attempts."""

    base: float = 0.5
    cap: float = 30.0
    max_attempts: int = 8

    def delay(self, attempt: int) -> float:
        n = max(0, min(int(attempt), self.max_attempts))
        return min(self.cap, self.base * (2**n))

    def next_attempt(self, attempt: int) -> int:
        return min(int(attempt) + 1, self.max_attempts)


StateListener = Callable[[ConnectionState, ConnectionState], None]
ConnectFactory = Callable[[str], Awaitable[Any]]


class ConnectionLifecycleManager:
    """Peer-side connection owner: connect, dispatch incoming commands, reconnect with backoff.

    All socket work happens on one asyncio loop (either the caller's via `run()`, or a private
    daemon thread via `start()`). State is mutated only through `_set_state` and can be read
    from any thread.
    """

    def __init__(
        self,
        endpoint: str,
        dispatch_table: DispatchTable,
        *,
        backoff: BackoffPolicy | None = None,
        liveness_timeout: float = 0.0,
        open_timeout: float = 5.0,
        connect: ConnectFactory | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.dispatch_table = dispatch_table
        self.backoff = backoff or BackoffPolicy()
        self.liveness_timeout = max(0.0, float(liveness_timeout))
        self.open_timeout = max(0.1, float(open_timeout))
        self._connect_factory = connect

        self._lock = threading.Lock()
        self._state_changed = threading.Condition(self._lock)
        self._state = ConnectionState.DISCONNECTED
        self._attempt = 0
        self._bypass_backoff = False
        self._last_error: str | None = None
        self._last_seen_ms = 0
        self._listeners: list[StateListener] = []

        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._stopping = False
        self._stop_event: asyncio.Event | None = None

        # NOTE: typed as Any to stay independent of the websockets protocol class.
        self._ws: Any | None = None
        self._session_task: asyncio.Task | None = None
        self._retry_handle: asyncio.TimerHandle | None = None
        self._inflight: set[asyncio.Task] = set()

    # ─────────────────────────────────────────────────────────────────────────
    # Status
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def attempt(self) -> int:
        with self._lock:
            return self._attempt

    def get_status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "endpoint": self.endpoint,
                **({"attempt": self._attempt} if self._attempt else {}),
                **({"lastError": self._last_error} if self._last_error else {}),
                **({"lastSeenMs": self._last_seen_ms} if self._last_seen_ms else {}),
            }

    def add_listener(self, listener: StateListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def wait_for_state(self, state: ConnectionState, *, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + max(0.0, float(timeout))
        with self._state_changed:
            while self._state != state:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._state_changed.wait(timeout=remaining)
            return True

    def _set_state(self, new: ConnectionState) -> None:
        with self._state_changed:
            old = self._state
            if old == new:
                return
            self._state = new
            if new == ConnectionState.CONNECTED:
                self._attempt = 0
            listeners = list(self._listeners)
            self._state_changed.notify_all()

        logger.info("bridge peer %s -> %s (%s)", old.value, new.value, self.endpoint)
        for listener in listeners:
            try:
                listener(old, new)
            except Exception:  # noqa: BLE001
                logger.exception("state listener failed")

    # ─────────────────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────────────────

    def connect(self) -> None:
        """Start a connection attempt. No-op while CONNECTING or CONNECTED."""
        self._call_in_loop(self._connect_now)

    def force_reconnect(self) -> None:
        """Drop any live connection and reconnect immediately, skipping one backoff delay."""
        self._call_in_loop(self._force_reconnect_now)

    def _call_in_loop(self, fn: Callable[[], None]) -> None:
        loop = self._loop
        if loop is None:
            raise RuntimeError("lifecycle manager is not running")
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            fn()
        else:
            loop.call_soon_threadsafe(fn)

    def _connect_now(self) -> None:
        if self._stopping or self._loop is None:
            return
        with self._lock:
            if self._state != ConnectionState.DISCONNECTED:
                return
        self._cancel_retry()
        self._set_state(ConnectionState.CONNECTING)
        self._session_task = self._loop.create_task(self._session())

    def _force_reconnect_now(self) -> None:
        if self._stopping:
            return
        self._bypass_backoff = True
        self._cancel_retry()
        task = self._session_task
        if task is not None and not task.done():
            # The session's cleanup schedules the (immediate) reconnect.
            task.cancel()
            return
        self._bypass_backoff = False
        self._connect_now()

    def _cancel_retry(self) -> None:
        handle = self._retry_handle
        self._retry_handle = None
        if handle is not None:
            handle.cancel()

    def _schedule_reconnect(self) -> None:
        if self._stopping or self._loop is None:
            return
        if self._bypass_backoff:
            self._bypass_backoff = False
            delay = 0.0
        else:
            with self._lock:
                delay = self.backoff.delay(self._attempt)
                self._attempt = self.backoff.next_attempt(self._attempt)
        logger.info("bridge peer reconnect in %.2fs", delay)
        self._retry_handle = self._loop.call_later(delay, self._connect_now)

    # ─────────────────────────────────────────────────────────────────────────
    # Session
    # ─────────────────────────────────────────────────────────────────────────

    async def _open(self) -> Any:
        if self._connect_factory is not None:
            return await self._connect_factory(self.endpoint)
        websockets = _import_websockets()
        return await websockets.connect(self.endpoint, ping_interval=None, open_timeout=self.open_timeout)

    async def _session(self) -> None:
        ws = None
        try:
            try:
                ws = await self._open()
            except Exception as exc:  # noqa: BLE001
                with self._lock:
                    self._last_error = str(exc) or type(exc).__name__
                logger.info("bridge peer connect failed: %s", exc)
                return

            with self._lock:
                self._ws = ws
                self._last_error = None
                self._last_seen_ms = _now_ms()
            self._set_state(ConnectionState.CONNECTED)

            try:
                await self._receive_loop(ws)
            except Exception as exc:  # noqa: BLE001
                with self._lock:
                    self._last_error = str(exc) or type(exc).__name__
                logger.info("bridge peer connection closed: %s", exc)
        finally:
            with self._lock:
                self._ws = None
            if ws is not None:
                with contextlib.suppress(Exception):
                    await asyncio.shield(ws.close())
            self._set_state(ConnectionState.DISCONNECTED)
            self._schedule_reconnect()

    async def _receive_loop(self, ws: Any) -> None:
        while True:
            if self.liveness_timeout > 0:
                try:
                    raw = await asyncio.wait_for(ws.recv(), timeout=self.liveness_timeout)
                except asyncio.TimeoutError:
                    with self._lock:
                        self._last_error = "liveness timeout"
                    logger.info("bridge peer saw no traffic for %.1fs; reconnecting", self.liveness_timeout)
                    return
            else:
                raw = await ws.recv()
            with self._lock:
                self._last_seen_ms = _now_ms()
            self._on_frame(ws, raw)

    def _on_frame(self, ws: Any, raw: Any) -> None:
        try:
            env = decode_envelope(raw)
        except DecodeError as exc:
            logger.debug("ignoring malformed frame: %s", exc)
            return

        if isinstance(env, Heartbeat):
            return
        if isinstance(env, RequestEnvelope):
            # Fire-and-forget: the receive loop keeps reading while handlers run.
            task = asyncio.get_running_loop().create_task(self._handle_request(ws, env))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            return
        logger.debug("ignoring unexpected response frame id=%s", getattr(env, "id", None))

    async def _handle_request(self, ws: Any, request: RequestEnvelope) -> None:
        response = await self.dispatch_table.dispatch(request)
        try:
            await ws.send(encode(response).decode("utf-8"))
        except Exception as exc:  # noqa: BLE001
            logger.info("dropping response id=%s: %s", request.id, exc)

    # ─────────────────────────────────────────────────────────────────────────
    # Hosting
    # ─────────────────────────────────────────────────────────────────────────

    async def run(self) -> None:
        """Connect and keep the connection alive until `request_stop()`."""
        self._loop = asyncio.get_running_loop()
        self._stopping = False
        self._stop_event = asyncio.Event()
        self._connect_now()
        self._ready.set()
        try:
            await self._stop_event.wait()
        finally:
            await self._shutdown()
            self._ready.clear()

    def request_stop(self) -> None:
        loop = self._loop
        evt = self._stop_event
        self._stopping = True
        if loop is None or evt is None:
            return
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(evt.set)

    async def _shutdown(self) -> None:
        self._stopping = True
        self._cancel_retry()
        task = self._session_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        inflight = list(self._inflight)
        for t in inflight:
            t.cancel()
        if inflight:
            await asyncio.gather(*inflight, return_exceptions=True)
        self._set_state(ConnectionState.DISCONNECTED)

    def start(self, *, wait_timeout: float = 0.0) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        t = threading.Thread(target=self._run_thread, name="mcp-bridge-peer", daemon=True)
        self._thread = t
        t.start()
        self._ready.wait(timeout=2.0)
        if wait_timeout > 0:
            self.wait_for_state(ConnectionState.CONNECTED, timeout=wait_timeout)

    def stop(self, *, timeout: float = 2.0) -> None:
        self.request_stop()
        t = self._thread
        if t is not None:
            t.join(timeout=timeout)
        self._thread = None

    def _run_thread(self) -> None:
        asyncio.run(self.run())


__all__ = [
    "BackoffPolicy",
    "ConnectFactory",
    "ConnectionLifecycleManager",
    "ConnectionState",
    "StateListener",
]
