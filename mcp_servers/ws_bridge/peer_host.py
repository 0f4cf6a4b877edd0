"""Standalone bridge peer: connects to the MCP server's gateway and serves commands.

Stands in for the browser extension side of the bridge. Real command executors register
further handlers on the dispatch table returned by `build_peer()`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .config import BridgeConfig
from .dispatch import DispatchTable
from .lifecycle import BackoffPolicy, ConnectionLifecycleManager

logger = logging.getLogger("mcp.ws_bridge.peer_host")


def _echo(payload: Any) -> Any:
    return payload


def create_default_dispatch_table() -> DispatchTable:
    table = DispatchTable()
    table.register("echo.ping", _echo)
    return table


def build_peer(config: BridgeConfig, table: DispatchTable | None = None) -> ConnectionLifecycleManager:
    """Create a lifecycle manager wired to the default commands plus `peer.status`."""
    if table is None:
        table = create_default_dispatch_table()
    manager = ConnectionLifecycleManager(
        config.endpoint,
        table,
        backoff=BackoffPolicy(
            base=config.backoff_base,
            cap=config.backoff_cap,
            max_attempts=config.backoff_max_attempts,
        ),
        liveness_timeout=config.liveness_timeout,
    )
    table.register("peer.status", lambda _payload: manager.get_status())
    return manager


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    config = BridgeConfig.from_env()
    manager = build_peer(config)
    logger.info("bridge peer serving %s via %s", ", ".join(manager.dispatch_table.types), config.endpoint)
    try:
        asyncio.run(manager.run())
    except KeyboardInterrupt:
        raise SystemExit(0) from None


if __name__ == "__main__":
    main()
