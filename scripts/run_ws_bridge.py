#!/usr/bin/env python3
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

print(
    f"[mcp] bridge={os.environ.get('MCP_BRIDGE_HOST', '127.0.0.1')}:{os.environ.get('MCP_BRIDGE_PORT', '3001')} | "
    f"timeout={os.environ.get('MCP_BRIDGE_TIMEOUT', '15')}s | "
    f"heartbeat={os.environ.get('MCP_BRIDGE_HEARTBEAT', '20')}s",
    file=sys.stderr,
)

from mcp_servers.ws_bridge.main import main  # noqa: E402

if __name__ == "__main__":
    main()
