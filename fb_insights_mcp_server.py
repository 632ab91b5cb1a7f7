"""
Facebook Insights MCP Server - Entry Point
===========================================
Thin wrapper that imports and runs the server from the fb_insights_mcp package.
See fb_insights_mcp/server.py for the process modes.

Usage:
    python fb_insights_mcp_server.py                      # stdio (JSON-RPC + n8n line protocol)
    python fb_insights_mcp_server.py --http [--port N]    # HTTP API (default port 8082)
    python fb_insights_mcp_server.py --mcp                # standard MCP over stdio
    python fb_insights_mcp_server.py facebook-list-ad-accounts '{}'   # one-shot
"""

import sys

from fb_insights_mcp.server import main

if __name__ == "__main__":
    sys.exit(main())
