"""
Facebook Insights MCP Server - process bootstrap.

Selects a transport (or the one-shot CLI mode), builds the Graph client and
the dispatcher around one immutable configuration, and owns their lifecycle.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

import uvicorn
from pydantic import ValidationError

from .config import SERVER_NAME, SERVER_VERSION, FacebookConfig, configure_logging
from .errors import FacebookMCPError
from .graph import GraphClient
from .helpers import error_result, to_wire
from .protocol import Dispatcher
from .tools import ToolRegistry
from .transports import create_http_app, serve_mcp_stdio, serve_stdio

logger = logging.getLogger("fb_insights_mcp")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fb-insights-mcp",
        description="Facebook Marketing API tools over MCP (stdio, n8n line protocol or HTTP).",
    )
    parser.add_argument("tool", nargs="?", help="One-shot mode: name of the tool to execute")
    parser.add_argument("arguments", nargs="?", default="{}",
                        help="One-shot mode: JSON-encoded tool arguments (default: {})")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--stdio", action="store_true",
                      help="Serve JSON-RPC and n8n messages over stdin/stdout (default)")
    mode.add_argument("--http", action="store_true", help="Serve the HTTP API")
    mode.add_argument("--mcp", action="store_true",
                      help="Serve the standard MCP protocol (tools/list, tools/call) over stdio")
    parser.add_argument("--port", type=int, help="HTTP port (overrides PORT)")
    parser.add_argument("--version", action="store_true", help="Show the server version and exit")
    return parser


def _log_startup(config: FacebookConfig, registry: ToolRegistry, transport: str) -> None:
    logger.info("%s v%s starting (%s transport)", SERVER_NAME, SERVER_VERSION, transport)
    for tool in registry.definitions():
        logger.info("- %s: %s", tool.name, tool.description)
    if config.missing_credentials():
        logger.info("Credentials not configured; tools will fail until they are provided")
    else:
        logger.info("Credentials configured")


# =============================================================================
# Modes
# =============================================================================

async def execute_once(config: FacebookConfig, tool: str, arguments: dict):
    client = GraphClient(config)
    try:
        return await ToolRegistry(client).call(tool, arguments)
    finally:
        await client.close()


def run_one_shot(config: FacebookConfig, tool: str, raw_arguments: str) -> int:
    """Execute one tool, print its result to stdout and return the exit code."""
    try:
        arguments = json.loads(raw_arguments)
    except ValueError as e:
        logger.error("Invalid JSON arguments for %s: %s", tool, e)
        print(json.dumps(to_wire(error_result(f"argumentos JSON inválidos: {e}")), indent=2, ensure_ascii=False))
        return 1

    try:
        result = asyncio.run(execute_once(config, tool, arguments))
    except FacebookMCPError as e:
        logger.error("Tool %s failed: %s", tool, e.message)
        print(json.dumps(to_wire(error_result(e.message)), indent=2, ensure_ascii=False))
        return 1
    except Exception:
        logger.exception("Unexpected error while executing %s", tool)
        return 1

    print(json.dumps(to_wire(result), indent=2, ensure_ascii=False))
    return 1 if result.isError else 0


async def run_stdio(config: FacebookConfig) -> None:
    client = GraphClient(config)
    registry = ToolRegistry(client)
    _log_startup(config, registry, "stdio")
    try:
        await serve_stdio(Dispatcher(registry))
    finally:
        await client.close()


async def run_mcp(config: FacebookConfig) -> None:
    client = GraphClient(config)
    registry = ToolRegistry(client)
    _log_startup(config, registry, "mcp")
    try:
        await serve_mcp_stdio(registry)
    finally:
        await client.close()


def run_http(config: FacebookConfig) -> None:
    client = GraphClient(config)
    registry = ToolRegistry(client)
    _log_startup(config, registry, f"http on {config.host}:{config.port}")
    app = create_http_app(Dispatcher(registry), on_shutdown=client.close)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


# =============================================================================
# Entry Point
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Run the server (stdio, HTTP or standard MCP) or a single tool."""
    args = build_parser().parse_args(argv)

    if args.version:
        print(f"{SERVER_NAME} v{SERVER_VERSION}")
        return 0

    configure_logging()
    try:
        config = FacebookConfig.from_env()
    except ValidationError as e:
        logger.error("Invalid configuration: %s", e)
        return 1
    configure_logging(config.log_level)

    if args.port is not None:
        config = config.model_copy(update={"port": args.port})

    try:
        if args.tool:
            return run_one_shot(config, args.tool, args.arguments)
        if args.http:
            run_http(config)
        elif args.mcp:
            asyncio.run(run_mcp(config))
        else:
            asyncio.run(run_stdio(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
