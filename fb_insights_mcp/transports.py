"""
Transport bindings: stdio line loop, HTTP application and the standard MCP
stdio server. Each one only moves bytes; decoding and re-wrapping happen in
``protocol.Dispatcher``.
"""

import json
import logging
import math
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, List, Optional

import anyio
from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from .errors import FacebookMCPError
from .helpers import result_text
from .protocol import Dispatcher, Transport
from .tools import ToolRegistry

logger = logging.getLogger("fb_insights_mcp.transports")

READ_CHUNK_SIZE = 64 * 1024
READY_MESSAGE = {"ready": True}


# =============================================================================
# Stdio
# =============================================================================

class LineBuffer:
    """Accumulates raw bytes and hands out complete newline-terminated lines."""

    def __init__(self):
        self._pending = bytearray()

    def feed(self, data: bytes) -> List[bytes]:
        self._pending.extend(data)
        if b"\n" not in data:
            return []
        *lines, rest = self._pending.split(b"\n")
        self._pending = bytearray(rest)
        return [line.rstrip(b"\r") for line in lines]

    def flush(self) -> Optional[bytes]:
        """Return whatever is left after the stream ended, if anything."""
        tail = bytes(self._pending).rstrip(b"\r")
        self._pending.clear()
        return tail or None


async def stdin_chunks(size: int = READ_CHUNK_SIZE) -> AsyncIterator[bytes]:
    stdin = anyio.wrap_file(sys.stdin.buffer)
    while True:
        chunk = await stdin.read1(size)
        if not chunk:
            return
        yield chunk


def stdout_writer() -> Callable[[str], Awaitable[None]]:
    """Line writer over the process stdout, off the event loop."""
    stdout = anyio.wrap_file(sys.stdout.buffer)

    async def write_line(line: str) -> None:
        await stdout.write(line.encode("utf-8") + b"\n")
        await stdout.flush()

    return write_line


class StdioServer:
    """Line-delimited JSON over a byte stream.

    Every complete line is dispatched in its own task so a slow Graph call
    never blocks intake. Replies go through one memory stream drained by a
    single writer, so lines are never interleaved; they are written in
    completion order.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        write_line: Optional[Callable[[str], Awaitable[None]]] = None,
        announce_ready: bool = True,
    ):
        self.dispatcher = dispatcher
        self.write_line = write_line or stdout_writer()
        self.announce_ready = announce_ready

    async def serve(self, chunks: AsyncIterator[bytes]) -> None:
        send, receive = anyio.create_memory_object_stream(math.inf)
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._writer, receive)
            async with send:
                if self.announce_ready:
                    await send.send(READY_MESSAGE)
                buffer = LineBuffer()
                async for chunk in chunks:
                    for line in buffer.feed(chunk):
                        self._spawn(tg, line, send)
                tail = buffer.flush()
                if tail is not None:
                    self._spawn(tg, tail, send)
        logger.info("Input stream closed")

    def _spawn(self, tg: TaskGroup, line: bytes, send: MemoryObjectSendStream) -> None:
        if not line.strip():
            return
        tg.start_soon(self._handle_line, line, send.clone())

    async def _handle_line(self, line: bytes, send: MemoryObjectSendStream) -> None:
        async with send:
            try:
                reply = await self.dispatcher.dispatch_line(line)
            except Exception:
                logger.exception("Unhandled error while processing line")
                return
            if reply is not None:
                await send.send(reply.body)

    async def _writer(self, receive: MemoryObjectReceiveStream) -> None:
        async with receive:
            async for body in receive:
                await self.write_line(json.dumps(body, ensure_ascii=False))


async def serve_stdio(dispatcher: Dispatcher) -> None:
    await StdioServer(dispatcher).serve(stdin_chunks())


# =============================================================================
# HTTP
# =============================================================================

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Adds permissive CORS headers everywhere and answers preflights directly."""

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response


def create_http_app(
    dispatcher: Dispatcher,
    on_shutdown: Optional[Callable[[], Awaitable[None]]] = None,
) -> Starlette:
    """Starlette application exposing GET /tools, POST /execute and GET /status."""

    async def handle(request: Request) -> Response:
        body = await request.body() if request.method == "POST" else None
        message = {"method": request.method, "url": request.url.path, "body": body}
        reply = await dispatcher.dispatch(message, Transport.HTTP)
        return JSONResponse(reply.body, status_code=reply.status)

    @asynccontextmanager
    async def lifespan(app):
        yield
        if on_shutdown is not None:
            await on_shutdown()

    return Starlette(
        routes=[Route("/{path:path}", handle, methods=["GET", "POST", "PUT", "PATCH", "DELETE"])],
        middleware=[Middleware(CORSHeadersMiddleware)],
        lifespan=lifespan,
    )


# =============================================================================
# Standard MCP (stdio)
# =============================================================================

def create_mcp_server(registry: ToolRegistry) -> Server:
    """Serve the same tool table through the MCP SDK's tools/list and tools/call."""
    server = Server("facebook-insights")

    @server.list_tools()
    async def list_tools() -> List[Tool]:
        return registry.definitions()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> List[TextContent]:
        result = await registry.call(name, arguments)
        if result.isError:
            # The SDK turns a raised error into an isError result with this text.
            raise FacebookMCPError(result_text(result))
        return [block for block in result.content if isinstance(block, TextContent)]

    return server


async def serve_mcp_stdio(registry: ToolRegistry) -> None:
    server = create_mcp_server(registry)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
