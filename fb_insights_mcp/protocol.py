"""
Protocol normalization and dispatch.

Three wire shapes reach the same handler table:

- JSON-RPC 2.0 over stdio: ``{"jsonrpc": "2.0", "id", "method", "params"}``
- the n8n line protocol over stdio: ``{"type": "listTools"}`` and
  ``{"type": "callTool", "name", "arguments"}``
- a synthetic ``{"method", "url", "body"}`` message built by the HTTP binding

``detect_shape`` picks the transport from a discriminator field, the matching
``Codec`` turns the message into a ``ToolRequest``, the ``Dispatcher`` runs
exactly one action for it, and the same codec wraps the answer into the
shape the caller expects.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Union
from urllib.parse import urlsplit

from mcp.types import (
    CallToolResult, Tool,
    INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST, METHOD_NOT_FOUND,
)

from .config import SERVER_NAME, SERVER_VERSION
from .errors import (
    CorrelationId, FacebookMCPError, InvalidParams, ParseError, ProtocolError,
    UnknownToolError, error_status,
)
from .helpers import error_result, salvage_correlation_id, to_wire
from .tools import ToolRegistry

logger = logging.getLogger("fb_insights_mcp.protocol")


class Transport(str, Enum):
    HTTP = "http"
    JSONRPC_STDIO = "jsonrpc"
    N8N_STDIO = "n8n"


STDIO_TRANSPORTS: FrozenSet[Transport] = frozenset({Transport.JSONRPC_STDIO, Transport.N8N_STDIO})


class Action(Enum):
    LIST_TOOLS = "listTools"
    CALL_TOOL = "callTool"
    STATUS = "status"


@dataclass(frozen=True)
class ToolRequest:
    """One decoded inbound message."""

    transport: Transport
    action: Action
    tool_name: Optional[str] = None
    arguments: Dict[str, Any] = field(default_factory=dict)
    correlation_id: CorrelationId = None
    expects_reply: bool = True


@dataclass(frozen=True)
class Reply:
    """Encoded answer; ``status`` only matters to the HTTP binding."""

    body: Any
    status: int = 200


def detect_shape(message: Any) -> Optional[Transport]:
    """Return the transport whose wire shape ``message`` has, if any."""
    if not isinstance(message, dict):
        return None
    if message.get("jsonrpc") == "2.0":
        return Transport.JSONRPC_STDIO
    if "type" in message:
        return Transport.N8N_STDIO
    if "method" in message and "url" in message:
        return Transport.HTTP
    return None


def _error_message(error: Exception) -> str:
    if isinstance(error, FacebookMCPError):
        return error.message
    return f"Erro interno: {error}"


# =============================================================================
# Codecs
# =============================================================================

class Codec:
    """Decode one transport's messages and encode answers for it."""

    transport: Transport

    def decode(self, message: Any) -> ToolRequest:
        raise NotImplementedError

    def encode_tools(self, request: ToolRequest, tools: List[Tool]) -> Reply:
        raise NotImplementedError

    def encode_status(self, request: ToolRequest, names: List[str]) -> Reply:
        raise ProtocolError(METHOD_NOT_FOUND, "status is only available over HTTP", request.correlation_id)

    def encode_result(self, request: ToolRequest, result: CallToolResult) -> Reply:
        raise NotImplementedError

    def encode_error(self, request: Optional[ToolRequest], error: Exception) -> Optional[Reply]:
        raise NotImplementedError


class JsonRpcCodec(Codec):
    transport = Transport.JSONRPC_STDIO

    def decode(self, message: Any) -> ToolRequest:
        msg_id = message.get("id")
        method = message.get("method")
        expects_reply = msg_id is not None

        if not isinstance(method, str):
            raise ProtocolError(INVALID_REQUEST, "Invalid Request", msg_id)

        if method == "listTools":
            return ToolRequest(self.transport, Action.LIST_TOOLS, correlation_id=msg_id,
                               expects_reply=expects_reply)

        if method == "executeTool":
            params = message.get("params")
            if params is None:
                params = {}
            if not isinstance(params, dict):
                raise InvalidParams("params must be an object", msg_id)
            name = params.get("name")
            if not isinstance(name, str) or not name:
                raise InvalidParams("Missing tool name in params.name", msg_id)
            arguments = params.get("arguments", params.get("parameters"))
            return ToolRequest(
                self.transport, Action.CALL_TOOL,
                tool_name=name,
                arguments={} if arguments is None else arguments,
                correlation_id=msg_id,
                expects_reply=expects_reply,
            )

        raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {method}", msg_id)

    @staticmethod
    def _envelope(msg_id: CorrelationId, **payload) -> Dict[str, Any]:
        return {"jsonrpc": "2.0", "id": msg_id, **payload}

    def encode_tools(self, request: ToolRequest, tools: List[Tool]) -> Reply:
        return Reply(self._envelope(request.correlation_id,
                                    result={"tools": [to_wire(t) for t in tools]}))

    def encode_result(self, request: ToolRequest, result: CallToolResult) -> Reply:
        return Reply(self._envelope(request.correlation_id, result={"result": to_wire(result)}))

    def encode_error(self, request: Optional[ToolRequest], error: Exception) -> Optional[Reply]:
        if isinstance(error, ProtocolError):
            code, msg_id = error.code, error.correlation_id
        elif isinstance(error, UnknownToolError):
            code, msg_id = INVALID_PARAMS, None
        else:
            code, msg_id = INTERNAL_ERROR, None
        if request is not None:
            if not request.expects_reply:
                return None
            msg_id = request.correlation_id
        # Without an id there is nothing to correlate the error with.
        if msg_id is None:
            return None
        return Reply(self._envelope(msg_id, error={"code": code, "message": _error_message(error)}))


class N8nCodec(Codec):
    """n8n line protocol: bare tool list, results always wrapped in a list."""

    transport = Transport.N8N_STDIO

    def decode(self, message: Any) -> ToolRequest:
        kind = message.get("type")
        if kind == "listTools":
            return ToolRequest(self.transport, Action.LIST_TOOLS)
        if kind == "callTool":
            name = message.get("name")
            if not isinstance(name, str) or not name:
                raise InvalidParams("Nome da ferramenta ausente no campo 'name'")
            arguments = message.get("arguments")
            return ToolRequest(self.transport, Action.CALL_TOOL, tool_name=name,
                               arguments={} if arguments is None else arguments)
        raise ProtocolError(METHOD_NOT_FOUND, f"Tipo de mensagem desconhecido: {kind}")

    def encode_tools(self, request: ToolRequest, tools: List[Tool]) -> Reply:
        return Reply([to_wire(t) for t in tools])

    def encode_result(self, request: ToolRequest, result: CallToolResult) -> Reply:
        return Reply([to_wire(result)])

    def encode_error(self, request: Optional[ToolRequest], error: Exception) -> Optional[Reply]:
        return Reply([to_wire(error_result(_error_message(error)))])


class HttpCodec(Codec):
    """Routes the synthetic ``{method, url, body}`` message; ``body`` is raw text."""

    transport = Transport.HTTP

    def decode(self, message: Any) -> ToolRequest:
        method = str(message.get("method", "")).upper()
        path = urlsplit(str(message.get("url", ""))).path.rstrip("/") or "/"

        if method == "GET" and path == "/tools":
            return ToolRequest(self.transport, Action.LIST_TOOLS)
        if method == "GET" and path == "/status":
            return ToolRequest(self.transport, Action.STATUS)
        if method == "POST" and path == "/execute":
            body = self._parse_body(message.get("body"))
            name = body.get("name")
            if not isinstance(name, str) or not name:
                raise UnknownToolError(name)
            arguments = body.get("parameters", body.get("arguments"))
            return ToolRequest(self.transport, Action.CALL_TOOL, tool_name=name,
                               arguments={} if arguments is None else arguments)

        raise ProtocolError(METHOD_NOT_FOUND, "Endpoint não encontrado")

    @staticmethod
    def _parse_body(raw: Union[str, bytes, dict, None]) -> Dict[str, Any]:
        if isinstance(raw, dict):
            return raw
        if not raw:
            raise ParseError("Corpo da requisição vazio")
        try:
            body = json.loads(raw)
        except ValueError as e:
            raise ParseError(f"JSON inválido no corpo da requisição: {e}") from e
        if not isinstance(body, dict):
            raise ParseError("O corpo da requisição deve ser um objeto JSON")
        return body

    def encode_tools(self, request: ToolRequest, tools: List[Tool]) -> Reply:
        return Reply({"tools": [to_wire(t) for t in tools]})

    def encode_status(self, request: ToolRequest, names: List[str]) -> Reply:
        return Reply({"status": "ok", "tools": names, "version": SERVER_VERSION, "name": SERVER_NAME})

    def encode_result(self, request: ToolRequest, result: CallToolResult) -> Reply:
        return Reply({"result": to_wire(result)})

    def encode_error(self, request: Optional[ToolRequest], error: Exception) -> Optional[Reply]:
        return Reply({"error": True, "message": _error_message(error)}, status=error_status(error))


# =============================================================================
# Dispatcher
# =============================================================================

class Dispatcher:
    """Transport-agnostic core: one inbound message in, at most one reply out."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry
        self._codecs: Dict[Transport, Codec] = {
            codec.transport: codec for codec in (JsonRpcCodec(), N8nCodec(), HttpCodec())
        }

    def codec_for(self, transport: Transport) -> Codec:
        return self._codecs[transport]

    async def dispatch(self, message: Any, transport: Transport) -> Optional[Reply]:
        """Handle one already-parsed message of a known shape."""
        codec = self._codecs[transport]
        try:
            request = codec.decode(message)
        except FacebookMCPError as e:
            logger.warning("Rejected %s message: %s", transport.value, e.message)
            return codec.encode_error(None, e)

        try:
            if request.action is Action.LIST_TOOLS:
                reply = codec.encode_tools(request, self.registry.definitions())
            elif request.action is Action.STATUS:
                reply = codec.encode_status(request, self.registry.names())
            else:
                logger.info("Calling tool %s via %s", request.tool_name, transport.value)
                result = await self.registry.call(request.tool_name, request.arguments)
                reply = codec.encode_result(request, result)
        except FacebookMCPError as e:
            logger.warning("%s request failed: %s", transport.value, e.message)
            reply = codec.encode_error(request, e)
        except Exception as e:
            logger.exception("Internal error while handling %s request", transport.value)
            reply = codec.encode_error(request, e)

        if not request.expects_reply:
            return None
        return reply

    async def dispatch_line(
        self,
        line: Union[str, bytes],
        allowed: FrozenSet[Transport] = STDIO_TRANSPORTS,
    ) -> Optional[Reply]:
        """Parse one framed line and dispatch it.

        Malformed JSON is answered with a JSON-RPC parse error when an id can
        be recovered from the raw text, and dropped otherwise.
        """
        try:
            message = json.loads(line)
        except ValueError:
            msg_id = salvage_correlation_id(line)
            if msg_id is None:
                logger.warning("Dropping malformed line: %.200r", line)
                return None
            logger.warning("Malformed JSON-RPC line (id=%r)", msg_id)
            return self._codecs[Transport.JSONRPC_STDIO].encode_error(None, ParseError(correlation_id=msg_id))

        transport = detect_shape(message)
        if transport is None or transport not in allowed:
            msg_id = message.get("id") if isinstance(message, dict) else None
            if msg_id is None:
                logger.warning("Dropping message of unknown shape: %.200r", line)
                return None
            return self._codecs[Transport.JSONRPC_STDIO].encode_error(
                None, ProtocolError(INVALID_REQUEST, "Invalid Request", msg_id)
            )

        return await self.dispatch(message, transport)
