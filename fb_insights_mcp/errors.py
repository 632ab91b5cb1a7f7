"""Exception hierarchy shared by the Graph client, the tools and the dispatcher."""

from typing import Any, Optional, Union

from mcp.types import INVALID_PARAMS, PARSE_ERROR

CorrelationId = Union[str, int, None]


class FacebookMCPError(Exception):
    """Base class; ``message`` is safe to show to the calling agent."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(FacebookMCPError):
    """Required configuration (the access token) is missing."""


class TransportFailure(FacebookMCPError):
    """The Graph API could not be reached or answered with something other than JSON."""


class ApiError(FacebookMCPError):
    """The Graph API answered with a structured error body."""

    def __init__(self, status: int, payload: Any):
        self.status = status
        self.payload = payload
        detail = payload.get("error", {}) if isinstance(payload, dict) else {}
        message = detail.get("message") if isinstance(detail, dict) else None
        super().__init__(message or f"Graph API error (HTTP {status})")


class UnknownToolError(FacebookMCPError):
    """The requested tool name is not in the handler table."""

    def __init__(self, name: Any):
        self.name = name
        super().__init__(f"Ferramenta não encontrada: {name}")


class ProtocolError(FacebookMCPError):
    """An inbound message could not be turned into a tool request.

    ``code`` is a JSON-RPC error code; transports without error codes use
    only the message.
    """

    def __init__(self, code: int, message: str, correlation_id: CorrelationId = None):
        self.code = code
        self.correlation_id = correlation_id
        super().__init__(message)


class ParseError(ProtocolError):
    """The inbound message is not valid JSON."""

    def __init__(self, message: str = "Parse error", correlation_id: CorrelationId = None):
        super().__init__(PARSE_ERROR, message, correlation_id)


class InvalidParams(ProtocolError):
    def __init__(self, message: str, correlation_id: CorrelationId = None):
        super().__init__(INVALID_PARAMS, message, correlation_id)


def error_status(error: Optional[Exception]) -> int:
    """HTTP status used when an error reaches the HTTP transport.

    An unreadable request body counts as an internal fault.
    """
    if isinstance(error, ParseError):
        return 500
    if isinstance(error, FacebookMCPError):
        return 404
    return 500
