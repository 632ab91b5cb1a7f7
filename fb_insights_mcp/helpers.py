"""Formatting helpers and utility functions."""

import json
import re
from typing import Any, Optional, Union

from mcp.types import CallToolResult, TextContent
from pydantic import BaseModel, ValidationError

ERROR_PREFIX = "Erro"

_ID_PATTERN = re.compile(r'"id"\s*:\s*(?:"((?:[^"\\]|\\.)*)"|(-?\d+))')


def dump_json(value: Any, indent: Optional[int] = 2) -> str:
    """Serialize a Graph payload for display, keeping accented text readable."""
    return json.dumps(value, indent=indent, ensure_ascii=False, default=str)


def text_result(text: str, is_error: bool = False) -> CallToolResult:
    """Wrap text as a single-block tool result."""
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)


def error_result(detail: str) -> CallToolResult:
    return text_result(f"{ERROR_PREFIX}: {detail}", is_error=True)


def to_wire(model: BaseModel) -> dict:
    """Plain JSON form of an MCP model, without unset optional fields."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def result_text(result: CallToolResult) -> str:
    """Concatenate the text blocks of a tool result."""
    return "\n".join(block.text for block in result.content if isinstance(block, TextContent))


def format_validation_error(e: ValidationError) -> str:
    """Render a pydantic error as one line per problem, using wire field names."""
    problems = []
    for err in e.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
        problems.append(f"{location}: {err.get('msg', 'invalid value')}")
    return "parâmetros inválidos - " + "; ".join(problems)


def salvage_correlation_id(raw: Union[str, bytes]) -> Optional[Union[str, int]]:
    """Best-effort scan of an unparseable message for its ``"id"`` value."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    match = _ID_PATTERN.search(raw)
    if not match:
        return None
    if match.group(1) is not None:
        return match.group(1)
    return int(match.group(2))
