"""Response envelopes for MCP tool results.

Every tool call produces exactly one ToolResult: either a success carrying
text (usually pretty-printed JSON) or an error carrying a message. The
dispatcher converts it to the protocol's CallToolResult.
"""
import json
from dataclasses import dataclass
from typing import Any, Optional

from mcp.types import CallToolResult, TextContent


@dataclass(frozen=True)
class ToolResult:
    """A tool outcome before it is framed for the wire."""

    text: str
    is_error: bool = False


def ok(text: str) -> ToolResult:
    return ToolResult(text=text)


def ok_json(payload: Any) -> ToolResult:
    """Success result with ``payload`` serialized as indented JSON."""
    return ToolResult(text=json.dumps(payload, indent=2, ensure_ascii=False))


def err(message: str, kind: Optional[str] = None) -> ToolResult:
    """Error result. ``kind`` is the error kind (invalid-argument, rate-limited, ...)."""
    text = f"Error [{kind}]: {message}" if kind else f"Error: {message}"
    return ToolResult(text=text, is_error=True)


def to_call_tool_result(result: ToolResult) -> CallToolResult:
    return CallToolResult(
        content=[TextContent(type="text", text=result.text)],
        isError=result.is_error,
    )
