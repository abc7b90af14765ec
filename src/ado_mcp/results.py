"""Tool result envelope helpers.

Every tool returns an ``mcp.types.CallToolResult`` holding a single text
content item. ``isError`` is set only for failures a handler chose to report
inline instead of raising.
"""
import json
from typing import Any

from mcp.types import CallToolResult, TextContent

UNKNOWN_ERROR = "Unknown error occurred"


def text_result(text: str) -> CallToolResult:
    """Successful result carrying plain text."""
    return CallToolResult(content=[TextContent(type="text", text=text)])


def json_result(payload: Any) -> CallToolResult:
    """Successful result carrying ``payload`` serialized as indented JSON."""
    return text_result(to_json(payload))


def error_result(text: str) -> CallToolResult:
    """Failed result; the text is shown to the agent as-is."""
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=True)


def to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


def error_message(error: BaseException) -> str:
    """Human-readable message for ``error``, never empty."""
    message = str(error).strip()
    return message or UNKNOWN_ERROR


def result_text(result: CallToolResult) -> str:
    """Concatenated text of a result's content items."""
    return "".join(item.text for item in result.content if isinstance(item, TextContent))
