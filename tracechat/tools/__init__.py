"""
Research Tools
==============

The fixed set of capabilities the research agent may call:

- search_web: search the web for a query (Tavily search API)
- fetch_web_content: download a page and extract its readable text

Each tool has a name, a description shown to the model, a JSON Schema for
its parameters, and a typed argument record. The model sends arguments as
a JSON string; `decode_arguments()` turns that string into the matching
record or raises ToolError, so a malformed request never reaches a client.

This module provides:
- ToolError for capability and argument failures
- ToolResult for standardized responses
- SearchWebArgs / FetchWebContentArgs, the tagged union of tool arguments
- ToolDefinition and the TOOL_DEFINITIONS registry
"""

import json
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urlparse


class ToolError(Exception):
    """A tool could not produce a result (bad arguments, transport failure)."""


@dataclass
class ToolResult:
    """
    Standardized result from tool execution.

    Attributes:
        success: Whether the tool executed successfully
        data: The result data (varies by tool)
        error: Error message if success is False
    """
    success: bool
    data: Any = None
    error: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error
        }

    def to_message(self) -> str:
        """Format as the content of a tool message for the model."""
        if self.success:
            return json.dumps(self.data, indent=2, default=str)
        else:
            return f"Error: {self.error}"


# ==============================================================================
# Tool arguments
# ==============================================================================

@dataclass(frozen=True)
class SearchWebArgs:
    query: str


@dataclass(frozen=True)
class FetchWebContentArgs:
    url: str


ToolArguments = SearchWebArgs | FetchWebContentArgs


def _require_string(tool: str, params: dict, key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ToolError(f"Invalid arguments for {tool}: '{key}' must be a non-empty string")
    return value.strip()


def _decode_search_web(params: dict) -> SearchWebArgs:
    return SearchWebArgs(query=_require_string("search_web", params, "query"))


def _decode_fetch_web_content(params: dict) -> FetchWebContentArgs:
    url = _require_string("fetch_web_content", params, "url")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ToolError(f"Invalid arguments for fetch_web_content: not an HTTP(S) URL: {url}")
    return FetchWebContentArgs(url=url)


# ==============================================================================
# Tool definitions
# ==============================================================================

@dataclass(frozen=True)
class ToolDefinition:
    """
    Definition of a tool the model can call.

    Attributes:
        name: Unique identifier for the tool
        description: What the tool does (shown to the model)
        parameters: JSON Schema for the parameters
        decode: Turns the parsed parameter dict into a typed argument record
    """
    name: str
    description: str
    parameters: dict
    decode: Callable[[dict], ToolArguments]

    def to_openai_function(self) -> dict:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters
            }
        }


SEARCH_WEB = ToolDefinition(
    name="search_web",
    description=(
        "Search the web for information on a given topic. Use this to find current "
        "information, news, articles, or any web-based content related to the user's query."
    ),
    parameters={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": (
                    "The search query to find relevant information. Be specific and use "
                    "keywords that will yield the best results."
                ),
            }
        },
        "required": ["query"],
    },
    decode=_decode_search_web,
)

FETCH_WEB_CONTENT = ToolDefinition(
    name="fetch_web_content",
    description=(
        "Fetch and extract content from a specific web page URL. Use this to get detailed "
        "content from web pages found in search results."
    ),
    parameters={
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "description": (
                    "The URL of the web page to fetch content from. "
                    "Must be a valid HTTP/HTTPS URL."
                ),
            }
        },
        "required": ["url"],
    },
    decode=_decode_fetch_web_content,
)

TOOL_DEFINITIONS: dict[str, ToolDefinition] = {
    tool.name: tool for tool in (SEARCH_WEB, FETCH_WEB_CONTENT)
}


def get_openai_tools() -> list[dict]:
    """All tools in OpenAI function format."""
    return [tool.to_openai_function() for tool in TOOL_DEFINITIONS.values()]


def decode_arguments(name: str, raw: str | dict | None) -> ToolArguments:
    """
    Decode a model's tool-call arguments into a typed record.

    Args:
        name: The tool name requested by the model
        raw: JSON argument string (or an already-parsed dict)

    Returns:
        The typed argument record for that tool

    Raises:
        ToolError: Unknown tool, malformed JSON, or wrong argument shape
    """
    tool = TOOL_DEFINITIONS.get(name)
    if tool is None:
        raise ToolError(f"Unknown tool: {name}")

    if isinstance(raw, dict):
        params = raw
    else:
        try:
            params = json.loads(raw or "{}")
        except json.JSONDecodeError as e:
            raise ToolError(f"Invalid arguments for {name}: malformed JSON ({e.msg})") from e

    if not isinstance(params, dict):
        raise ToolError(f"Invalid arguments for {name}: expected a JSON object")

    return tool.decode(params)


__all__ = [
    "ToolError",
    "ToolResult",
    "SearchWebArgs",
    "FetchWebContentArgs",
    "ToolArguments",
    "ToolDefinition",
    "TOOL_DEFINITIONS",
    "get_openai_tools",
    "decode_arguments",
]
