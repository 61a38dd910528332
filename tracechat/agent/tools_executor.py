"""
Tool Executor
=============

Runs the tools the model asks for.

The executor:
1. Decodes the model's JSON arguments into a typed argument record
2. Dispatches to exactly one capability (search or fetch)
3. Normalizes the capability's output into plain dicts
4. Captures every failure as an unsuccessful ToolResult

The agent loop never sees an exception from here: an unknown tool name,
bad arguments, or a transport failure all come back as
`ToolResult(success=False, error=...)`, so the model can read the error
and adapt.
"""

from typing import Any

from tracechat.tools import (
    FetchWebContentArgs,
    SearchWebArgs,
    ToolArguments,
    ToolError,
    ToolResult,
    TOOL_DEFINITIONS,
    decode_arguments,
    get_openai_tools,
)
from tracechat.tools.web_fetch import WebFetcher
from tracechat.tools.web_search import WebSearchClient
from tracechat.utils.config import Config
from tracechat.utils.logger import Logger

logger = Logger("ToolExecutor")


class ToolExecutor:
    """
    Executes tools called by the model.

    Example:
        executor = ToolExecutor(search=WebSearchClient(api_key), fetcher=WebFetcher())

        result = await executor.execute("search_web", '{"query": "otel collector"}')
        if result.success:
            print(result.data)
    """

    def __init__(self, search: WebSearchClient, fetcher: WebFetcher):
        """
        Initialize the tool executor.

        Args:
            search: Web search client
            fetcher: Web page fetcher
        """
        self.search = search
        self.fetcher = fetcher

    @classmethod
    def from_config(cls, config: Config) -> "ToolExecutor":
        """Build the executor and its clients from application config."""
        return cls(
            search=WebSearchClient(
                api_key=config.tavily.api_key,
                max_results=config.tavily.max_results,
                search_depth=config.tavily.search_depth,
                timeout=config.web.timeout_seconds,
            ),
            fetcher=WebFetcher(
                max_chars=config.web.max_content_chars,
                timeout=config.web.timeout_seconds,
            ),
        )

    def get_tool_schema(self) -> list[dict]:
        """Tool declarations in OpenAI function format."""
        return get_openai_tools()

    def get_available_tools(self) -> list[str]:
        return list(TOOL_DEFINITIONS)

    def has_tool(self, name: str) -> bool:
        return name in TOOL_DEFINITIONS

    async def execute(self, name: str, raw_arguments: str | dict | None) -> ToolResult:
        """
        Decode and run one tool call.

        Args:
            name: The tool name requested by the model
            raw_arguments: The JSON argument string from the model

        Returns:
            ToolResult with normalized data, or the error message
        """
        try:
            arguments = decode_arguments(name, raw_arguments)
            data = await self.dispatch(arguments)

        except ToolError as e:
            logger.warning(f"Tool {name} failed: {e}")
            return ToolResult(success=False, error=str(e))
        except Exception as e:
            logger.error(f"Tool execution failed: {name}", e)
            return ToolResult(success=False, error=str(e) or type(e).__name__)

        logger.debug(f"Tool {name} succeeded")
        return ToolResult(success=True, data=data)

    async def dispatch(self, arguments: ToolArguments) -> Any:
        """
        Run the capability matching a typed argument record.

        Raises:
            ToolError: If the capability fails
        """
        if isinstance(arguments, SearchWebArgs):
            logger.info(f"Searching the web: {arguments.query[:80]}")
            results = await self.search.search(arguments.query)
            return [result.to_dict() for result in results]

        if isinstance(arguments, FetchWebContentArgs):
            logger.info(f"Fetching page: {arguments.url}")
            page = await self.fetcher.fetch(arguments.url)
            return page.to_dict()

        raise ToolError(f"Unknown tool arguments: {type(arguments).__name__}")
