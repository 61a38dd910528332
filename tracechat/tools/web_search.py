"""
Web Search Tool
===============

Searches the web through the Tavily search API.

Tavily API Notes:
- Uses httpx for async HTTP requests
- Bearer token auth with TAVILY_API_KEY
- Results carry a relevance score between 0 and 1
"""

from dataclasses import dataclass, asdict

import httpx

from tracechat.tools import ToolError
from tracechat.utils.config import ConfigurationError
from tracechat.utils.logger import Logger

logger = Logger("WebSearch")

TAVILY_SEARCH_URL = "https://api.tavily.com/search"


@dataclass
class SearchResult:
    """One normalized search hit."""
    title: str
    url: str
    snippet: str
    score: float

    def to_dict(self) -> dict:
        return asdict(self)


class WebSearchClient:
    """
    Async client for web search.

    Example:
        client = WebSearchClient(api_key="tvly-...")
        results = await client.search("OpenTelemetry semantic conventions")
    """

    def __init__(
        self,
        api_key: str,
        max_results: int = 10,
        search_depth: str = "basic",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None
    ):
        """
        Initialize the search client.

        Args:
            api_key: Tavily API key
            max_results: Maximum hits per query
            search_depth: "basic" or "advanced"
            timeout: Transport timeout in seconds
            transport: Optional httpx transport (used by tests)

        Raises:
            ConfigurationError: If the API key is empty
        """
        if not api_key:
            raise ConfigurationError("TAVILY_API_KEY environment variable is required")

        self.api_key = api_key
        self.max_results = max_results
        self.search_depth = search_depth
        self.timeout = timeout
        self._transport = transport

    async def search(self, query: str) -> list[SearchResult]:
        """
        Search the web.

        Args:
            query: The search query

        Returns:
            Normalized search results, in the order the API ranked them

        Raises:
            ToolError: On a non-2xx response, timeout, or network failure
        """
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = {
            "query": query,
            "search_depth": self.search_depth,
            "max_results": self.max_results,
            "include_answer": True,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(TAVILY_SEARCH_URL, headers=headers, json=payload)

            if not response.is_success:
                raise ToolError(
                    f"Web search failed: Tavily API error: "
                    f"{response.status_code} {response.reason_phrase}"
                )

            data = response.json()

        except httpx.HTTPError as e:
            logger.error("Search request failed", e)
            raise ToolError(f"Web search failed: {e}") from e
        except ValueError as e:
            raise ToolError(f"Web search failed: invalid JSON response ({e})") from e

        results = [
            SearchResult(
                title=item.get("title", ""),
                url=item.get("url", ""),
                snippet=item.get("content", ""),
                score=float(item.get("score", 0.0)),
            )
            for item in data.get("results", [])
        ]

        logger.debug(f"Search '{query[:50]}' returned {len(results)} results")
        return results
