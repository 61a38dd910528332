"""
Web Fetch Tool
==============

Downloads a web page and reduces it to plain text the model can read.

Extraction is best-effort, on BeautifulSoup:
1. Drop <script> and <style> elements
2. Join the remaining text nodes with spaces (entities decoded)
3. Collapse whitespace
4. Truncate to a character budget, marking the cut with "..."
"""

import re
from dataclasses import dataclass, asdict

import httpx
from bs4 import BeautifulSoup

from tracechat.tools import ToolError
from tracechat.utils.logger import Logger

logger = Logger("WebFetch")

USER_AGENT = "Mozilla/5.0 (compatible; WebResearchBot/1.0)"
DEFAULT_MAX_CHARS = 10000
UNTITLED = "Untitled Page"

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class WebPage:
    """Readable content extracted from one URL."""
    url: str
    title: str
    extracted_text: str
    word_count: int

    def to_dict(self) -> dict:
        return asdict(self)


def extract_text(html: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """
    Strip markup from an HTML document.

    Args:
        html: Raw HTML
        max_chars: Character budget; longer text is cut and suffixed with "..."

    Returns:
        Whitespace-normalized plain text
    """
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.select("script, style"):
        element.decompose()

    text = _WHITESPACE_RE.sub(" ", soup.get_text(" ")).strip()

    if len(text) > max_chars:
        return text[:max_chars] + "..."
    return text


def extract_title(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text().strip() if soup.title else ""
    return title or UNTITLED


def count_words(text: str) -> int:
    return len(text.split())


class WebFetcher:
    """
    Async page fetcher.

    Example:
        fetcher = WebFetcher()
        page = await fetcher.fetch("https://opentelemetry.io/docs/")
        print(page.title, page.word_count)
    """

    def __init__(
        self,
        max_chars: int = DEFAULT_MAX_CHARS,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None
    ):
        self.max_chars = max_chars
        self.timeout = timeout
        self._transport = transport

    async def fetch(self, url: str) -> WebPage:
        """
        Fetch a page and extract its text and title.

        Args:
            url: HTTP(S) URL of the page

        Returns:
            The extracted page

        Raises:
            ToolError: On a non-2xx response, timeout, or network failure
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url, headers={"User-Agent": USER_AGENT})

        except httpx.HTTPError as e:
            logger.error(f"Fetch failed: {url}", e)
            raise ToolError(f"Failed to fetch content from {url}: {e}") from e

        if not response.is_success:
            raise ToolError(
                f"Failed to fetch content from {url}: "
                f"HTTP {response.status_code}: {response.reason_phrase}"
            )

        html = response.text
        text = extract_text(html, self.max_chars)

        page = WebPage(
            url=url,
            title=extract_title(html),
            extracted_text=text,
            word_count=count_words(text),
        )
        logger.debug(f"Fetched {url} ({page.word_count} words)")
        return page
