"""Shared fixtures: scripted model, fake web clients, in-memory span capture."""

from datetime import datetime, timedelta

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from tracechat.agent import ModelReply, ToolCallRequest, ToolExecutor
from tracechat.tools import ToolError
from tracechat.tools.web_fetch import WebPage
from tracechat.tools.web_search import SearchResult


class FakeClock:
    """Manually advanced clock for session expiry tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class ScriptedModel:
    """
    Stands in for ChatModel.

    Replies are taken from `replies` in order; the last one repeats once the
    script runs out. An Exception in the script is raised instead of returned.
    """

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def complete(self, messages, tools=None, model=None):
        self.calls.append({"messages": list(messages), "tools": tools, "model": model})
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        reply = self.replies[index]
        if isinstance(reply, Exception):
            raise reply
        return reply


def tool_reply(*requests: tuple[str, str, str]) -> ModelReply:
    """A reply asking for tools: each request is (id, name, arguments_json)."""
    return ModelReply(
        content=None,
        tool_call_requests=[ToolCallRequest(id=i, name=n, arguments_json=a) for i, n, a in requests],
    )


def text_reply(content: str) -> ModelReply:
    return ModelReply(content=content)


class FakeSearch:
    def __init__(self, results=None, error: str | None = None):
        self.results = results if results is not None else [
            SearchResult(
                title="OpenTelemetry",
                url="https://opentelemetry.io",
                snippet="High-quality, ubiquitous, and portable telemetry.",
                score=0.98,
            )
        ]
        self.error = error
        self.queries: list[str] = []

    async def search(self, query: str):
        self.queries.append(query)
        if self.error:
            raise ToolError(self.error)
        return self.results


class FakeFetcher:
    def __init__(self, error: str | None = None):
        self.error = error
        self.urls: list[str] = []

    async def fetch(self, url: str):
        self.urls.append(url)
        if self.error:
            raise ToolError(self.error)
        return WebPage(url=url, title="Docs", extracted_text="Traces and spans", word_count=3)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_search():
    return FakeSearch()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def executor(fake_search, fake_fetcher):
    return ToolExecutor(search=fake_search, fetcher=fake_fetcher)


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer(span_exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider.get_tracer("tracechat.tests")
