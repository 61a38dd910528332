"""
Tests for the model boundary client
"""

import json
from types import SimpleNamespace

import pytest
from openai import APIConnectionError

from tracechat.agent import ChatModel, ModelBoundaryError, ModelReply, ToolCallRequest
from tracechat.utils.config import ConfigurationError


def completion(content=None, tool_calls=None, choices=True):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message)] if choices else [],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
    )


def function_call(call_id, name, arguments):
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=arguments),
    )


class FakeCompletions:
    def __init__(self, result):
        self.result = result
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def fake_client(result):
    completions = FakeCompletions(result)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


class TestChatModel:
    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError):
            ChatModel(api_key="", model="o4-mini")

    @pytest.mark.asyncio
    async def test_text_reply(self):
        client, completions = fake_client(completion(content="Hello"))
        model = ChatModel(api_key="sk-test", model="o4-mini", client=client)

        reply = await model.complete([{"role": "user", "content": "Hi"}])

        assert reply == ModelReply(content="Hello")
        assert not reply.wants_tools
        assert completions.requests[0] == {
            "model": "o4-mini",
            "messages": [{"role": "user", "content": "Hi"}],
        }

    @pytest.mark.asyncio
    async def test_tool_call_reply(self):
        client, completions = fake_client(completion(tool_calls=[
            function_call("call_1", "search_web", '{"query": "otel"}'),
        ]))
        model = ChatModel(api_key="sk-test", model="o4-mini", client=client)
        tools = [{"type": "function", "function": {"name": "search_web", "parameters": {}}}]

        reply = await model.complete([{"role": "user", "content": "Hi"}], tools=tools, model="gpt-x")

        assert reply.tool_call_requests == [
            ToolCallRequest(id="call_1", name="search_web", arguments_json='{"query": "otel"}')
        ]
        assert completions.requests[0]["tools"] == tools
        assert completions.requests[0]["model"] == "gpt-x"

    @pytest.mark.asyncio
    async def test_missing_message_raises(self):
        client, _ = fake_client(completion(choices=False))
        model = ChatModel(api_key="sk-test", model="o4-mini", client=client)

        with pytest.raises(ModelBoundaryError, match="No message"):
            await model.complete([{"role": "user", "content": "Hi"}])

    @pytest.mark.asyncio
    async def test_api_error_raises(self):
        import httpx

        error = APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))
        client, _ = fake_client(error)
        model = ChatModel(api_key="sk-test", model="o4-mini", client=client)

        with pytest.raises(ModelBoundaryError, match="Model call failed"):
            await model.complete([{"role": "user", "content": "Hi"}])


class TestModelReply:
    def test_assistant_message_with_tool_calls(self):
        reply = ModelReply(
            content=None,
            tool_call_requests=[ToolCallRequest(id="c1", name="search_web", arguments_json="{}")],
        )
        message = reply.to_openai_message()

        assert message["role"] == "assistant"
        assert message["tool_calls"][0] == {
            "id": "c1",
            "type": "function",
            "function": {"name": "search_web", "arguments": "{}"},
        }
        json.dumps(message)

    def test_assistant_message_without_tools(self):
        assert ModelReply(content="hi").to_openai_message() == {"role": "assistant", "content": "hi"}
