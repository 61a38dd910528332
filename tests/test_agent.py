"""
Tests for the research agent loop

Verifies:
1. Direct answers finish in one iteration
2. Tool calls are executed in order and folded into the conversation
3. Tool failures are recorded without ending the run
4. The iteration cap forces exactly one tool-free final call
5. Model failures propagate
6. Spans and observer notifications
"""

import json

import pytest

from tracechat.agent import ModelBoundaryError, ResearchAgent, ToolExecutor
from tracechat.agent.context import FINAL_ANSWER_PROMPT, SYSTEM_PROMPT
from tracechat.memory.session_store import Message
from tracechat.utils.tracing import SPAN_TYPE

from tests.conftest import FakeFetcher, FakeSearch, ScriptedModel, text_reply, tool_reply


def make_agent(model, executor, tracer=None, **kwargs) -> ResearchAgent:
    return ResearchAgent(model=model, tool_executor=executor, tracer=tracer, **kwargs)


class TestDirectAnswer:
    @pytest.mark.asyncio
    async def test_no_tool_calls_returns_in_one_iteration(self, executor):
        model = ScriptedModel([text_reply("X helps with distributed tracing.")])
        agent = make_agent(model, executor)

        response = await agent.run("What does X help with?")

        assert response.content == "X helps with distributed tracing."
        assert response.tool_calls == []
        assert response.iterations == 1
        assert "using 0 tool(s) across 1 iteration(s)" in response.reasoning
        assert len(model.calls) == 1

    @pytest.mark.asyncio
    async def test_buffer_has_system_history_and_query(self, executor):
        model = ScriptedModel([text_reply("ok")])
        agent = make_agent(model, executor)
        history = [Message(role="user", content="Hi"), Message(role="assistant", content="Hello!")]

        await agent.run("And now?", history)

        messages = model.calls[0]["messages"]
        assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert messages[1:] == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
            {"role": "user", "content": "And now?"},
        ]
        assert [t["function"]["name"] for t in model.calls[0]["tools"]] == [
            "search_web", "fetch_web_content"
        ]

    @pytest.mark.asyncio
    async def test_empty_content_becomes_empty_string(self, executor):
        agent = make_agent(ScriptedModel([text_reply(None)]), executor)
        response = await agent.run("?")
        assert response.content == ""


class TestToolIterations:
    @pytest.mark.asyncio
    async def test_tool_results_fold_into_conversation(self, executor, fake_search, fake_fetcher):
        model = ScriptedModel([
            tool_reply(
                ("call_1", "search_web", '{"query": "otel"}'),
                ("call_2", "fetch_web_content", '{"url": "https://opentelemetry.io"}'),
            ),
            text_reply("OpenTelemetry is a telemetry framework."),
        ])
        agent = make_agent(model, executor)

        response = await agent.run("What is OpenTelemetry?")

        assert response.content == "OpenTelemetry is a telemetry framework."
        assert response.iterations == 2
        assert [call.id for call in response.tool_calls] == ["call_1", "call_2"]
        assert response.tool_calls[0].arguments == {"query": "otel"}
        assert response.tool_calls[0].result[0]["title"] == "OpenTelemetry"
        assert response.tool_calls[1].result["title"] == "Docs"
        assert all(call.error is None for call in response.tool_calls)
        assert "using 2 tool(s) across 2 iteration(s)" in response.reasoning

        second_call = model.calls[1]["messages"]
        assistant, first_tool, second_tool = second_call[-3:]
        assert assistant["role"] == "assistant"
        assert [tc["id"] for tc in assistant["tool_calls"]] == ["call_1", "call_2"]
        assert first_tool["role"] == "tool" and first_tool["tool_call_id"] == "call_1"
        assert second_tool["role"] == "tool" and second_tool["tool_call_id"] == "call_2"
        assert json.loads(first_tool["content"])[0]["url"] == "https://opentelemetry.io"

    @pytest.mark.asyncio
    async def test_tool_failure_does_not_end_run(self):
        executor = ToolExecutor(
            search=FakeSearch(error="Web search failed: Tavily API error: 503"),
            fetcher=FakeFetcher(),
        )
        model = ScriptedModel([
            tool_reply(("call_1", "search_web", '{"query": "otel"}')),
            text_reply("Search was unavailable, but here is what I know."),
        ])
        agent = make_agent(model, executor)

        response = await agent.run("What is OpenTelemetry?")

        assert len(model.calls) == 2
        assert response.content == "Search was unavailable, but here is what I know."
        assert len(response.tool_calls) == 1
        assert response.tool_calls[0].error
        assert response.tool_calls[0].result is None

        tool_message = model.calls[1]["messages"][-1]
        assert tool_message["content"].startswith("Error: ")

    @pytest.mark.asyncio
    async def test_unknown_tool_becomes_error_message(self, executor):
        model = ScriptedModel([
            tool_reply(("call_x", "delete_everything", "{}")),
            text_reply("I can't do that."),
        ])
        agent = make_agent(model, executor)

        response = await agent.run("Clean up")

        assert response.tool_calls[0].name == "delete_everything"
        assert response.tool_calls[0].error == "Unknown tool: delete_everything"
        tool_message = model.calls[1]["messages"][-1]
        assert tool_message == {
            "role": "tool",
            "tool_call_id": "call_x",
            "content": "Error: Unknown tool: delete_everything",
        }

    @pytest.mark.asyncio
    async def test_malformed_arguments_are_a_tool_error(self, executor, fake_search):
        model = ScriptedModel([
            tool_reply(("call_1", "search_web", '{"query": ')),
            text_reply("done"),
        ])
        agent = make_agent(model, executor)

        response = await agent.run("?")

        assert response.tool_calls[0].arguments == {}
        assert "malformed JSON" in response.tool_calls[0].error
        assert fake_search.queries == []


class TestIterationCap:
    @pytest.mark.asyncio
    async def test_always_wanting_tools_forces_final_call(self, executor, fake_search):
        model = ScriptedModel([
            tool_reply(("call", "search_web", '{"query": "more"}')),
            tool_reply(("call", "search_web", '{"query": "more"}')),
            tool_reply(("call", "search_web", '{"query": "more"}')),
            text_reply("Final synthesized answer."),
        ])
        agent = make_agent(model, executor, max_iterations=3, final_model="gpt-final")

        response = await agent.run("Research everything")

        assert len(model.calls) == 3 + 1
        assert len(fake_search.queries) == 3
        assert response.content == "Final synthesized answer."
        assert response.iterations == 3
        assert len(response.tool_calls) == 3
        assert "using 3 tool(s) across 3 iteration(s)" in response.reasoning

        final = model.calls[-1]
        assert final["tools"] is None
        assert final["model"] == "gpt-final"
        assert final["messages"][-1] == {"role": "user", "content": FINAL_ANSWER_PROMPT}

    @pytest.mark.asyncio
    async def test_default_cap_is_five(self, executor):
        model = ScriptedModel([
            tool_reply(("call", "search_web", '{"query": "more"}')),
        ])
        agent = make_agent(model, executor)

        response = await agent.run("Loop forever")

        assert agent.max_iterations == 5
        assert len(model.calls) == 6
        assert len(response.tool_calls) == 5

    def test_rejects_zero_iterations(self, executor):
        with pytest.raises(ValueError):
            make_agent(ScriptedModel([text_reply("x")]), executor, max_iterations=0)


class TestModelFailure:
    @pytest.mark.asyncio
    async def test_model_error_propagates(self, executor):
        model = ScriptedModel([ModelBoundaryError("No message in OpenAI response")])
        agent = make_agent(model, executor)

        with pytest.raises(ModelBoundaryError):
            await agent.run("?")

    @pytest.mark.asyncio
    async def test_model_error_mid_run_propagates(self, executor, fake_search):
        model = ScriptedModel([
            tool_reply(("call_1", "search_web", '{"query": "otel"}')),
            ModelBoundaryError("Model call failed: 500"),
        ])
        agent = make_agent(model, executor)

        with pytest.raises(ModelBoundaryError, match="500"):
            await agent.run("?")
        assert fake_search.queries == ["otel"]


class TestObserver:
    @pytest.mark.asyncio
    async def test_events_for_each_tool_call(self, fake_search):
        executor = ToolExecutor(search=fake_search, fetcher=FakeFetcher(error="HTTP 500"))
        model = ScriptedModel([
            tool_reply(
                ("call_1", "search_web", '{"query": "otel"}'),
                ("call_2", "fetch_web_content", '{"url": "https://example.com"}'),
            ),
            text_reply("done"),
        ])
        events = []
        agent = make_agent(model, executor)

        await agent.run("?", on_tool_call=events.append)

        assert [(e.id, e.status) for e in events] == [
            ("call_1", "running"),
            ("call_1", "completed"),
            ("call_2", "running"),
            ("call_2", "error"),
        ]
        assert events[0].arguments == {"query": "otel"}
        assert events[3].error == "HTTP 500"

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_affect_run(self, executor):
        def observer(event):
            raise RuntimeError("ui disconnected")

        model = ScriptedModel([
            tool_reply(("call_1", "search_web", '{"query": "otel"}')),
            text_reply("done"),
        ])
        agent = make_agent(model, executor)

        response = await agent.run("?", on_tool_call=observer)

        assert response.content == "done"
        assert response.tool_calls[0].error is None


class TestTracing:
    @pytest.mark.asyncio
    async def test_run_and_tool_spans(self, executor, tracer, span_exporter):
        model = ScriptedModel([
            tool_reply(("call_1", "search_web", '{"query": "otel"}')),
            tool_reply(("call_2", "delete_everything", "{}")),
            text_reply("done"),
        ])
        agent = make_agent(model, executor, tracer=tracer)

        response = await agent.run("What is OTLP?")

        spans = {span.name: span for span in span_exporter.get_finished_spans()}
        root = spans["ResearchAgent"]
        search = spans["search_web"]
        unknown = spans["delete_everything"]

        assert root.attributes[SPAN_TYPE] == "AGENT"
        assert json.loads(root.attributes["tracechat.inputs"]) == {"query": "What is OTLP?"}
        assert search.attributes[SPAN_TYPE] == "TOOL"
        assert search.parent.span_id == root.context.span_id
        assert not unknown.status.is_ok

        assert response.trace_id == format(root.context.trace_id, "032x")
        assert len(response.trace_id) == 32

    @pytest.mark.asyncio
    async def test_failed_run_records_error(self, executor, tracer, span_exporter):
        agent = make_agent(ScriptedModel([ModelBoundaryError("down")]), executor, tracer=tracer)

        with pytest.raises(ModelBoundaryError):
            await agent.run("?")

        root = span_exporter.get_finished_spans()[-1]
        assert root.name == "ResearchAgent"
        assert not root.status.is_ok
        assert root.events[0].name == "exception"
