"""
Agent Core
==========

The research agent: drives the model through iterative tool calls until it
produces an answer.

Agent Loop:
    User Query + Session History
         │
         ▼
    Assemble Context
         │
         ▼
    ┌──► Model Call with Tools (iteration n)
    │        │
    │   ┌─── Has Tool Calls? ───┐
    │   │                       │
    │   Yes                     No
    │   │                       │
    │   ▼                       ▼
    │   Execute Tools      Return Response
    │   (in order)
    │   │
    │   ▼
    │   n == max_iterations? ── Yes ──► Forced Final Call (no tools)
    │   │                                      │
    │   No                                     ▼
    └───┘                                Return Response

A failing tool never stops the run: its error becomes a tool message the
model can react to. A failing model call stops the run and propagates as
ModelBoundaryError.

The whole run is one AGENT span; each model call and each tool call is a
child span, so one trace shows the full research path.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Sequence

from opentelemetry import trace

from tracechat.agent.context import ContextAssembler
from tracechat.agent.llm import ChatModel, ToolCallRequest
from tracechat.agent.tools_executor import ToolExecutor
from tracechat.memory.session_store import Message
from tracechat.utils.config import Config
from tracechat.utils.logger import Logger
from tracechat.utils.tracing import (
    SPAN_TYPE,
    SpanType,
    format_trace_id,
    get_tracer,
    mark_span_error,
    set_span_inputs,
    set_span_outputs,
)

logger = Logger("Agent")

ToolCallStatus = Literal["running", "completed", "error"]


@dataclass(frozen=True)
class ToolCall:
    """
    A tool invocation made during a run.

    Attributes:
        id: The model's tool call ID
        name: The tool name
        arguments: Parsed arguments (empty if the model sent invalid JSON)
        result: Tool output on success
        error: Error message on failure
    """
    id: str
    name: str
    arguments: dict[str, Any]
    result: Any = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
            "result": self.result,
            "error": self.error,
        }


@dataclass(frozen=True)
class ToolCallEvent:
    """Progress notification sent to the observer for each tool call."""
    id: str
    name: str
    arguments: dict[str, Any]
    status: ToolCallStatus
    result: Any = None
    error: str | None = None


ToolCallObserver = Callable[[ToolCallEvent], Any]


@dataclass
class AgentResponse:
    """
    Outcome of one agent run.

    Attributes:
        content: The final answer text
        tool_calls: Every tool call made, in order
        reasoning: A generated summary of the research effort
        trace_id: Trace id of the run's root span
        iterations: Number of tool-enabled model calls made
    """
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    reasoning: str = ""
    trace_id: str = ""
    iterations: int = 0


def _parse_arguments(arguments_json: str) -> dict[str, Any]:
    """Best-effort parse for the tool call record; validation happens in the executor."""
    try:
        parsed = json.loads(arguments_json or "{}")
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _reasoning(tool_count: int, iterations: int) -> str:
    return (
        f"Completed research using {tool_count} tool(s) across "
        f"{iterations} iteration(s) to provide a comprehensive response."
    )


class ResearchAgent:
    """
    The agent that answers research queries.

    Example:
        agent = ResearchAgent.from_config(get_config())

        response = await agent.run(
            query="How does OTLP batching work?",
            chat_history=store.get_messages(session_id),
            on_tool_call=lambda event: print(event.name, event.status),
        )
        print(response.content)
    """

    # Reference behavior: five tool-enabled model calls, then a forced answer
    DEFAULT_MAX_ITERATIONS = 5

    def __init__(
        self,
        model: ChatModel,
        tool_executor: ToolExecutor,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        final_model: str | None = None,
        context_assembler: ContextAssembler | None = None,
        tracer: trace.Tracer | None = None
    ):
        """
        Initialize the agent.

        Args:
            model: Model boundary client
            tool_executor: Executor for the research tools
            max_iterations: Cap on tool-enabled model calls per run
            final_model: Model for the forced final answer (defaults to the model's own)
            context_assembler: Builds the initial conversation buffer
            tracer: OpenTelemetry tracer (defaults to the global provider's)
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        self.model = model
        self.tool_executor = tool_executor
        self.max_iterations = max_iterations
        self.final_model = final_model
        self.context_assembler = context_assembler or ContextAssembler()
        self._tracer = tracer or get_tracer()

        logger.info(f"Agent initialized (max {max_iterations} iterations)")

    @classmethod
    def from_config(cls, config: Config) -> "ResearchAgent":
        """
        Build the agent and its collaborators from application config.

        Raises:
            ConfigurationError: If an API credential is missing
        """
        return cls(
            model=ChatModel.from_config(config.openai),
            tool_executor=ToolExecutor.from_config(config),
            max_iterations=config.agent.max_iterations,
            final_model=config.openai.final_model,
        )

    async def run(
        self,
        query: str,
        chat_history: Sequence[Message] = (),
        on_tool_call: ToolCallObserver | None = None
    ) -> AgentResponse:
        """
        Answer a query, calling tools as the model requests them.

        Args:
            query: The user's message
            chat_history: Earlier turns of the session, oldest first
            on_tool_call: Observer notified as each tool call starts and finishes

        Returns:
            AgentResponse with the answer and the tool-call record

        Raises:
            ModelBoundaryError: If any model call fails
        """
        with self._tracer.start_as_current_span("ResearchAgent") as span:
            span.set_attribute(SPAN_TYPE, SpanType.AGENT)
            set_span_inputs(span, {"query": query})

            response = await self._run_loop(query, chat_history, on_tool_call)
            response.trace_id = format_trace_id(span)

            set_span_outputs(span, {
                "content": response.content,
                "tool_calls": len(response.tool_calls),
                "iterations": response.iterations,
            })

        return response

    async def _run_loop(
        self,
        query: str,
        chat_history: Sequence[Message],
        on_tool_call: ToolCallObserver | None
    ) -> AgentResponse:
        logger.info(f"Running research query: {query[:50]}...")

        tools = self.tool_executor.get_tool_schema()
        messages = self.context_assembler.assemble(query, chat_history).to_openai_messages()
        tool_calls: list[ToolCall] = []

        for iteration in range(1, self.max_iterations + 1):
            logger.debug(f"Iteration {iteration}")

            reply = await self.model.complete(messages, tools=tools)
            messages.append(reply.to_openai_message())

            if not reply.wants_tools:
                logger.info(
                    f"Answered with {len(tool_calls)} tool call(s) in {iteration} iteration(s)"
                )
                return AgentResponse(
                    content=reply.content or "",
                    tool_calls=tool_calls,
                    reasoning=_reasoning(len(tool_calls), iteration),
                    iterations=iteration,
                )

            for request in reply.tool_call_requests:
                call = await self._execute_tool_call(request, messages, on_tool_call)
                tool_calls.append(call)

        logger.warning("Reached max tool iterations, forcing a final answer")
        content = await self._final_answer(messages)

        return AgentResponse(
            content=content,
            tool_calls=tool_calls,
            reasoning=_reasoning(len(tool_calls), self.max_iterations),
            iterations=self.max_iterations,
        )

    async def _execute_tool_call(
        self,
        request: ToolCallRequest,
        messages: list[dict],
        on_tool_call: ToolCallObserver | None
    ) -> ToolCall:
        """Run one requested tool and fold its outcome into the conversation."""
        arguments = _parse_arguments(request.arguments_json)
        self._notify(on_tool_call, ToolCallEvent(
            id=request.id, name=request.name, arguments=arguments, status="running"
        ))

        with self._tracer.start_as_current_span(request.name) as span:
            span.set_attribute(SPAN_TYPE, SpanType.TOOL)
            set_span_inputs(span, {"id": request.id, "arguments": request.arguments_json})

            result = await self.tool_executor.execute(request.name, request.arguments_json)

            if result.success:
                set_span_outputs(span, result.data)
            else:
                mark_span_error(span, result.error or "tool failed")

        messages.append({
            "role": "tool",
            "tool_call_id": request.id,
            "content": result.to_message(),
        })

        call = ToolCall(
            id=request.id,
            name=request.name,
            arguments=arguments,
            result=result.data if result.success else None,
            error=None if result.success else (result.error or "Unknown error"),
        )

        self._notify(on_tool_call, ToolCallEvent(
            id=call.id,
            name=call.name,
            arguments=call.arguments,
            status="error" if call.error else "completed",
            result=call.result,
            error=call.error,
        ))
        return call

    async def _final_answer(self, messages: list[dict]) -> str:
        """One tool-free call asking the model to wrap up its research."""
        final_messages = messages + [self.context_assembler.final_answer_request()]
        reply = await self.model.complete(final_messages, model=self.final_model)
        return reply.content or ""

    @staticmethod
    def _notify(observer: ToolCallObserver | None, event: ToolCallEvent) -> None:
        if observer is None:
            return
        try:
            observer(event)
        except Exception as e:
            logger.error(f"Tool call observer failed for {event.name}", e)
