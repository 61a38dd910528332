"""
Request Handlers
================

Service objects behind the HTTP routes.

ChatService (research chatbot), one turn:
    1. Resolve the session (unknown or expired ids get a fresh session)
    2. Load the session's history
    3. Run the research agent
    4. Save the user query and the answer to the session
    5. Return the answer envelope, or {"error": ...} on failure

BasicChatService (minimal chat endpoint):
    One system prompt + one user message, one model call, traced with the
    caller's session and user ids.

Both wrap their work in a CHAIN span so every request is one trace.
"""

from datetime import datetime
from typing import Any

from opentelemetry import trace

from tracechat.agent import ChatModel, ResearchAgent, ToolCallEvent
from tracechat.agent.core import ToolCallObserver
from tracechat.memory import SessionStore
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

logger = Logger("Handlers")

BASIC_SYSTEM_PROMPT = "You are a helpful assistant."
BASIC_CHAT_ERROR = "Failed to process chat message"
RESEARCH_ERROR = "Failed to process research query"


def log_tool_event(event: ToolCallEvent) -> None:
    """Default observer: report tool progress in the server log."""
    arguments = ", ".join(f"{k}={v!r}" for k, v in event.arguments.items())
    if event.status == "running":
        logger.info(f"Model is calling {event.name}({arguments})")
    elif event.status == "error":
        logger.warning(f"{event.name} failed: {event.error}")
    else:
        logger.info(f"{event.name} completed")


class ChatService:
    """
    Runs research chat turns against the session store.

    Example:
        service = ChatService(agent, store)
        reply = await service.handle_query("What is OTLP?", session_id=None)
        reply["sessionId"]   # use this id for the next turn
    """

    def __init__(self, agent: ResearchAgent, sessions: SessionStore, tracer: trace.Tracer | None = None):
        self.agent = agent
        self.sessions = sessions
        self._tracer = tracer or get_tracer()

    def start_session(self) -> str:
        """Create an empty session for a new chat."""
        return self.sessions.create_session()

    async def handle_query(
        self,
        message: str,
        session_id: str | None = None,
        on_tool_call: ToolCallObserver | None = log_tool_event
    ) -> dict[str, Any]:
        """
        Process one research chat turn.

        Args:
            message: The user's message
            session_id: Existing session id, if any
            on_tool_call: Observer for live tool progress

        Returns:
            {"id", "content", "reasoning", "toolCallCount", "traceId", "sessionId"}
            on success, {"error": message} on failure
        """
        with self._tracer.start_as_current_span("research-query") as span:
            span.set_attribute(SPAN_TYPE, SpanType.CHAIN)
            set_span_inputs(span, {"message": message, "sessionId": session_id})

            logger.info(f"Received research query (session: {session_id})")

            try:
                if not session_id or self.sessions.get_session(session_id) is None:
                    session_id = self.sessions.create_session()

                span.set_attribute("session.id", session_id)

                history = self.sessions.get_messages(session_id)
                logger.debug(f"Retrieved {len(history)} messages from session history")

                result = await self.agent.run(message, history, on_tool_call)

                self.sessions.add_message(session_id, "user", message)
                self.sessions.add_message(session_id, "assistant", result.content)

            except Exception as e:
                logger.error("Error processing research query", e)
                span.record_exception(e)
                mark_span_error(span, str(e) or RESEARCH_ERROR)
                return {"error": str(e) or RESEARCH_ERROR}

            reply = {
                "id": int(datetime.now().timestamp() * 1000),
                "content": result.content,
                "reasoning": result.reasoning,
                "toolCallCount": len(result.tool_calls),
                "traceId": result.trace_id or format_trace_id(span),
                "sessionId": session_id,
            }
            set_span_outputs(span, reply)
            return reply


class BasicChatService:
    """
    The minimal chat endpoint: a single traced model call per request.
    """

    def __init__(self, model: ChatModel, system_prompt: str = BASIC_SYSTEM_PROMPT):
        self.model = model
        self.system_prompt = system_prompt
        self._tracer = get_tracer()

    async def process_chat(self, message: str, user_id: str, session_id: str) -> str:
        """
        Answer one message.

        Raises:
            ModelBoundaryError: If the model call fails
        """
        with self._tracer.start_as_current_span("process-chat") as span:
            span.set_attribute(SPAN_TYPE, SpanType.CHAIN)
            span.set_attribute("session.id", session_id)
            span.set_attribute("user.id", user_id)
            set_span_inputs(span, {"message": message})

            reply = await self.model.complete([
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": message},
            ])

            content = reply.content or ""
            set_span_outputs(span, {"response": content})
            return content
