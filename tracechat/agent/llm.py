"""
Model Boundary
==============

Thin wrapper around the OpenAI chat completions API.

`ChatModel.complete()` sends a conversation (and optionally the tool
declarations) and returns a small `ModelReply`: the reply text plus any
tool-call requests. Every call is recorded as an LLM span.

Anything that goes wrong at this boundary (API error, timeout, a response
without a message) is raised as ModelBoundaryError. Callers treat it as
fatal for the current request; there is no retry here.
"""

from dataclasses import dataclass, field

from openai import AsyncOpenAI, OpenAIError

from tracechat.utils.config import ConfigurationError, OpenAIConfig
from tracechat.utils.logger import Logger
from tracechat.utils.tracing import SPAN_TYPE, SpanType, get_tracer, set_span_inputs, set_span_outputs

logger = Logger("ChatModel")


class ModelBoundaryError(RuntimeError):
    """The model call failed or returned an unusable response."""


@dataclass(frozen=True)
class ToolCallRequest:
    """
    A tool invocation requested by the model.

    Attributes:
        id: The tool call ID (for matching results)
        name: The tool name
        arguments_json: Raw JSON argument string, undecoded
    """
    id: str
    name: str
    arguments_json: str


@dataclass(frozen=True)
class ModelReply:
    """The message part of one chat completion."""
    content: str | None = None
    tool_call_requests: list[ToolCallRequest] = field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_call_requests)

    def to_openai_message(self) -> dict:
        """Format as the assistant message to append to the conversation."""
        message: dict = {"role": "assistant", "content": self.content}
        if self.tool_call_requests:
            message["tool_calls"] = [
                {
                    "id": request.id,
                    "type": "function",
                    "function": {
                        "name": request.name,
                        "arguments": request.arguments_json,
                    },
                }
                for request in self.tool_call_requests
            ]
        return message


class ChatModel:
    """
    Async chat-completion client.

    Example:
        model = ChatModel(api_key="sk-...", model="o4-mini")
        reply = await model.complete(messages, tools=tool_schema)

        if reply.wants_tools:
            ...
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        client: AsyncOpenAI | None = None
    ):
        """
        Initialize the model client.

        Args:
            api_key: OpenAI API key
            model: Default model name
            client: Pre-built AsyncOpenAI client (optional)

        Raises:
            ConfigurationError: If no API key is given
        """
        if not api_key and client is None:
            raise ConfigurationError("OPENAI_API_KEY environment variable is required")

        self.model = model
        self.openai = client or AsyncOpenAI(api_key=api_key)
        self._tracer = get_tracer()

    @classmethod
    def from_config(cls, config: OpenAIConfig, model: str | None = None) -> "ChatModel":
        return cls(api_key=config.api_key, model=model or config.model)

    async def complete(
        self,
        messages: list[dict],
        tools: list[dict] | None = None,
        model: str | None = None
    ) -> ModelReply:
        """
        Run one chat completion.

        Args:
            messages: Conversation in OpenAI message format
            tools: Tool declarations; omitted from the request when empty
            model: Override the default model for this call

        Returns:
            The reply text and tool-call requests

        Raises:
            ModelBoundaryError: On API failure or a response without a message
        """
        model_name = model or self.model

        with self._tracer.start_as_current_span("chat.completions.create") as span:
            span.set_attribute(SPAN_TYPE, SpanType.LLM)
            span.set_attribute("llm.model", model_name)
            set_span_inputs(span, {"messages": messages, "tools": [
                tool["function"]["name"] for tool in tools or []
            ]})

            request: dict = {"model": model_name, "messages": messages}
            if tools:
                request["tools"] = tools

            try:
                response = await self.openai.chat.completions.create(**request)
            except OpenAIError as e:
                logger.error(f"Model call failed ({model_name})", e)
                raise ModelBoundaryError(f"Model call failed: {e}") from e

            if not response.choices or response.choices[0].message is None:
                raise ModelBoundaryError("No message in OpenAI response")

            message = response.choices[0].message
            reply = ModelReply(
                content=message.content,
                tool_call_requests=[
                    ToolCallRequest(
                        id=tc.id,
                        name=tc.function.name,
                        arguments_json=tc.function.arguments or "",
                    )
                    for tc in message.tool_calls or []
                ],
            )

            if response.usage is not None:
                span.set_attribute("llm.usage.prompt_tokens", response.usage.prompt_tokens)
                span.set_attribute("llm.usage.completion_tokens", response.usage.completion_tokens)
            set_span_outputs(span, reply.to_openai_message())

        logger.debug(
            f"{model_name} replied with {len(reply.tool_call_requests)} tool call(s)"
        )
        return reply
