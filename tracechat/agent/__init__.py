"""
Agent System
============

The research agent answers a query by looping between the model and the
web tools until the model stops asking for tools or the iteration cap is
reached.

This module provides:
- ResearchAgent: The agent loop
- ChatModel: The model boundary (OpenAI chat completions)
- ContextAssembler: Builds the conversation buffer for a run
- ToolExecutor: Decodes and runs tool calls
"""

from tracechat.agent.core import AgentResponse, ResearchAgent, ToolCall, ToolCallEvent
from tracechat.agent.context import ContextAssembler
from tracechat.agent.llm import ChatModel, ModelBoundaryError, ModelReply, ToolCallRequest
from tracechat.agent.tools_executor import ToolExecutor

__all__ = [
    "AgentResponse",
    "ResearchAgent",
    "ToolCall",
    "ToolCallEvent",
    "ContextAssembler",
    "ChatModel",
    "ModelBoundaryError",
    "ModelReply",
    "ToolCallRequest",
    "ToolExecutor",
]
