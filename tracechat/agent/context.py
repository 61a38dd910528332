"""
Context Assembly
================

Builds the conversation buffer for one agent run:

    [system prompt] + [session history] + [current user query]

The buffer is in OpenAI message format. It grows during the run as
assistant and tool messages are appended, and is thrown away afterwards;
only the user query and final answer are saved back to the session.
"""

from dataclasses import dataclass, field
from typing import Sequence

from tracechat.memory.session_store import Message
from tracechat.utils.logger import Logger

logger = Logger("Context")


SYSTEM_PROMPT = """You are a web research assistant with access to real-time web search and content analysis tools.

Your goal is to provide comprehensive, accurate, and up-to-date information by:
1. Analyzing the user's query to understand what information they need
2. Using available tools strategically to gather relevant data
3. Continue using tools iteratively until you have enough information to provide a complete answer
4. Synthesizing findings into a clear, well-structured response

Available tools allow you to:
- Search the web for current information
- Fetch and analyze web page content

IMPORTANT: Use tools iteratively! After getting results from one tool, analyze if you need more information and use additional tools as needed. Don't stop after just one tool call - continue researching until you can provide a comprehensive answer.

FORMATTING REQUIREMENTS:
- For simple responses (greetings, short answers, single facts): Use plain text without markdown formatting
- For detailed research responses with multiple points: Use Markdown with headers, lists, **bold** terms, `inline code`, block quotes for direct quotes, tables for comparisons, and clickable [text](URL) links to sources

Use markdown formatting only when it improves readability. Always explain your reasoning and cite your sources."""


FINAL_ANSWER_PROMPT = """Based on all the research you've conducted, provide a comprehensive final response to the user's query.

Include:
- Key findings from your research
- Source citations where appropriate
- A clear summary that directly addresses the user's question

Be thorough but well-organized."""


@dataclass
class AssembledContext:
    """
    The conversation buffer for one run.

    Attributes:
        system_message: The system prompt
        messages: History plus the current query, in OpenAI format
    """
    system_message: str
    messages: list[dict] = field(default_factory=list)

    def to_openai_messages(self) -> list[dict]:
        """A fresh list, system prompt first, ready for the API."""
        result = [{"role": "system", "content": self.system_message}]
        result.extend(self.messages)
        return result


class ContextAssembler:
    """
    Assembles the initial conversation buffer for an agent run.

    Example:
        assembler = ContextAssembler()
        context = assembler.assemble("What is OTLP?", store.get_messages(session_id))
        messages = context.to_openai_messages()
    """

    def __init__(self, system_prompt: str = SYSTEM_PROMPT):
        self.system_prompt = system_prompt

    def assemble(self, query: str, history: Sequence[Message]) -> AssembledContext:
        """
        Build the buffer from prior turns and the new query.

        Args:
            query: The user's message for this turn
            history: Earlier user/assistant turns of the session, oldest first

        Returns:
            AssembledContext for the run
        """
        messages = [message.to_dict() for message in history]
        messages.append({"role": "user", "content": query})

        logger.debug(f"Assembled context with {len(history)} history message(s)")
        return AssembledContext(system_message=self.system_prompt, messages=messages)

    @staticmethod
    def final_answer_request() -> dict:
        """The user message appended to force a tool-free final answer."""
        return {"role": "user", "content": FINAL_ANSWER_PROMPT}
