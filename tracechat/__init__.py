"""
TraceChat - Traced LLM Chat Services
====================================

Two small services that show how to instrument an LLM-calling application
with distributed tracing:

- A minimal chat endpoint: one model call per request, tagged with the
  caller's session and user ids
- A research chatbot: an agent loop that searches and reads the web through
  tool calls, with bounded, expiring in-memory chat sessions

Every run, model call and tool call is recorded as an OpenTelemetry span.
"""

__version__ = "1.0.0"
