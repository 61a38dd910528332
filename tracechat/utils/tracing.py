"""
Tracing Setup
=============

OpenTelemetry wiring shared by both services.

`setup_tracing()` installs an SDK TracerProvider once at startup. Spans go
to an OTLP collector when `OTEL_EXPORTER_OTLP_ENDPOINT` is set, and to the
console when `TRACING_CONSOLE=true`. Without either, spans are still created
(so trace ids exist) but are not exported.

Spans carry a `tracechat.span_type` attribute (AGENT, LLM, TOOL, CHAIN) and
JSON-encoded `tracechat.inputs` / `tracechat.outputs` attributes.
"""

import json
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Status, StatusCode

from tracechat import __version__
from tracechat.utils.config import TracingConfig
from tracechat.utils.logger import Logger

logger = Logger("Tracing")

TRACER_NAME = "tracechat"

SPAN_TYPE = "tracechat.span_type"
SPAN_INPUTS = "tracechat.inputs"
SPAN_OUTPUTS = "tracechat.outputs"


class SpanType:
    """Values for the span type attribute."""
    AGENT = "AGENT"
    LLM = "LLM"
    TOOL = "TOOL"
    CHAIN = "CHAIN"


def setup_tracing(config: TracingConfig) -> TracerProvider:
    """
    Install the global tracer provider.

    Args:
        config: Tracing section of the application config

    Returns:
        The installed TracerProvider (call shutdown() on exit to flush)
    """
    resource = Resource(
        attributes={
            SERVICE_NAME: config.service_name,
            SERVICE_VERSION: __version__,
        }
    )
    provider = TracerProvider(resource=resource)

    if config.otlp_endpoint:
        # Imported here so the grpc stack only loads when exporting
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        exporter = OTLPSpanExporter(endpoint=config.otlp_endpoint, insecure=config.insecure)
        provider.add_span_processor(BatchSpanProcessor(exporter))
        logger.info(f"OTLP trace exporter enabled: {config.otlp_endpoint}")
    else:
        logger.warning("OTEL_EXPORTER_OTLP_ENDPOINT not set, spans will not be exported")

    if config.console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("Console span exporter enabled")

    trace.set_tracer_provider(provider)
    return provider


def get_tracer(name: str = TRACER_NAME) -> trace.Tracer:
    return trace.get_tracer(name, __version__)


def _to_json(value: Any) -> str:
    return json.dumps(value, default=str)


def set_span_inputs(span: Span, inputs: Any) -> None:
    """Attach the operation's inputs to a span."""
    span.set_attribute(SPAN_INPUTS, _to_json(inputs))


def set_span_outputs(span: Span, outputs: Any) -> None:
    """Attach the operation's outputs to a span."""
    span.set_attribute(SPAN_OUTPUTS, _to_json(outputs))


def mark_span_error(span: Span, message: str) -> None:
    """Flag a span as failed without an exception having propagated through it."""
    span.set_status(Status(StatusCode.ERROR, message))


def format_trace_id(span: Span) -> str:
    """32-char lowercase hex trace id of the span."""
    return format(span.get_span_context().trace_id, "032x")
