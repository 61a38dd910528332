"""
Configuration Management
========================

Centralized configuration for both services. Every environment variable
the application reads is validated and typed here, so that:

1. All configuration options live in one place
2. Values are typed when they reach the rest of the code
3. Missing credentials fail at startup, before any request is served

Usage:
    from tracechat.utils.config import get_config

    config = get_config()
    print(config.openai.model)
    print(config.session.max_sessions)
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


class ConfigurationError(ValueError):
    """A required setting (usually an API credential) is missing."""


def _required(name: str) -> str:
    """
    Get a required environment variable.

    Args:
        name: The environment variable name

    Returns:
        The value of the environment variable

    Raises:
        ConfigurationError: If the variable is not set
    """
    value = os.getenv(name)
    if not value:
        raise ConfigurationError(
            f"Missing required environment variable: {name}\n"
            f"Please ensure {name} is set in your .env file."
        )
    return value


def _optional(name: str, default: str) -> str:
    """Get an optional environment variable with a default."""
    return os.getenv(name, default)


def _optional_int(name: str, default: int) -> int:
    """
    Get an optional integer environment variable.

    Args:
        name: The environment variable name
        default: Default value if not set or invalid

    Returns:
        The integer value or the default
    """
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"Warning: {name} is not a valid integer, using default: {default}")
        return default


def _optional_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        print(f"Warning: {name} is not a valid number, using default: {default}")
        return default


def _optional_bool(name: str, default: bool) -> bool:
    """
    Get an optional boolean environment variable.

    Returns:
        True if value is 'true' (case-insensitive), False otherwise
    """
    value = os.getenv(name)
    if not value:
        return default
    return value.lower() == "true"


# ==============================================================================
# Configuration Dataclasses
# ==============================================================================

@dataclass(frozen=True)
class OpenAIConfig:
    """OpenAI API configuration."""
    api_key: str        # sk-... API key
    model: str          # Model for the iterative tool-calling loop
    final_model: str    # Model for the forced final answer
    chat_model: str     # Model for the minimal chat endpoint


@dataclass(frozen=True)
class TavilyConfig:
    """Tavily web search configuration."""
    api_key: str
    max_results: int
    search_depth: str   # "basic" or "advanced"


@dataclass(frozen=True)
class AgentConfig:
    """Research agent loop configuration."""
    max_iterations: int


@dataclass(frozen=True)
class WebConfig:
    """Outbound HTTP settings for the search and fetch tools."""
    timeout_seconds: float
    max_content_chars: int


@dataclass(frozen=True)
class SessionConfig:
    """Chat session store limits."""
    ttl_minutes: int
    max_sessions: int
    max_messages: int
    cleanup_interval_minutes: int


@dataclass(frozen=True)
class TracingConfig:
    """OpenTelemetry exporter configuration."""
    service_name: str
    otlp_endpoint: str | None   # e.g. http://localhost:4317
    insecure: bool
    console: bool               # Also print finished spans to stdout


@dataclass(frozen=True)
class ServerConfig:
    """HTTP server configuration."""
    host: str
    port: int
    cors_origin: str


@dataclass(frozen=True)
class Config:
    """
    Root configuration object.

    Contains all configuration sections. Access via:
        config = get_config()
        config.openai.model
        config.session.ttl_minutes
    """
    openai: OpenAIConfig
    tavily: TavilyConfig
    agent: AgentConfig
    web: WebConfig
    session: SessionConfig
    tracing: TracingConfig
    server: ServerConfig
    log_level: str


def load_config() -> Config:
    """
    Load and validate all configuration from environment.

    This function is called once at startup. It:
    1. Loads .env file
    2. Validates required configuration
    3. Sets defaults for optional configuration
    4. Returns a fully typed Config object

    Raises:
        ConfigurationError: If required configuration is missing
    """
    load_dotenv()

    model = _optional("OPENAI_MODEL", "o4-mini")

    return Config(
        openai=OpenAIConfig(
            api_key=_required("OPENAI_API_KEY"),
            model=model,
            final_model=_optional("OPENAI_FINAL_MODEL", model),
            chat_model=_optional("CHAT_MODEL", "gpt-4.1-mini"),
        ),
        tavily=TavilyConfig(
            api_key=_required("TAVILY_API_KEY"),
            max_results=_optional_int("TAVILY_MAX_RESULTS", 10),
            search_depth=_optional("TAVILY_SEARCH_DEPTH", "basic"),
        ),
        agent=AgentConfig(
            max_iterations=_optional_int("AGENT_MAX_ITERATIONS", 5),
        ),
        web=WebConfig(
            timeout_seconds=_optional_float("HTTP_TIMEOUT_SECONDS", 30.0),
            max_content_chars=_optional_int("FETCH_MAX_CHARS", 10000),
        ),
        session=SessionConfig(
            ttl_minutes=_optional_int("SESSION_TTL_MINUTES", 60),
            max_sessions=_optional_int("MAX_SESSIONS", 100),
            max_messages=_optional_int("MAX_MESSAGES_PER_SESSION", 100),
            cleanup_interval_minutes=_optional_int("SESSION_CLEANUP_MINUTES", 10),
        ),
        tracing=TracingConfig(
            service_name=_optional("OTEL_SERVICE_NAME", "tracechat"),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or None,
            insecure=_optional_bool("OTEL_EXPORTER_INSECURE", True),
            console=_optional_bool("TRACING_CONSOLE", False),
        ),
        server=ServerConfig(
            host=_optional("HOST", "0.0.0.0"),
            port=_optional_int("PORT", 3001),
            cors_origin=_optional("CORS_ORIGIN", "http://localhost:5173"),
        ),
        log_level=_optional("LOG_LEVEL", "info"),
    )


# ==============================================================================
# Singleton
# ==============================================================================

_config_instance: Config | None = None


def get_config() -> Config:
    """
    Get the singleton configuration instance.

    The configuration is loaded on first access and cached for subsequent calls.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config_instance
    _config_instance = None
