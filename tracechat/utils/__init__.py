"""
Utilities Module
================

Common utilities shared across the application:
- logger: Leveled console logging with trace-id tagging
- config: Centralized configuration management
- tracing: OpenTelemetry provider setup and span helpers
"""

from tracechat.utils.logger import Logger, logger
from tracechat.utils.config import get_config, Config, ConfigurationError

__all__ = ["Logger", "logger", "get_config", "Config", "ConfigurationError"]
