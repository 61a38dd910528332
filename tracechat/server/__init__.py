"""
HTTP Integration
================

FastAPI routes and the service objects behind them.
"""

from tracechat.server.app import create_app
from tracechat.server.handlers import BasicChatService, ChatService

__all__ = ["create_app", "BasicChatService", "ChatService"]
