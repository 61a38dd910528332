"""
TraceChat - Main Entry Point
============================

This is the main entry point for the server. It:
1. Loads configuration
2. Installs the OpenTelemetry tracer provider
3. Builds the session store, research agent and chat services
4. Serves the HTTP app with uvicorn

Run with:
    python -m tracechat.main

Or after installing:
    tracechat
"""

import sys

import uvicorn

from tracechat.utils.config import get_config
from tracechat.utils.logger import Logger

main_logger = Logger("Main")


def build_app():
    """
    Wire every component from configuration.

    Returns:
        (FastAPI app, tracer provider, server config)

    Raises:
        ConfigurationError: If a required credential is missing
    """
    main_logger.info("Loading configuration...")
    config = get_config()
    main_logger.set_level(config.log_level)

    main_logger.info("Setting up tracing...")
    from tracechat.utils.tracing import setup_tracing
    provider = setup_tracing(config.tracing)

    main_logger.info("Creating session store...")
    from tracechat.memory import SessionStore
    sessions = SessionStore.from_config(config.session)

    main_logger.info("Creating research agent...")
    from tracechat.agent import ChatModel, ResearchAgent
    agent = ResearchAgent.from_config(config)
    basic_model = ChatModel.from_config(config.openai, model=config.openai.chat_model)

    main_logger.info("Creating HTTP app...")
    from tracechat.server import BasicChatService, ChatService, create_app
    app = create_app(
        chat_service=ChatService(agent, sessions),
        basic_chat=BasicChatService(basic_model),
        cors_origin=config.server.cors_origin,
    )

    return app, provider, config.server


def run():
    """
    Synchronous entry point.

    This is called when running with `tracechat` command.
    """
    main_logger.info("Starting TraceChat...")

    try:
        app, provider, server = build_app()
    except Exception as e:
        main_logger.error("Failed to start server", e)
        sys.exit(1)

    main_logger.info(f"Server running on http://{server.host}:{server.port}")
    try:
        uvicorn.run(app, host=server.host, port=server.port, log_level="warning")
    except KeyboardInterrupt:
        pass
    finally:
        provider.shutdown()
        main_logger.info("Shutdown complete")


if __name__ == "__main__":
    run()
