"""
HTTP App
========

Creates the FastAPI application serving both services.

Routes:
- GET  /health     liveness check
- POST /sessions   start a new research chat
- POST /research   one research chat turn
- POST /chat       minimal single-call chat (x-session-id / x-user-id headers)
- POST /feedback   thumbs up/down on an answer (logged only)

The session store's periodic sweep is started and stopped with the app's
lifespan.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tracechat.server.handlers import BASIC_CHAT_ERROR, BasicChatService, ChatService
from tracechat.utils.logger import Logger

logger = Logger("HTTP")


class ResearchQuery(BaseModel):
    message: str
    sessionId: Optional[str] = None


class ChatRequest(BaseModel):
    message: str


class Feedback(BaseModel):
    messageId: str
    thumbsUp: bool


def create_app(
    chat_service: ChatService,
    basic_chat: BasicChatService,
    cors_origin: str = "http://localhost:5173"
) -> FastAPI:
    """
    Create and configure the FastAPI app.

    Args:
        chat_service: Research chat turn handler (owns the session store)
        basic_chat: Minimal chat handler
        cors_origin: Allowed browser origin for the chat UI

    Returns:
        Configured FastAPI instance
    """
    sessions = chat_service.sessions

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sessions.start()
        logger.info("Chat session store started")
        try:
            yield
        finally:
            sessions.shutdown()

    app = FastAPI(title="TraceChat", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[cors_origin],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post("/sessions")
    async def start_new_chat():
        return {"sessionId": chat_service.start_session()}

    @app.post("/research")
    async def research(payload: ResearchQuery):
        result = await chat_service.handle_query(payload.message, payload.sessionId)
        if "error" in result:
            return JSONResponse(status_code=500, content=result)
        return result

    @app.post("/chat")
    async def chat(
        payload: ChatRequest,
        x_session_id: Optional[str] = Header(default=None),
        x_user_id: Optional[str] = Header(default=None),
    ):
        session_id = x_session_id or "default-session"
        user_id = x_user_id or "default-user"

        try:
            response = await basic_chat.process_chat(payload.message, user_id, session_id)
        except Exception as e:
            logger.error("Error processing chat", e)
            return JSONResponse(status_code=500, content={"error": BASIC_CHAT_ERROR})

        return {"response": response}

    @app.post("/feedback")
    async def feedback(payload: Feedback):
        logger.info(
            f"Feedback received for {payload.messageId}: "
            f"{'thumbs up' if payload.thumbsUp else 'thumbs down'}"
        )
        return {"messageId": payload.messageId, "success": True}

    logger.info("HTTP app created")
    return app
