"""
Chat Memory
===========

Bounded, expiring, in-memory chat sessions for the research chatbot.

Usage:
    from tracechat.memory import SessionStore

    store = SessionStore.from_config(get_config().session)
    store.start()

    session_id = store.create_session()
    store.add_message(session_id, "user", "Hello!")
"""

from tracechat.memory.session_store import Message, Session, SessionStore

__all__ = ["Message", "Session", "SessionStore"]
