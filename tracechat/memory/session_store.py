"""
Chat Session Store
==================

In-memory storage for research chat sessions. Each session holds the
user/assistant turns of one conversation and nothing else; tool-call
scaffolding from agent runs is never stored here.

The store bounds memory in three ways:
- Each session keeps at most `max_messages` messages (oldest dropped first)
- A session untouched for longer than `ttl` is expired
- At most `max_sessions` sessions are kept; the least recently active go first

Expiry is checked lazily on every read, and a periodic APScheduler job
sweeps the whole mapping so abandoned sessions do not pile up.

Design Notes:
- Sessions live only in RAM and are lost on restart
- One RLock guards the mapping; the sweep runs on a scheduler worker thread
- The clock is injectable so expiry can be tested without sleeping
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Literal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tracechat.utils.config import SessionConfig
from tracechat.utils.logger import Logger

logger = Logger("SessionStore")

Role = Literal["user", "assistant"]

SWEEP_JOB_ID = "session_sweep"


@dataclass
class Message:
    """
    A single chat turn.

    Attributes:
        role: "user" or "assistant"
        content: The message text
        timestamp: When the message was added
    """
    role: Role
    content: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to the role/content format used in model requests."""
        return {
            "role": self.role,
            "content": self.content,
        }


@dataclass
class Session:
    """A conversation history keyed by an opaque id."""
    id: str
    created_at: datetime
    last_activity: datetime
    messages: list[Message] = field(default_factory=list)


class SessionStore:
    """
    Bounded, expiring chat session storage.

    Example:
        store = SessionStore(max_sessions=100, ttl=timedelta(hours=1))
        store.start()

        session_id = store.create_session()
        store.add_message(session_id, "user", "What is OpenTelemetry?")
        history = store.get_messages(session_id)

        store.shutdown()
    """

    def __init__(
        self,
        max_sessions: int = 100,
        max_messages: int = 100,
        ttl: timedelta = timedelta(hours=1),
        cleanup_interval: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the session store.

        Args:
            max_sessions: Maximum number of sessions kept at once
            max_messages: Maximum messages kept per session
            ttl: Inactivity period after which a session expires
            cleanup_interval: How often the background sweep runs
            clock: Returns the current time
        """
        self.max_sessions = max_sessions
        self.max_messages = max_messages
        self.ttl = ttl
        self.cleanup_interval = cleanup_interval
        self._clock = clock

        self._sessions: dict[str, Session] = {}
        self._lock = threading.RLock()
        self._scheduler: AsyncIOScheduler | None = None

    @classmethod
    def from_config(cls, config: SessionConfig) -> "SessionStore":
        return cls(
            max_sessions=config.max_sessions,
            max_messages=config.max_messages,
            ttl=timedelta(minutes=config.ttl_minutes),
            cleanup_interval=timedelta(minutes=config.cleanup_interval_minutes),
        )

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    def start(self) -> None:
        """
        Start the periodic sweep.

        Must be called from within a running event loop.
        """
        if self._scheduler is not None and self._scheduler.running:
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.sweep,
            trigger=IntervalTrigger(seconds=self.cleanup_interval.total_seconds()),
            id=SWEEP_JOB_ID,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            f"Session sweep scheduled every {self.cleanup_interval.total_seconds():.0f}s"
        )

    def shutdown(self) -> None:
        """Stop the periodic sweep and drop every session."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

        with self._lock:
            self._sessions.clear()
        logger.info("Session store shut down")

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    # ==========================================================================
    # Session operations
    # ==========================================================================

    def create_session(self) -> str:
        """
        Create an empty session.

        Returns:
            The new session id
        """
        now = self._clock()
        session_id = uuid.uuid4().hex

        with self._lock:
            self._sessions[session_id] = Session(
                id=session_id,
                created_at=now,
                last_activity=now,
            )
            self._enforce_session_limit()

        logger.info(f"Created chat session: {session_id}")
        return session_id

    def get_session(self, session_id: str) -> Session | None:
        """
        Look up a live session and mark it active.

        An expired session is removed by the lookup that discovers it.

        Args:
            session_id: The session id

        Returns:
            The session, or None if unknown or expired
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            now = self._clock()
            if self._is_expired(session, now):
                del self._sessions[session_id]
                logger.info(f"Session {session_id} expired and removed")
                return None

            session.last_activity = now
            return session

    def add_message(self, session_id: str, role: Role, content: str) -> bool:
        """
        Append a turn to a session.

        If the session exceeds max_messages, the oldest messages are dropped.

        Args:
            session_id: The session id
            role: "user" or "assistant"
            content: The message text

        Returns:
            False if the session is unknown or expired
        """
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                return False

            session.messages.append(
                Message(role=role, content=content, timestamp=self._clock())
            )

            overflow = len(session.messages) - self.max_messages
            if overflow > 0:
                del session.messages[:overflow]
                logger.debug(f"Removed {overflow} old messages from session {session_id}")

        return True

    def get_messages(self, session_id: str) -> list[Message]:
        """Get a copy of a session's messages, oldest first."""
        with self._lock:
            session = self.get_session(session_id)
            return list(session.messages) if session else []

    def delete_session(self, session_id: str) -> bool:
        """
        Delete a session.

        Returns:
            True if the session existed
        """
        with self._lock:
            deleted = self._sessions.pop(session_id, None) is not None

        if deleted:
            logger.info(f"Deleted session: {session_id}")
        return deleted

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    # ==========================================================================
    # Expiry and eviction
    # ==========================================================================

    def sweep(self) -> int:
        """
        Remove expired sessions, then enforce the session limit.

        Runs on the periodic scheduler job; safe to call directly.

        Returns:
            Number of sessions removed
        """
        with self._lock:
            before = len(self._sessions)
            now = self._clock()

            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if self._is_expired(session, now)
            ]
            for session_id in expired:
                del self._sessions[session_id]

            self._enforce_session_limit()
            removed = before - len(self._sessions)

        if removed:
            logger.info(
                f"Cleanup completed: {before} -> {before - removed} sessions ({removed} removed)"
            )
        return removed

    def _is_expired(self, session: Session, now: datetime) -> bool:
        return now - session.last_activity > self.ttl

    def _enforce_session_limit(self) -> None:
        """Evict the least recently active sessions until within max_sessions."""
        excess = len(self._sessions) - self.max_sessions
        if excess <= 0:
            return

        oldest_first = sorted(
            self._sessions.values(),
            key=lambda session: session.last_activity
        )
        for session in oldest_first[:excess]:
            del self._sessions[session.id]
            logger.info(f"Removed old session due to limit: {session.id}")
