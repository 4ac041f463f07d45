"""MCP session records with idle-TTL eviction.

An idle session is dropped once it has not been seen for ``ttl_seconds``
(0 disables expiry). The HTTP DELETE endpoint terminates sessions explicitly.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("tasks_md.mcp")


@dataclass
class Session:
    session_id: str
    created_at: float
    last_seen: float
    initialized: bool = False
    client_info: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "createdAt": datetime.fromtimestamp(self.created_at, tz=timezone.utc).isoformat(),
            "initialized": self.initialized,
            "clientInfo": dict(self.client_info),
        }


class SessionStore:
    """Thread-safe map of live sessions."""

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.time):
        if ttl_seconds is None:
            from config import get_session_ttl_seconds

            ttl_seconds = get_session_ttl_seconds()
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._lock = Lock()
        self._sessions: Dict[str, Session] = {}

    def _expired(self, session: Session, now: float) -> bool:
        return self.ttl_seconds > 0 and now - session.last_seen > self.ttl_seconds

    def _drop_expired(self, now: float) -> int:
        expired = [sid for sid, session in self._sessions.items() if self._expired(session, now)]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)

    def create(self, client_info: Optional[Dict[str, Any]] = None) -> Session:
        """Open a new session, dropping expired ones first."""
        now = self._clock()
        with self._lock:
            dropped = self._drop_expired(now)
            session_id = str(uuid.uuid4())
            while session_id in self._sessions:
                session_id = str(uuid.uuid4())
            session = Session(session_id=session_id, created_at=now, last_seen=now, client_info=dict(client_info or {}))
            self._sessions[session_id] = session
        if dropped:
            logger.info("MCP sessions expired: %d", dropped)
        logger.info("MCP session created: %s", session_id)
        return session

    def get(self, session_id: Optional[str]) -> Optional[Session]:
        """Live session for ``session_id`` (refreshing its idle timer), else None."""
        if not session_id:
            return None
        now = self._clock()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if self._expired(session, now):
                del self._sessions[session_id]
                logger.info("MCP session expired: %s", session_id)
                return None
            session.last_seen = now
            return session

    def mark_initialized(self, session_id: Optional[str]) -> bool:
        session = self.get(session_id)
        if session is None:
            return False
        session.initialized = True
        return True

    def terminate(self, session_id: Optional[str]) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id or "", None)
        if removed is not None:
            logger.info("MCP session terminated: %s", session_id)
        return removed is not None

    def sweep(self) -> int:
        """Drop every expired session; returns how many were removed."""
        now = self._clock()
        with self._lock:
            dropped = self._drop_expired(now)
        if dropped:
            logger.info("MCP sessions expired: %d", dropped)
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions


__all__ = ["Session", "SessionStore"]
