"""
In-memory store for two-phase launch sessions
"""

import asyncio
import logging
import secrets
import threading
import time
from typing import Callable, Dict, Optional

from launcher.errors import SessionCapacityError
from launcher.models import LaunchSession


class SessionStore:
    """Bounded, expiring map of session id -> LaunchSession.

    Each session can be consumed at most once: consume() removes it under the
    lock, so two concurrent executes for the same id cannot both get it.
    """

    def __init__(self, ttl_seconds: float = 120.0, max_sessions: int = 1000,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self.clock = clock
        self._sessions: Dict[str, LaunchSession] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger('token_launcher')

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _is_expired(self, session: LaunchSession, now: float) -> bool:
        return now - session.created_at >= self.ttl_seconds

    def _purge_locked(self, now: float) -> int:
        expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)

    def create(self, session: LaunchSession) -> str:
        """Store a session and return its new opaque id"""
        with self._lock:
            self._purge_locked(self.clock())
            if len(self._sessions) >= self.max_sessions:
                raise SessionCapacityError(
                    f"Too many pending launches ({self.max_sessions}), try again shortly",
                    step="prepare",
                )
            session_id = secrets.token_urlsafe(32)
            while session_id in self._sessions:
                session_id = secrets.token_urlsafe(32)
            self._sessions[session_id] = session
            return session_id

    def consume(self, session_id: str) -> Optional[LaunchSession]:
        """Remove and return the session, or None if unknown, used or expired"""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        if self._is_expired(session, self.clock()):
            self.logger.info("Launch session expired before execute")
            return None
        return session

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked(self.clock())

    async def run_reaper(self, interval: float = 30.0) -> None:
        """Purge expired sessions every `interval` seconds until cancelled"""
        while True:
            await asyncio.sleep(interval)
            purged = self.purge_expired()
            if purged:
                self.logger.info(f"Purged {purged} expired launch session(s)")
