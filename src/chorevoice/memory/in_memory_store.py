"""
In-Memory Session Store Implementation

Concrete implementation of SessionStore backed by a process-local dict.
Default backend; suitable for a single API process.
"""

import logging
import threading
from dataclasses import replace
from typing import Dict, List, Optional

from ..data_types import Session
from .locks import KeyedLock
from .store import Clock, SessionStore

logger = logging.getLogger(__name__)


class InMemorySessionStore(SessionStore):
    """
    Dict-backed session store.

    The map itself is guarded by one lock; read-modify-write sequences on a
    single session are serialized by lock(session_id).
    """

    def __init__(self, ttl_minutes: int = 15, clock: Optional[Clock] = None):
        super().__init__(ttl_minutes=ttl_minutes, clock=clock)
        self._sessions: Dict[str, Session] = {}
        self._map_lock = threading.Lock()
        self._keyed = KeyedLock()

    def get(self, session_id: str) -> Optional[Session]:
        with self._map_lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if self.is_expired(session):
                del self._sessions[session_id]
                logger.info("Session expired", extra={"session_id": session_id})
                return None
            return session

    def save(self, session: Session) -> Session:
        with self._map_lock:
            stored = self._sessions.get(session.session_id)
            if stored is not None and session.expires_at != stored.expires_at:
                # Expiry is fixed at creation
                session = replace(session, created_at=stored.created_at, expires_at=stored.expires_at)
            self._sessions[session.session_id] = session
        return session

    def delete(self, session_id: str) -> bool:
        with self._map_lock:
            return self._sessions.pop(session_id, None) is not None

    def list_by_user(self, user_id: str) -> List[Session]:
        with self._map_lock:
            candidates = [s for s in self._sessions.values() if s.user_id == user_id]
        return [s for s in candidates if not self.is_expired(s)]

    def purge_expired(self) -> int:
        with self._map_lock:
            expired = [sid for sid, s in self._sessions.items() if self.is_expired(s)]
            for session_id in expired:
                del self._sessions[session_id]
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions", extra={"purged": len(expired)})
        return len(expired)

    def count(self) -> int:
        with self._map_lock:
            return sum(1 for s in self._sessions.values() if not self.is_expired(s))

    def lock(self, session_id: str):
        return self._keyed.hold(session_id)

