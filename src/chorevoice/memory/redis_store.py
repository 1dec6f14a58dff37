"""
Redis Session Store Implementation

Concrete implementation of SessionStore using Redis.
"""

import json
import logging
import math
from typing import Any, List, Optional

import redis

from ..config import config
from ..data_types import Session
from ..errors import StoreCorruptionError
from .store import Clock, SessionStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "chorevoice"


class RedisSessionStore(SessionStore):
    """
    Redis-backed session store.

    Key format:
        chorevoice:session:{session_id}          JSON-serialized session
        chorevoice:user:{user_id}:sessions       set of session ids
        chorevoice:lock:{session_id}             per-session lock

    Session keys are written with SETEX using the time remaining until
    expires_at, so later writes never push the expiry out.
    """

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        ttl_minutes: int = 15,
        clock: Optional[Clock] = None,
        lock_timeout: int = 30,
    ):
        """
        Initialize Redis session store.

        Args:
            redis_client: Optional Redis client instance.
                          If None, one is created from redis_url / config.REDIS_URL.
            redis_url: Connection URL used when no client is given
            ttl_minutes: Session lifetime from creation
            clock: Time source (tests inject a fixed clock)
            lock_timeout: Seconds a per-session lock may be held or waited for
        """
        super().__init__(ttl_minutes=ttl_minutes, clock=clock)
        if redis_client is None:
            url = redis_url or config.REDIS_URL or "redis://localhost:6379/0"
            redis_client = redis.from_url(url, decode_responses=True)
        self._client = redis_client
        self.lock_timeout = lock_timeout

    def _session_key(self, session_id: str) -> str:
        return f"{KEY_PREFIX}:session:{session_id}"

    def _user_key(self, user_id: str) -> str:
        return f"{KEY_PREFIX}:user:{user_id}:sessions"

    def _lock_key(self, session_id: str) -> str:
        return f"{KEY_PREFIX}:lock:{session_id}"

    def _decode(self, session_id: str, raw: Any) -> Session:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise StoreCorruptionError(f"Session {session_id} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise StoreCorruptionError(f"Session {session_id} is not a JSON object")
        return Session.from_dict(data)

    def _remaining_seconds(self, session: Session) -> int:
        remaining = (session.expires_at - self.clock()).total_seconds()
        return int(math.ceil(remaining))

    def get(self, session_id: str) -> Optional[Session]:
        raw = self._client.get(self._session_key(session_id))
        if raw is None:
            return None
        session = self._decode(session_id, raw)
        if self.is_expired(session):
            self.delete(session_id)
            logger.info("Session expired", extra={"session_id": session_id})
            return None
        return session

    def save(self, session: Session) -> Session:
        ttl = self._remaining_seconds(session)
        if ttl <= 0:
            logger.warning(
                "Refusing to store an already expired session",
                extra={"session_id": session.session_id},
            )
            self.delete(session.session_id)
            return session

        value = json.dumps(session.to_dict())
        try:
            self._client.setex(self._session_key(session.session_id), ttl, value)
            if session.user_id:
                user_key = self._user_key(session.user_id)
                self._client.sadd(user_key, session.session_id)
                self._client.expire(user_key, int(self.ttl.total_seconds()))
        except redis.RedisError as e:
            # Persistence failures must be loud
            logger.error(
                f"CRITICAL: Failed to persist session {session.session_id}: {e}",
                extra={
                    "session_id": session.session_id,
                    "user_id": session.user_id,
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise
        return session

    def delete(self, session_id: str) -> bool:
        key = self._session_key(session_id)
        raw = self._client.get(key)
        removed = bool(self._client.delete(key))
        if raw is not None:
            try:
                user_id = json.loads(raw).get("userId")
            except (TypeError, ValueError, AttributeError):
                user_id = None
            if user_id:
                self._client.srem(self._user_key(user_id), session_id)
        return removed

    def list_by_user(self, user_id: str) -> List[Session]:
        user_key = self._user_key(user_id)
        sessions: List[Session] = []
        for member in self._client.smembers(user_key) or ():
            session_id = member.decode("utf-8") if isinstance(member, bytes) else member
            try:
                session = self.get(session_id)
            except StoreCorruptionError as e:
                logger.error(
                    f"Skipping corrupted session: {e}",
                    extra={"session_id": session_id, "user_id": user_id},
                )
                continue
            if session is None:
                # Key expired in Redis; drop the stale index entry
                self._client.srem(user_key, session_id)
                continue
            sessions.append(session)
        return sorted(sessions, key=lambda s: s.created_at)

    def purge_expired(self) -> int:
        purged = 0
        for key in self._client.scan_iter(match=f"{KEY_PREFIX}:session:*"):
            key = key.decode("utf-8") if isinstance(key, bytes) else key
            session_id = key.split(":", 2)[2]
            raw = self._client.get(key)
            if raw is None:
                continue
            try:
                session = self._decode(session_id, raw)
            except StoreCorruptionError:
                continue
            if self.is_expired(session) and self.delete(session_id):
                purged += 1
        if purged:
            logger.info(f"Purged {purged} expired sessions", extra={"purged": purged})
        return purged

    def count(self) -> int:
        return sum(1 for _ in self._client.scan_iter(match=f"{KEY_PREFIX}:session:*"))

    def lock(self, session_id: str):
        return self._client.lock(
            self._lock_key(session_id),
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_timeout,
        )
