"""
Session Store Abstraction

Provides a clean interface for persisting and retrieving dialogue sessions.
All session reads and writes go through this abstraction.

Sessions live for a fixed TTL counted from creation. Activity never extends
it; an expired session is treated as absent by every read.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from contextlib import AbstractContextManager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Sequence

from ..config.core import STATUS_IN_PROGRESS
from ..data_types import Child, Session, parse_roster

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(ABC):
    """
    Abstract base class for session storage.

    Implementations must provide:
    - create(session_id, roster, user_id) -> Session
    - get(session_id) -> Session | None
    - save(session) -> Session
    - delete(session_id) -> bool
    - list_by_user(user_id) -> list[Session]
    - purge_expired() -> int
    - count() -> int
    - lock(session_id) -> context manager
    """

    def __init__(self, ttl_minutes: int = 15, clock: Optional[Clock] = None):
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock or utc_now

    def new_session(self, session_id: str, roster: Sequence[Any], user_id: Optional[str] = None) -> Session:
        """Build (without storing) a fresh in-progress session."""
        now = self.clock()
        return Session(
            session_id=session_id,
            user_id=user_id,
            children_roster=parse_roster(list(roster or [])),
            created_at=now,
            expires_at=now + self.ttl,
        )

    def create(self, session_id: str, roster: Sequence[Child], user_id: Optional[str] = None) -> Session:
        """
        Create and store a new session.

        Args:
            session_id: Opaque unique identifier
            roster: Children the session may assign tasks to
            user_id: Owning user

        Returns:
            The stored Session
        """
        return self.save(self.new_session(session_id, roster, user_id))

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        """
        Retrieve a session.

        Returns:
            Session, or None if absent or expired (expired entries are purged)

        Raises:
            StoreCorruptionError: If the stored value cannot be decoded
        """
        pass

    @abstractmethod
    def save(self, session: Session) -> Session:
        """Write a whole session back. The stored expiry is never extended."""
        pass

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Delete a session. Returns True if something was removed."""
        pass

    @abstractmethod
    def list_by_user(self, user_id: str) -> List[Session]:
        """All live sessions owned by a user."""
        pass

    @abstractmethod
    def purge_expired(self) -> int:
        """Remove every expired session. Idempotent; returns how many were removed."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of live sessions."""
        pass

    @abstractmethod
    def lock(self, session_id: str) -> AbstractContextManager:
        """Context manager serializing read-modify-write on one session."""
        pass

    def update(self, session_id: str, **changes: Any) -> Optional[Session]:
        """
        Apply field changes to a stored session.

        Callers must hold lock(session_id) when the change depends on a read.

        Returns:
            Updated Session, or None if the session is absent or expired
        """
        session = self.get(session_id)
        if session is None:
            return None
        changes.pop("created_at", None)
        changes.pop("expires_at", None)
        return self.save(replace(session, **changes))

    def list_active_by_user(self, user_id: str) -> List[Session]:
        """Sessions of a user that are still collecting slots."""
        return [s for s in self.list_by_user(user_id) if s.status == STATUS_IN_PROGRESS]

    def is_expired(self, session: Session) -> bool:
        return session.is_expired(self.clock())

