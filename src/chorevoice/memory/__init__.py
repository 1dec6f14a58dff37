"""
Session storage.

create_session_store() picks the backend named by config.SESSION_BACKEND.
"""
from typing import Optional

from ..config import ChoreVoiceConfig, config as default_config
from .in_memory_store import InMemorySessionStore
from .locks import KeyedLock
from .redis_store import RedisSessionStore
from .store import Clock, SessionStore, utc_now
from .sweeper import SessionSweeper


def create_session_store(cfg: Optional[ChoreVoiceConfig] = None, clock: Optional[Clock] = None) -> SessionStore:
    """
    Build the configured session store.

    Raises:
        ValueError: If SESSION_BACKEND names an unknown backend
    """
    cfg = cfg or default_config
    backend = cfg.SESSION_BACKEND
    if backend == "memory":
        return InMemorySessionStore(ttl_minutes=cfg.SESSION_TTL_MINUTES, clock=clock)
    if backend == "redis":
        return RedisSessionStore(
            redis_url=cfg.REDIS_URL,
            ttl_minutes=cfg.SESSION_TTL_MINUTES,
            clock=clock,
            lock_timeout=cfg.SESSION_LOCK_TIMEOUT_SECONDS,
        )
    raise ValueError(f"Unknown SESSION_BACKEND: {backend!r} (expected 'memory' or 'redis')")


__all__ = [
    "Clock",
    "InMemorySessionStore",
    "KeyedLock",
    "RedisSessionStore",
    "SessionStore",
    "SessionSweeper",
    "create_session_store",
    "utc_now",
]
