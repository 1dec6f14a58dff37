"""Background purge of expired sessions."""

import logging
import threading
from typing import Optional

from .store import SessionStore

logger = logging.getLogger(__name__)


class SessionSweeper:
    """
    Daemon thread calling store.purge_expired() every interval_seconds.

    Example:
        >>> sweeper = SessionSweeper(store, interval_seconds=300)
        >>> sweeper.start()
        >>> sweeper.stop()
    """

    def __init__(self, store: SessionStore, interval_seconds: float = 300):
        self.store = store
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep_once(self) -> int:
        try:
            return self.store.purge_expired()
        except Exception as e:
            # A failed sweep is retried on the next tick
            logger.error(f"Session sweep failed: {e}", extra={"error_type": type(e).__name__}, exc_info=True)
            return 0

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.sweep_once()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="chorevoice-sweeper", daemon=True)
        self._thread.start()
        logger.info("Session sweeper started", extra={"interval_seconds": self.interval_seconds})

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Session sweeper stopped")
