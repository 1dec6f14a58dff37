"""
Core Error Classes

Custom exceptions for chorevoice. Every error carries a stable ``code`` that
the HTTP layer returns to clients.
"""


class ChoreVoiceError(Exception):
    """Base class for all chorevoice errors."""
    code = "INTERNAL_ERROR"


class ProtocolError(ChoreVoiceError):
    """Raised when a request is missing required fields or headers."""
    code = "PROTOCOL_ERROR"


class SessionNotFoundError(ChoreVoiceError):
    """Raised when a turn references a session that does not exist (or expired)."""
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        super().__init__("Session not found. Please start a new session first.")
        self.session_id = session_id


class SessionInactiveError(ChoreVoiceError):
    """Raised when a turn references a session that is no longer in progress."""
    code = "SESSION_INACTIVE"

    def __init__(self, session_id: str, status: str):
        super().__init__("Session is not active. Please start a new session first.")
        self.session_id = session_id
        self.status = status


class MalformedDeltaError(ChoreVoiceError):
    """Raised when extractor output violates the SlotDelta contract."""
    code = "MALFORMED_DELTA"


class StoreCorruptionError(ChoreVoiceError):
    """Raised when a stored session cannot be decoded into a valid Session."""
    code = "INTERNAL_ERROR"


class TranscriptionError(ChoreVoiceError):
    """Raised when the speech-to-text collaborator fails."""
    code = "STT_FAILED"
