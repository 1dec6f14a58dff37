"""
ChoreVoice: multi-turn voice dialogue engine for creating chore tasks.

Fills a fixed task schema (assigned child, title, due time, points) from
successive spoken utterances, asking follow-up questions until the task is
complete or the user cancels.
"""

__version__ = "1.0.0"

# Export configuration
from chorevoice.config import config, ChoreVoiceConfig

# Export core types
from chorevoice.data_types import (
    Child,
    Session,
    SlotDelta,
    Slots,
    TaskPayload,
    Turn,
    TurnResult,
    VoiceResponse,
)

# Export the service entry point
from chorevoice.app import DialogueService

__all__ = [
    "config",
    "ChoreVoiceConfig",
    "Child",
    "Session",
    "SlotDelta",
    "Slots",
    "TaskPayload",
    "Turn",
    "TurnResult",
    "VoiceResponse",
    "DialogueService",
]
