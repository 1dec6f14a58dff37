"""
Prompt reasons.

Every sentence the engine speaks is identified by one of these reasons and
rendered from templates/prompts.json.
"""

from enum import Enum

from ..config.core import SLOT_ASSIGNED_CHILD, SLOT_DUE, SLOT_POINTS, SLOT_TITLE


class PromptReason(str, Enum):
    ASK_ASSIGNED_CHILD = "ASK_ASSIGNED_CHILD"
    ASK_TITLE = "ASK_TITLE"
    ASK_DUE = "ASK_DUE"
    ASK_POINTS = "ASK_POINTS"
    UNKNOWN_CHILD = "UNKNOWN_CHILD"
    TASK_CONFIRMED = "TASK_CONFIRMED"
    AMBIGUOUS_SLOT = "AMBIGUOUS_SLOT"
    CANCELLED = "CANCELLED"


# Missing slot -> question asked for it
SLOT_PROMPTS = {
    SLOT_ASSIGNED_CHILD: PromptReason.ASK_ASSIGNED_CHILD,
    SLOT_TITLE: PromptReason.ASK_TITLE,
    SLOT_DUE: PromptReason.ASK_DUE,
    SLOT_POINTS: PromptReason.ASK_POINTS,
}

# Spoken label for a slot in clarification questions
SLOT_LABELS = {
    SLOT_ASSIGNED_CHILD: "child",
    SLOT_TITLE: "task",
    SLOT_DUE: "due date",
    SLOT_POINTS: "points",
}
