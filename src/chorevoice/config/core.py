# chorevoice/config/core.py

# Slot names, in the canonical order they are asked for
SLOT_ASSIGNED_CHILD = "assignedChild"
SLOT_TITLE = "title"
SLOT_DUE = "due"
SLOT_POINTS = "points"

SLOT_ORDER = (SLOT_ASSIGNED_CHILD, SLOT_TITLE, SLOT_DUE, SLOT_POINTS)

# Session lifecycle
STATUS_IN_PROGRESS = "in_progress"
STATUS_READY = "ready_to_create"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

SESSION_STATUSES = (STATUS_IN_PROGRESS, STATUS_READY, STATUS_COMPLETED, STATUS_CANCELLED)

# Delta intents
INTENT_ANSWER = "answer"
INTENT_REVISE = "revise"
INTENT_NEW_TASK = "new_task"
INTENT_CANCEL = "cancel"
INTENT_NOOP = "noop"

DELTA_INTENTS = (INTENT_ANSWER, INTENT_REVISE, INTENT_NEW_TASK, INTENT_CANCEL, INTENT_NOOP)

# Response types
RESPONSE_FOLLOWUP = "followup"
RESPONSE_AMBIGUOUS = "ambiguous"
RESPONSE_CONFIRMED = "confirmed"
RESPONSE_CANCELLED = "cancelled"

# Fixed speak string for stale turns
SPEAK_TURN_IGNORED = "Turn ignored (out of order)"
