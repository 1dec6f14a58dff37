"""
Canonical validation of extractor output.

Whatever produced the delta (rules, an LLM, a test fake), it passes through
validate_delta() before it can reach the merge engine.
"""

from typing import Any, Dict, Optional

from ..config.core import DELTA_INTENTS, SLOT_ORDER
from ..data_types import SlotDelta, Slots
from ..errors import MalformedDeltaError

# Keys accepted in slot_updates (wire or attribute spelling) -> Slots attribute.
# dueIso is deliberately absent: it is always derived from dueText.
_UPDATE_KEYS = {
    "assignedChildId": "assigned_child_id",
    "assigned_child_id": "assigned_child_id",
    "assignedChildName": "assigned_child_name",
    "assigned_child_name": "assigned_child_name",
    "title": "title",
    "dueText": "due_text",
    "due_text": "due_text",
    "points": "points",
}


def _clean_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = " ".join(value.split())
    return value or None


def _clean_points(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            return None
        value = int(value)
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if isinstance(value, int) and value > 0:
        return value
    return None


def validate_slot_updates(raw: Any) -> Slots:
    """
    Coerce a raw slot_updates mapping into Slots.

    Unknown keys, blank strings and non-positive points are dropped.

    Raises:
        MalformedDeltaError: If raw is not a mapping
    """
    if raw is None:
        return Slots()
    if not isinstance(raw, dict):
        raise MalformedDeltaError(f"slot_updates must be an object, got {type(raw).__name__}")

    values: Dict[str, Any] = {}
    for key, value in raw.items():
        attr = _UPDATE_KEYS.get(key)
        if attr is None:
            continue
        cleaned = _clean_points(value) if attr == "points" else _clean_text(value)
        if cleaned is not None:
            values[attr] = cleaned
    return Slots(**values)


def validate_delta(raw: Any) -> SlotDelta:
    """
    Validate extractor output into a SlotDelta.

    Args:
        raw: A SlotDelta or a dict of the form
             {"intent": ..., "slot_updates": {...}, "ambiguous": [...], "notes": "..."}

    Returns:
        SlotDelta with cleaned slot updates

    Raises:
        MalformedDeltaError: If the structure or intent is invalid
    """
    if isinstance(raw, SlotDelta):
        raw = raw.to_dict()
    if not isinstance(raw, dict):
        raise MalformedDeltaError(f"Delta must be an object, got {type(raw).__name__}")

    intent = raw.get("intent")
    if intent not in DELTA_INTENTS:
        raise MalformedDeltaError(f"Unknown delta intent: {intent!r}")

    ambiguous = raw.get("ambiguous") or []
    if not isinstance(ambiguous, list):
        raise MalformedDeltaError("ambiguous must be a list of slot names")

    notes = raw.get("notes")
    return SlotDelta(
        intent=intent,
        slot_updates=validate_slot_updates(raw.get("slot_updates")),
        ambiguous=tuple(str(s) for s in ambiguous if s in SLOT_ORDER),
        notes=notes if isinstance(notes, str) and notes else None,
    )
