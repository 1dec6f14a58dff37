"""
Slot Merger

Implements merge logic for combining one extracted delta with the stored
session. merge_delta() is pure: it returns a new Session and never mutates
its input, so the same (session, delta, now) always yields the same result.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from ..config.core import (
    INTENT_CANCEL,
    SLOT_ASSIGNED_CHILD,
    SLOT_DUE,
    SLOT_POINTS,
    SLOT_TITLE,
    STATUS_CANCELLED,
    STATUS_IN_PROGRESS,
    STATUS_READY,
)
from ..data_types import Child, Session, SlotDelta, Slots
from ..extraction.date_normalizer import normalize_due_text
from ..extraction.fuzzy_matcher import match_child

logger = logging.getLogger(__name__)


def compute_missing(slots: Slots) -> Tuple[str, ...]:
    """
    Required slots not yet satisfiable from ``slots``, in canonical order.

    An assigned-child name without an id counts as present here; whether it
    resolves is a separate question (see is_child_unresolved).
    """
    missing: List[str] = []
    if not slots.assigned_child_id and not slots.assigned_child_name:
        missing.append(SLOT_ASSIGNED_CHILD)
    if not slots.title:
        missing.append(SLOT_TITLE)
    if not slots.due_iso and not slots.due_text:
        missing.append(SLOT_DUE)
    if not slots.points:
        missing.append(SLOT_POINTS)
    return tuple(missing)


def is_child_unresolved(slots: Slots) -> bool:
    """True when a child was named but no roster entry could be bound to it."""
    return bool(slots.assigned_child_name) and not slots.assigned_child_id


def find_child(roster, child_id: Optional[str]) -> Optional[Child]:
    for child in roster:
        if child.id == child_id:
            return child
    return None


def _names_same_child(current: Slots, name: Optional[str], roster) -> bool:
    """
    True when ``name`` refers to the child already stored in ``current``.

    The stored name is the roster spelling once resolved, so a repeated
    mis-hearing ("Emely" for "Emily") is matched through the roster as well.
    """
    old_name = current.assigned_child_name
    if not name or not old_name:
        return False
    if name.lower() == old_name.lower():
        return True
    if current.assigned_child_id:
        result = match_child(name, roster)
        return result.match is not None and result.match.id == current.assigned_child_id
    return False


def _bind_roster_id(updates: Slots, roster, session_id: str) -> Slots:
    """Accept an extractor-supplied child id only when it is on the roster."""
    if not updates.assigned_child_id:
        return updates
    child = find_child(roster, updates.assigned_child_id)
    if child is None:
        logger.warning(
            "Dropping child id not on the session roster",
            extra={"session_id": session_id, "child_id": updates.assigned_child_id},
        )
        return replace(updates, assigned_child_id=None)
    return replace(updates, assigned_child_name=child.name)


def resolve_child(slots: Slots, roster) -> Slots:
    """Bind assigned_child_id from the name when the roster has a unique match."""
    if not is_child_unresolved(slots):
        return slots
    result = match_child(slots.assigned_child_name, roster)
    if result.match is None:
        return slots
    return replace(
        slots,
        assigned_child_id=result.match.id,
        assigned_child_name=result.match.name,
    )


def derive_state(session: Session, slots: Slots, ambiguous: Sequence[str] = ()) -> Session:
    """
    Recompute missing, expected_slot and status for the given slots.

    ``ambiguous`` lists slots the extractor could not settle this turn; the
    first one becomes the expected slot and the session cannot be ready
    until a later turn settles it.
    """
    missing = compute_missing(slots)
    unresolved = is_child_unresolved(slots)

    if unresolved:
        expected = SLOT_ASSIGNED_CHILD
    elif ambiguous:
        expected = ambiguous[0]
    elif missing:
        expected = missing[0]
    else:
        expected = None

    status = STATUS_READY if not missing and not unresolved and not ambiguous else STATUS_IN_PROGRESS
    return replace(
        session,
        slots=slots,
        missing=missing,
        expected_slot=expected,
        status=status,
    )


def merge_delta(session: Session, delta: SlotDelta, now: Optional[datetime] = None) -> Session:
    """
    Merge one delta into the session.

    Steps:
    1. cancel intent: status becomes cancelled, slots untouched
    2. a child id is kept only if it is on the roster
    3. a different child clears every slot (different child, different task);
       a name that resolves to the stored child is the same child
    4. last-write-wins overlay of delta.slot_updates; dueText is normalized to dueIso
    5. child name resolved against the roster via the fuzzy matcher
    6. missing / expected_slot / status recomputed

    Args:
        session: Current session state
        delta: Validated delta for this turn
        now: Reference instant for due-date normalization

    Returns:
        New Session value
    """
    if delta.intent == INTENT_CANCEL:
        return replace(session, status=STATUS_CANCELLED)

    roster = session.children_roster
    current = session.slots
    updates = _bind_roster_id(delta.slot_updates, roster, session.session_id)

    if updates.assigned_child_name:
        if _names_same_child(current, updates.assigned_child_name, roster):
            updates = replace(
                updates,
                assigned_child_id=current.assigned_child_id or updates.assigned_child_id,
                assigned_child_name=current.assigned_child_name,
            )
        elif current.assigned_child_name:
            logger.info(
                "Different child mentioned, clearing current task",
                extra={
                    "session_id": session.session_id,
                    "previous_child": current.assigned_child_name,
                    "new_child": updates.assigned_child_name,
                },
            )
            current = Slots()

    if updates.due_text:
        updates = replace(updates, due_iso=normalize_due_text(updates.due_text, now=now))

    slots = resolve_child(current.overlay(updates), roster)
    merged = derive_state(session, slots, delta.ambiguous)

    logger.debug(
        "Merged slot updates",
        extra={
            "session_id": session.session_id,
            "intent": delta.intent,
            "slots": slots.to_dict(),
            "missing": list(merged.missing),
            "ambiguous": list(delta.ambiguous),
        },
    )
    return merged
