"""
Response Builder

Turns a merged session into the sentence to speak and, once every slot is
filled, the completed task payload. Output is fully deterministic for a given
(session, now).
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from ..clarification import Prompt, PromptReason, SLOT_LABELS, SLOT_PROMPTS, render_prompt
from ..config.core import (
    INTENT_CANCEL,
    RESPONSE_AMBIGUOUS,
    RESPONSE_CANCELLED,
    RESPONSE_CONFIRMED,
    RESPONSE_FOLLOWUP,
    STATUS_CANCELLED,
)
from ..data_types import Session, SlotDelta, TaskPayload, VoiceResponse
from ..extraction.date_normalizer import (
    iso_to_epoch_ms,
    normalize_due_text,
    now_in_zone,
    target_zone,
)
from ..extraction.fuzzy_matcher import child_followup_question, match_child
from ..merge.merger import find_child, is_child_unresolved

logger = logging.getLogger(__name__)


def format_clock(moment: datetime) -> str:
    """12-hour clock time, e.g. '6:00 PM'."""
    hour = moment.hour % 12 or 12
    period = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d} {period}"


def format_due_date(due_iso: Optional[str], due_text: Optional[str] = None,
                    now: Optional[datetime] = None) -> str:
    """
    Speakable due date relative to today, in the target zone.

    Examples:
        'today at 6:00 PM', 'tomorrow at 9:30 AM', '10/25/2026 at 5:00 PM'
    """
    if not due_iso:
        return due_text or "today"

    due = datetime.fromisoformat(due_iso)
    if due.tzinfo is None:
        due = due.replace(tzinfo=target_zone())
    due = due.astimezone(target_zone())

    today = now_in_zone(now).date()
    time_string = format_clock(due)

    if due.date() == today:
        return f"today at {time_string}"
    if due.date() == today + timedelta(days=1):
        return f"tomorrow at {time_string}"
    return f"{due.month}/{due.day}/{due.year} at {time_string}"


def _roster_names(session: Session) -> str:
    return ", ".join(child.name for child in session.children_roster)


def _unresolved_child_prompt(session: Session) -> str:
    name = session.slots.assigned_child_name
    result = match_child(name, session.children_roster)
    if result.is_ambiguous:
        return child_followup_question(result.candidates)
    return render_prompt(Prompt(
        reason=PromptReason.UNKNOWN_CHILD,
        data={"name": name, "children": _roster_names(session)},
    ))


def _slot_question(session: Session, slot: str) -> str:
    reason = SLOT_PROMPTS[slot]
    data = {"children": _roster_names(session)} if reason is PromptReason.ASK_ASSIGNED_CHILD else {}
    return render_prompt(Prompt(reason=reason, data=data))


def _ambiguous_slot_prompt(session: Session, slot: str) -> str:
    return render_prompt(Prompt(
        reason=PromptReason.AMBIGUOUS_SLOT,
        data={"slot": SLOT_LABELS[slot], "question": _slot_question(session, slot)},
    ))


def build_task_payload(session: Session, now: Optional[datetime] = None) -> TaskPayload:
    """Completed-task payload for a session with every slot filled."""
    slots = session.slots
    due_iso = slots.due_iso or normalize_due_text(slots.due_text or "", now=now)
    return TaskPayload(
        child_id=slots.assigned_child_id,
        title=slots.title,
        due_at=iso_to_epoch_ms(due_iso),
        points=int(slots.points),
    )


def build_response(session: Session, delta: Optional[SlotDelta] = None,
                   now: Optional[datetime] = None) -> VoiceResponse:
    """
    Decide what to say for the merged session.

    Priority:
    1. cancelled session (or cancel intent)
    2. child named but not resolvable against the roster
    3. slot the extractor flagged as ambiguous
    4. nothing missing: confirmation + task payload
    5. question for the first missing slot

    Args:
        session: Session after merge
        delta: The delta that produced it (optional)
        now: Reference instant for relative date wording

    Returns:
        VoiceResponse
    """
    if session.status == STATUS_CANCELLED or (delta is not None and delta.intent == INTENT_CANCEL):
        return VoiceResponse(
            type=RESPONSE_CANCELLED,
            speak=render_prompt(Prompt(reason=PromptReason.CANCELLED)),
        )

    if is_child_unresolved(session.slots):
        logger.info(
            "Unknown child mentioned",
            extra={"session_id": session.session_id, "child_name": session.slots.assigned_child_name},
        )
        return VoiceResponse(type=RESPONSE_FOLLOWUP, speak=_unresolved_child_prompt(session))

    if delta is not None and delta.ambiguous:
        slot = delta.ambiguous[0]
        logger.info(
            "Extractor flagged an ambiguous slot",
            extra={"session_id": session.session_id, "slot": slot},
        )
        return VoiceResponse(type=RESPONSE_AMBIGUOUS, speak=_ambiguous_slot_prompt(session, slot))

    if not session.missing:
        slots = session.slots
        child = find_child(session.children_roster, slots.assigned_child_id)
        child_name = child.name if child else (slots.assigned_child_name or "Unknown")
        payload = build_task_payload(session, now=now)
        speak = render_prompt(Prompt(
            reason=PromptReason.TASK_CONFIRMED,
            data={
                "title": slots.title,
                "child": child_name,
                "due": format_due_date(slots.due_iso, slots.due_text, now=now),
                "points": slots.points,
            },
        ))
        return VoiceResponse(type=RESPONSE_CONFIRMED, speak=speak, result=payload)

    return VoiceResponse(type=RESPONSE_FOLLOWUP, speak=_slot_question(session, session.missing[0]))
