"""
Data structures for the voice dialogue engine.

This module defines the contracts between engine stages using dataclasses.
Slots and deltas are explicit optional-field records; sessions are frozen
values that the merge engine replaces rather than mutates.
"""
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .config.core import (
    DELTA_INTENTS,
    INTENT_NOOP,
    SESSION_STATUSES,
    SLOT_ORDER,
    STATUS_IN_PROGRESS,
)
from .errors import StoreCorruptionError

# Python attribute name -> wire name used in JSON payloads and storage
_SLOT_WIRE_NAMES = {
    "assigned_child_id": "assignedChildId",
    "assigned_child_name": "assignedChildName",
    "title": "title",
    "due_text": "dueText",
    "due_iso": "dueIso",
    "points": "points",
}


@dataclass(frozen=True)
class Child:
    """A roster entry a task can be assigned to."""
    id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Child":
        return cls(id=str(data["id"]), name=str(data["name"]))


Roster = Tuple[Child, ...]


def parse_roster(raw: Optional[List[Any]]) -> Roster:
    """
    Build a roster from request data.

    Accepts Child instances or {"id", "name"} dicts. Entries without both
    fields are skipped.
    """
    children: List[Child] = []
    for entry in raw or []:
        if isinstance(entry, Child):
            children.append(entry)
        elif isinstance(entry, dict) and entry.get("id") is not None and entry.get("name"):
            children.append(Child.from_dict(entry))
    return tuple(children)


@dataclass(frozen=True)
class Slots:
    """Partial task record being filled across turns."""
    assigned_child_id: Optional[str] = None
    assigned_child_name: Optional[str] = None
    title: Optional[str] = None
    due_text: Optional[str] = None
    due_iso: Optional[str] = None
    points: Optional[int] = None

    def present(self) -> Dict[str, Any]:
        """Return only the fields that are set."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def overlay(self, updates: "Slots") -> "Slots":
        """Last-write-wins merge: fields set in ``updates`` replace ours."""
        return replace(self, **updates.present())

    def to_dict(self) -> Dict[str, Any]:
        return {_SLOT_WIRE_NAMES[k]: v for k, v in self.present().items()}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Slots":
        data = data or {}
        values = {}
        for attr, wire in _SLOT_WIRE_NAMES.items():
            if wire in data:
                values[attr] = data[wire]
            elif attr in data:
                values[attr] = data[attr]
        return cls(**values)


@dataclass(frozen=True)
class SlotDelta:
    """
    Structured update extracted from one utterance.

    Attributes:
        intent: One of answer, revise, new_task, cancel, noop
        slot_updates: Fields the utterance supplied
        ambiguous: Slot names the extractor could not resolve
        notes: Free-text extractor notes
    """
    intent: str = INTENT_NOOP
    slot_updates: Slots = field(default_factory=Slots)
    ambiguous: Tuple[str, ...] = ()
    notes: Optional[str] = None

    def __post_init__(self):
        if self.intent not in DELTA_INTENTS:
            raise ValueError(f"Unknown delta intent: {self.intent!r}")

    @classmethod
    def noop(cls, notes: Optional[str] = None) -> "SlotDelta":
        return cls(intent=INTENT_NOOP, notes=notes)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "intent": self.intent,
            "slot_updates": self.slot_updates.to_dict(),
        }
        if self.ambiguous:
            data["ambiguous"] = list(self.ambiguous)
        if self.notes:
            data["notes"] = self.notes
        return data


@dataclass(frozen=True)
class Turn:
    """One inbound utterance within a session."""
    user_id: str
    session_id: str
    turn_id: str
    turn_index: int
    transcript: str
    roster: Roster = ()


@dataclass(frozen=True)
class TaskPayload:
    """Completed task handed to the persistence collaborator."""
    child_id: str
    title: str
    due_at: str  # epoch milliseconds, string-encoded
    points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "childId": self.child_id,
            "title": self.title,
            "dueAt": self.due_at,
            "points": self.points,
        }


@dataclass(frozen=True)
class VoiceResponse:
    """Output of the response generator for one merged state."""
    type: str
    speak: str
    result: Optional[TaskPayload] = None


@dataclass(frozen=True)
class Session:
    """
    Server-held state for one in-progress voice dialogue.

    ``missing`` and ``expected_slot`` are derived by the merge engine and kept
    here so reads never have to recompute them.
    """
    session_id: str
    created_at: datetime
    expires_at: datetime
    user_id: Optional[str] = None
    slots: Slots = field(default_factory=Slots)
    missing: Tuple[str, ...] = SLOT_ORDER
    expected_slot: Optional[str] = SLOT_ORDER[0]
    children_roster: Roster = ()
    status: str = STATUS_IN_PROGRESS
    last_turn_index: int = -1
    last_turn_id: Optional[str] = None
    last_prompt: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "userId": self.user_id,
            "slots": self.slots.to_dict(),
            "missing": list(self.missing),
            "expectedSlot": self.expected_slot,
            "childrenRoster": [c.to_dict() for c in self.children_roster],
            "status": self.status,
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
            "lastTurnIndex": self.last_turn_index,
            "lastTurnId": self.last_turn_id,
            "lastAiPrompt": self.last_prompt,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """
        Rebuild a session from its stored form.

        Raises:
            StoreCorruptionError: If required fields are missing or invalid
        """
        try:
            status = data["status"]
            if status not in SESSION_STATUSES:
                raise ValueError(f"unknown status {status!r}")
            missing = tuple(data.get("missing", SLOT_ORDER))
            if any(slot not in SLOT_ORDER for slot in missing):
                raise ValueError(f"unknown slot in missing: {missing}")
            return cls(
                session_id=data["sessionId"],
                user_id=data.get("userId"),
                slots=Slots.from_dict(data.get("slots")),
                missing=missing,
                expected_slot=data.get("expectedSlot"),
                children_roster=parse_roster(data.get("childrenRoster")),
                status=status,
                created_at=datetime.fromisoformat(data["createdAt"]),
                expires_at=datetime.fromisoformat(data["expiresAt"]),
                last_turn_index=int(data.get("lastTurnIndex", -1)),
                last_turn_id=data.get("lastTurnId"),
                last_prompt=data.get("lastAiPrompt"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StoreCorruptionError(f"Invalid session structure: {e}") from e


@dataclass(frozen=True)
class TurnResult:
    """
    Submit-turn response shape.

    ``turn_id``/``turn_index`` are omitted from the wire form when the turn
    came through the session-implicit parse path.
    """
    needs_followup: bool
    missing: Tuple[str, ...]
    question: str
    speak: str
    session_id: str
    result: Optional[TaskPayload] = None
    turn_id: Optional[str] = None
    turn_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "needsFollowup": self.needs_followup,
            "missing": list(self.missing),
            "question": self.question,
            "result": self.result.to_dict() if self.result else None,
            "speak": self.speak,
            "sessionId": self.session_id,
        }
        if self.turn_id is not None:
            data["turnId"] = self.turn_id
        if self.turn_index is not None:
            data["turnIndex"] = self.turn_index
        return data
