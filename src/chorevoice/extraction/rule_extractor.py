"""
Rule-based delta extractor.

Deterministic, dependency-free alternative to the LLM extractor. Pulls
points, due phrases and child names out of the utterance with patterns,
then treats what is left as the task title. The slot the last prompt asked
for decides how a bare answer ("Zoe", "20", "next month") is read.
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

from ..config.core import (
    INTENT_ANSWER,
    INTENT_CANCEL,
    INTENT_NEW_TASK,
    INTENT_NOOP,
    INTENT_REVISE,
    SLOT_ASSIGNED_CHILD,
    SLOT_DUE,
    SLOT_POINTS,
    SLOT_TITLE,
)
from ..data_types import Child, SlotDelta, Slots
from .contract import DeltaExtractor
from .date_normalizer import MONTHS, WEEKDAYS

logger = logging.getLogger(__name__)

_CANCEL_RE = re.compile(
    r"\b(?:cancel|never\s*mind|forget\s+(?:it|about\s+it)|stop)\b", re.IGNORECASE
)
_NEW_TASK_RE = re.compile(
    r"\b(?:new|another)\s+(?:task|chore)\b"
    r"|\b(?:create|add|make)\s+(?:a\s+|an\s+)?(?:new\s+)?(?:task|chore)\b",
    re.IGNORECASE,
)

_POINTS_RE = re.compile(
    r"\b(?:(?:for|worth|of)\s+)?(\d{1,4})\s*(?:points?|pts?)\b"
    r"|\bworth\s+(\d{1,4})\b",
    re.IGNORECASE,
)
_BARE_NUMBER_RE = re.compile(r"^\s*(\d{1,4})\s*$")

_LEAD = r"(?:(?:due|by|on|before)\s+)?"
_DUE_SPAN_PATTERNS = (
    re.compile(_LEAD + r"\b(?:today|tonight|tomorrow|next\s+week)\b", re.IGNORECASE),
    re.compile(
        _LEAD + r"\b(?:(?:next|this)\s+)?(?:" + "|".join(WEEKDAYS) + r")\b", re.IGNORECASE
    ),
    re.compile(
        _LEAD + r"\b(?:" + "|".join(MONTHS) + r")\s+\d{1,2}(?:st|nd|rd|th)?\b", re.IGNORECASE
    ),
    re.compile(_LEAD + r"\b\d{1,2}/\d{1,2}(?:/\d{2,4})?\b"),
    re.compile(r"\b(?:(?:at|by)\s+)?(?:midnight|noon)\b", re.IGNORECASE),
    re.compile(
        r"\b(?:(?:at|by)\s+)?\d{1,2}(?:[:.]\d{2}|\s+\d{2})?\s*[ap]\.?\s?m\.?(?![a-z])",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:(?:at|by)\s+)?\d{1,2}:\d{2}\b", re.IGNORECASE),
)

_ASSIGN_PREFIX = r"(?:(?:for|to|assign(?:ed)?(?:\s+(?:it|this|that))?\s+to)\s+)?"
_FOR_NAME_RE = re.compile(
    r"\b(?:for|assign(?:ed)?(?:\s+(?:it|this|that))?\s+to)\s+([A-Z][A-Za-z'\-]+)\b"
)

# Capitalized words that follow "for" without being names
_NOT_NAMES = {w.capitalize() for w in WEEKDAYS + MONTHS} | {
    "Today", "Tonight", "Tomorrow", "Next", "This", "The", "A", "An", "Me", "Him", "Her", "Them",
}

_LEADING_FILLER_RE = re.compile(
    r"^(?:please|ok(?:ay)?|um+|uh+|so|actually|no|wait|instead|and|then"
    r"|change\s+(?:it|that|the\s+\w+)\s+to"
    r"|make\s+(?:it|that)"
    r"|call\s+it|it'?s|it\s+is|the\s+task\s+is"
    r"|(?:create|add|make|set\s+up)\s+(?:a\s+|an\s+)?(?:new\s+)?(?:task|chore)(?:\s+(?:to|called|named))?"
    r"|(?:new|another)\s+(?:task|chore)(?:\s+(?:to|called|named))?"
    r"|to)\b\s*",
    re.IGNORECASE,
)
_TRAILING_FILLER_RE = re.compile(
    r"\s*\b(?:for|by|at|due|and|to|worth|please|points?)$", re.IGNORECASE
)
_EMPTY_TITLES = {"task", "chore", "a task", "a chore", "it", "yes", "yeah", "ok", "okay", "no"}


def _blank(chars: List[str], start: int, end: int) -> None:
    for i in range(start, end):
        chars[i] = " "


def _squash(text: str) -> str:
    return " ".join(text.split())


def _strip_fillers(text: str) -> str:
    text = _squash(text.strip(" .,!?;:"))
    while True:
        stripped = _LEADING_FILLER_RE.sub("", text, count=1).strip(" .,!?;:")
        stripped = _TRAILING_FILLER_RE.sub("", stripped).strip(" .,!?;:")
        if stripped == text:
            return text
        text = stripped


class RuleBasedExtractor(DeltaExtractor):
    """
    Pattern-driven extractor.

    Example:
        >>> extractor = RuleBasedExtractor()
        >>> delta = extractor.extract("clean room tomorrow for 20 points", Slots(), "title", roster)
        >>> delta.slot_updates.title, delta.slot_updates.due_text, delta.slot_updates.points
        ('clean room', 'tomorrow', 20)
    """

    def extract(
        self,
        utterance: str,
        current_slots: Slots,
        expected_slot: Optional[str],
        roster: Sequence[Child],
    ) -> SlotDelta:
        text = _squash(utterance or "")
        if not text:
            return SlotDelta.noop("Empty utterance")

        if _CANCEL_RE.search(text):
            return SlotDelta(intent=INTENT_CANCEL)

        chars = list(text)
        updates = {}

        points = self._take_points(text, chars, expected_slot)
        if points is not None:
            updates["points"] = points

        due_text = self._take_due(text, chars)
        if due_text:
            updates["due_text"] = due_text

        child_name = self._take_child(chars, roster)
        if child_name:
            updates["assigned_child_name"] = child_name

        leftover = _strip_fillers("".join(chars))
        if leftover.lower() in _EMPTY_TITLES:
            leftover = ""
        wants_new_task = bool(_NEW_TASK_RE.search(text))

        if leftover:
            if expected_slot == SLOT_ASSIGNED_CHILD and not updates and len(leftover.split()) <= 2:
                updates["assigned_child_name"] = leftover
            elif expected_slot == SLOT_DUE and "due_text" not in updates and not wants_new_task:
                updates["due_text"] = leftover
            elif (
                expected_slot in (None, SLOT_TITLE, SLOT_ASSIGNED_CHILD)
                or not current_slots.title
                or wants_new_task
            ):
                updates["title"] = leftover

        slot_updates = Slots(**updates)
        intent = self._intent(slot_updates, current_slots, wants_new_task)
        logger.debug(
            "Rule-based extraction",
            extra={"intent": intent, "slot_updates": slot_updates.to_dict(), "expected_slot": expected_slot},
        )
        if intent == INTENT_NOOP:
            return SlotDelta.noop("Nothing recognized")
        return SlotDelta(intent=intent, slot_updates=slot_updates)

    @staticmethod
    def _take_points(text: str, chars: List[str], expected_slot: Optional[str]) -> Optional[int]:
        match = _POINTS_RE.search(text)
        if match:
            _blank(chars, match.start(), match.end())
            return int(match.group(1) or match.group(2)) or None
        if expected_slot == SLOT_POINTS:
            bare = _BARE_NUMBER_RE.match(text.strip(" .,!?"))
            if bare:
                _blank(chars, 0, len(chars))
                return int(bare.group(1)) or None
        return None

    @staticmethod
    def _take_due(text: str, chars: List[str]) -> Optional[str]:
        spans: List[Tuple[int, int]] = []
        for pattern in _DUE_SPAN_PATTERNS:
            for match in pattern.finditer(text):
                start, end = match.span()
                if any(start < e and s < end for s, e in spans):
                    continue
                if "".join(chars[start:end]).strip() != text[start:end].strip():
                    # Overlaps something already consumed (e.g. "20 points")
                    continue
                spans.append((start, end))

        if not spans:
            return None

        parts = []
        for start, end in sorted(spans):
            part = re.sub(r"^due\s+", "", text[start:end].strip(), flags=re.IGNORECASE)
            parts.append(part)
            _blank(chars, start, end)
        return " ".join(parts)

    @staticmethod
    def _take_child(chars: List[str], roster: Sequence[Child]) -> Optional[str]:
        current = "".join(chars)

        found: Optional[Tuple[int, int, str]] = None
        for child in roster:
            pattern = re.compile(_ASSIGN_PREFIX + r"\b" + re.escape(child.name) + r"\b", re.IGNORECASE)
            match = pattern.search(current)
            if match and (found is None or match.start() < found[0]):
                found = (match.start(), match.end(), child.name)

        if found is None:
            for match in _FOR_NAME_RE.finditer(current):
                if match.group(1) not in _NOT_NAMES:
                    found = (match.start(), match.end(), match.group(1))
                    break

        if found is None:
            return None
        start, end, name = found
        _blank(chars, start, end)
        return name

    @staticmethod
    def _intent(updates: Slots, current: Slots, wants_new_task: bool) -> str:
        supplied = updates.present()
        if wants_new_task:
            return INTENT_NEW_TASK
        if not supplied:
            return INTENT_NOOP

        already_filled = {
            "assigned_child_name": current.assigned_child_name,
            "title": current.title,
            "due_text": current.due_text or current.due_iso,
            "points": current.points,
        }
        if any(already_filled.get(key) for key in supplied):
            return INTENT_REVISE
        return INTENT_ANSWER
