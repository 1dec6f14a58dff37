"""
Roster-scoped fuzzy matching for spoken child names.

Speech-to-text often mangles names ("Emely", "em"), so a spoken name is
resolved against the session roster with progressively looser rules:

    exact  →  prefix  →  substring  →  Levenshtein distance

The first rule that produces a decision wins. A rule that hits several
children produces an ambiguous result instead of falling through, so the
caller can ask the user to pick.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from ..config import config
from ..data_types import Child


@dataclass(frozen=True)
class ChildMatch:
    """
    Result of resolving a name against a roster.

    Attributes:
        match: The resolved child, or None
        is_ambiguous: True when several children tie
        candidates: Children considered for the decision
    """
    match: Optional[Child]
    is_ambiguous: bool
    candidates: Tuple[Child, ...]

    @classmethod
    def none(cls) -> "ChildMatch":
        return cls(match=None, is_ambiguous=False, candidates=())

    @classmethod
    def unique(cls, child: Child) -> "ChildMatch":
        return cls(match=child, is_ambiguous=False, candidates=(child,))

    @classmethod
    def ambiguous(cls, children: Sequence[Child]) -> "ChildMatch":
        return cls(match=None, is_ambiguous=True, candidates=tuple(children))


def _decide(hits: List[Child]) -> Optional[ChildMatch]:
    if len(hits) == 1:
        return ChildMatch.unique(hits[0])
    if len(hits) > 1:
        return ChildMatch.ambiguous(hits)
    return None


def match_child(
    input_name: str,
    roster: Sequence[Child],
    max_distance: Optional[int] = None
) -> ChildMatch:
    """
    Resolve a spoken name against the roster.

    Args:
        input_name: Name as extracted from the utterance
        roster: Children valid for this session
        max_distance: Levenshtein cutoff (defaults to config.FUZZY_MAX_DISTANCE)

    Returns:
        ChildMatch

    Examples:
        >>> roster = [Child("1", "Emma"), Child("2", "Eli")]
        >>> match_child("emma", roster).match.name
        'Emma'
        >>> match_child("e", roster).is_ambiguous
        True
    """
    if max_distance is None:
        max_distance = config.FUZZY_MAX_DISTANCE

    needle = (input_name or "").strip().lower()
    if not roster or not needle:
        return ChildMatch.none()

    for child in roster:
        if child.name.lower() == needle:
            return ChildMatch.unique(child)

    decision = _decide([c for c in roster if c.name.lower().startswith(needle)])
    if decision:
        return decision

    decision = _decide([c for c in roster if needle in c.name.lower()])
    if decision:
        return decision

    scored = [
        (Levenshtein.distance(needle, child.name.lower()), child)
        for child in roster
    ]
    scored = [(score, child) for score, child in scored if score <= max_distance]
    if not scored:
        return ChildMatch.none()

    best_score = min(score for score, _ in scored)
    best = [child for score, child in scored if score == best_score]
    return _decide(best)


def child_followup_question(candidates: Sequence[Child]) -> str:
    """
    Build the disambiguation question for a set of candidate children.

    Examples:
        >>> child_followup_question([Child("1", "Emma"), Child("2", "Eli")])
        'Did you mean Emma or Eli?'
    """
    names = [c.name for c in candidates]
    if not names:
        return "I didn't find any children with that name. Could you try again?"
    if len(names) == 1:
        return f"Did you mean {names[0]}?"
    if len(names) == 2:
        return f"Did you mean {names[0]} or {names[1]}?"
    return f"Which child did you mean: {', '.join(names[:-1])}, or {names[-1]}?"
