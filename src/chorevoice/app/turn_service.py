"""
Dialogue turn orchestration.

DialogueService ties the pieces together for each inbound utterance:

    guard (under lock) -> extract (no lock) -> re-guard + merge (under lock) -> respond

Extraction can be slow (an LLM call), so it never runs while a session lock
is held. Instead the turn claims the session by recording its turn index,
releases the lock, extracts, then re-checks under the lock that no later turn
claimed the session in the meantime.
"""

import logging
import uuid
from dataclasses import replace
from typing import Any, Dict, Optional, Sequence, Tuple

from ..config import ChoreVoiceConfig, config as default_config
from ..config.core import (
    INTENT_NEW_TASK,
    RESPONSE_AMBIGUOUS,
    RESPONSE_CANCELLED,
    RESPONSE_FOLLOWUP,
    SPEAK_TURN_IGNORED,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_READY,
)
from ..data_types import Session, SlotDelta, Turn, TurnResult, VoiceResponse, parse_roster
from ..errors import ProtocolError, SessionInactiveError, SessionNotFoundError
from ..extraction import DeltaExtractor, RuleBasedExtractor, safe_extract
from ..memory import Clock, SessionStore, create_session_store
from ..merge import merge_delta
from ..response import build_response

logger = logging.getLogger(__name__)


def create_extractor(cfg: Optional[ChoreVoiceConfig] = None) -> DeltaExtractor:
    """
    Build the configured delta extractor.

    Raises:
        ValueError: If EXTRACTOR names an unknown extractor
    """
    cfg = cfg or default_config
    if cfg.EXTRACTOR == "rules":
        return RuleBasedExtractor()
    if cfg.EXTRACTOR == "llm":
        from ..llm import LLMExtractor
        return LLMExtractor(
            model=cfg.LLM_MODEL,
            api_key=cfg.OPENAI_API_KEY,
            fallback=RuleBasedExtractor(),
        )
    raise ValueError(f"Unknown EXTRACTOR: {cfg.EXTRACTOR!r} (expected 'rules' or 'llm')")


def _stale_result(session_id: str, turn: Turn) -> TurnResult:
    return TurnResult(
        needs_followup=False,
        missing=(),
        question="",
        speak=SPEAK_TURN_IGNORED,
        session_id=session_id,
        turn_id=turn.turn_id,
        turn_index=turn.turn_index,
    )


def to_turn_result(session: Session, response: VoiceResponse, turn: Optional[Turn] = None) -> TurnResult:
    """Convert a generated response into the submit-turn response shape."""
    turn_id = turn.turn_id if turn else None
    turn_index = turn.turn_index if turn else None

    if response.type == RESPONSE_CANCELLED:
        return TurnResult(
            needs_followup=False,
            missing=(),
            question="",
            speak=response.speak,
            session_id=session.session_id,
            turn_id=turn_id,
            turn_index=turn_index,
        )
    return TurnResult(
        needs_followup=response.type in (RESPONSE_FOLLOWUP, RESPONSE_AMBIGUOUS),
        missing=session.missing,
        question=response.speak,
        speak=response.speak,
        session_id=session.session_id,
        result=response.result,
        turn_id=turn_id,
        turn_index=turn_index,
    )


class DialogueService:
    """
    Multi-turn slot-filling dialogue over a SessionStore.

    Args:
        store: Session store (defaults to the configured backend)
        extractor: Delta extractor (defaults to the configured extractor)
        clock: Time source shared by TTLs, date normalization and wording
        extraction_timeout: Seconds allowed per extraction (None disables)
        cfg: Configuration (defaults to the global config)
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        extractor: Optional[DeltaExtractor] = None,
        clock: Optional[Clock] = None,
        extraction_timeout: Optional[float] = None,
        cfg: Optional[ChoreVoiceConfig] = None,
    ):
        self.cfg = cfg or default_config
        self.store = store or create_session_store(self.cfg, clock=clock)
        self.clock = clock or self.store.clock
        self.extractor = extractor or create_extractor(self.cfg)
        self.extraction_timeout = (
            extraction_timeout if extraction_timeout is not None else self.cfg.EXTRACTION_TIMEOUT_SECONDS
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(self, user_id: str, roster: Optional[Sequence[Any]] = None) -> Session:
        """
        Start a new session, cancelling any in-progress session of the user.

        Raises:
            ProtocolError: If user_id is missing
        """
        if not user_id:
            raise ProtocolError("Missing required field: userId")

        for existing in self.store.list_active_by_user(user_id):
            with self.store.lock(existing.session_id):
                current = self.store.get(existing.session_id)
                if current is None or current.status != STATUS_IN_PROGRESS:
                    continue
                self.store.update(existing.session_id, status=STATUS_CANCELLED)
            logger.info(
                "Closed existing session",
                extra={"session_id": existing.session_id, "user_id": user_id},
            )

        session = self.store.create(str(uuid.uuid4()), parse_roster(list(roster or [])), user_id=user_id)
        logger.info(
            "Started new session",
            extra={
                "session_id": session.session_id,
                "user_id": user_id,
                "roster_size": len(session.children_roster),
            },
        )
        return session

    def complete_session(self, session_id: str) -> Session:
        """
        Mark a ready session as completed once its task has been created.

        Raises:
            SessionNotFoundError: If the session does not exist or expired
            SessionInactiveError: If the session is not ready_to_create
        """
        with self.store.lock(session_id):
            session = self.store.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            if session.status != STATUS_READY:
                raise SessionInactiveError(session_id, session.status)
            completed = self.store.update(session_id, status=STATUS_COMPLETED)
        logger.info("Session completed", extra={"session_id": session_id})
        return completed

    def debug_sessions(self, user_id: str) -> Dict[str, Any]:
        """Dump every live session of a user (development aid)."""
        if not user_id:
            raise ProtocolError("Missing userId query parameter")
        sessions = self.store.list_by_user(user_id)
        active = [s for s in sessions if s.status == STATUS_IN_PROGRESS]
        return {
            "userId": user_id,
            "totalSessions": len(sessions),
            "activeSessions": len(active),
            "sessions": [
                {
                    "sessionId": s.session_id,
                    "status": s.status,
                    "slots": s.slots.to_dict(),
                    "missing": list(s.missing),
                    "expectedSlot": s.expected_slot,
                    "lastTurnIndex": s.last_turn_index,
                    "lastTurnId": s.last_turn_id,
                    "createdAt": s.created_at.isoformat(),
                    "expiresAt": s.expires_at.isoformat(),
                }
                for s in sessions
            ],
        }

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_turn(turn: Turn) -> None:
        if not turn.user_id or not turn.session_id or not turn.turn_id:
            raise ProtocolError(
                "Missing required headers: x-user-id, x-session-id, x-turn-id, x-turn-index"
            )
        if isinstance(turn.turn_index, bool) or not isinstance(turn.turn_index, int) or turn.turn_index < 0:
            raise ProtocolError("x-turn-index must be a non-negative integer")
        if not turn.transcript or not turn.transcript.strip():
            raise ProtocolError("Missing required fields: transcript, children")

    def _extract(self, session: Session, transcript: str, log_context: Dict[str, Any]) -> SlotDelta:
        return safe_extract(
            self.extractor,
            transcript,
            session.slots,
            session.expected_slot,
            session.children_roster,
            timeout=self.extraction_timeout,
            log_context=log_context,
        )

    def _respond(self, session: Session, delta: SlotDelta) -> Tuple[Session, VoiceResponse]:
        """Merge, build the response and store the result. Caller holds the lock."""
        now = self.clock()
        merged = merge_delta(session, delta, now=now)
        response = build_response(merged, delta, now=now)
        merged = self.store.save(replace(merged, last_prompt=response.speak))
        return merged, response

    def submit_turn(self, turn: Turn) -> TurnResult:
        """
        Process one turn of an explicit session.

        Raises:
            ProtocolError: Missing or invalid turn fields
            SessionNotFoundError: Unknown or expired session
            SessionInactiveError: Session no longer in progress
        """
        self._validate_turn(turn)
        log_context = {
            "session_id": turn.session_id,
            "user_id": turn.user_id,
            "turn_id": turn.turn_id,
            "turn_index": turn.turn_index,
        }

        with self.store.lock(turn.session_id):
            session = self.store.get(turn.session_id)
            if session is None:
                raise SessionNotFoundError(turn.session_id)
            if turn.turn_index <= session.last_turn_index:
                logger.info(
                    f"Ignoring out-of-order turn {turn.turn_index} (last: {session.last_turn_index})",
                    extra=log_context,
                )
                return _stale_result(session.session_id, turn)
            if session.status != STATUS_IN_PROGRESS:
                raise SessionInactiveError(session.session_id, session.status)

            claim = {"last_turn_index": turn.turn_index, "last_turn_id": turn.turn_id}
            if turn.roster and not session.children_roster:
                claim["children_roster"] = parse_roster(list(turn.roster))
            session = self.store.save(replace(session, **claim))

        logger.info("Processing turn", extra=log_context)
        delta = self._extract(session, turn.transcript, log_context)

        with self.store.lock(turn.session_id):
            current = self.store.get(turn.session_id)
            if current is None:
                raise SessionNotFoundError(turn.session_id)
            if current.last_turn_index > turn.turn_index:
                logger.info(
                    f"Turn {turn.turn_index} superseded by turn {current.last_turn_index} during extraction",
                    extra=log_context,
                )
                return _stale_result(current.session_id, turn)
            if current.status != STATUS_IN_PROGRESS:
                raise SessionInactiveError(current.session_id, current.status)

            merged, response = self._respond(current, delta)

        logger.info(
            "Turn processed",
            extra={
                **log_context,
                "intent": delta.intent,
                "response_type": response.type,
                "status": merged.status,
                "missing": list(merged.missing),
            },
        )
        return to_turn_result(merged, response, turn)

    def parse_utterance(
        self,
        transcript: str,
        roster: Optional[Sequence[Any]] = None,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> TurnResult:
        """
        Process an utterance without turn metadata.

        A session is created when session_id is absent, unknown or expired.
        A new_task intent on a session that already produced a task, or any
        utterance on a cancelled or completed session, starts a fresh one.

        Raises:
            ProtocolError: If transcript is missing
        """
        if not transcript or not transcript.strip():
            raise ProtocolError("Missing required fields: transcript, children")
        roster = parse_roster(list(roster or []))

        session = self.store.get(session_id) if session_id else None
        if session is None:
            session = self._fresh_session(roster, user_id)
            logger.info(
                "Created implicit session",
                extra={"session_id": session.session_id, "requested_session_id": session_id},
            )

        log_context = {"session_id": session.session_id, "user_id": user_id}
        delta = self._extract(session, transcript, log_context)

        with self.store.lock(session.session_id):
            current = self.store.get(session.session_id) or session
            starts_over = current.status in (STATUS_CANCELLED, STATUS_COMPLETED) or (
                current.status == STATUS_READY and delta.intent == INTENT_NEW_TASK
            )
            if starts_over:
                previous_id = current.session_id
                current = self._fresh_session(roster or current.children_roster, user_id or current.user_id)
                logger.info(
                    "Previous task finished, starting fresh session",
                    extra={"session_id": current.session_id, "previous_session_id": previous_id},
                )
            merged, response = self._respond(current, delta)

        logger.info(
            "Utterance processed",
            extra={**log_context, "intent": delta.intent, "response_type": response.type, "status": merged.status},
        )
        return to_turn_result(merged, response)

    def _fresh_session(self, roster: Sequence[Any], user_id: Optional[str]) -> Session:
        if user_id:
            return self.start_session(user_id, roster)
        return self.store.create(str(uuid.uuid4()), parse_roster(list(roster)))
