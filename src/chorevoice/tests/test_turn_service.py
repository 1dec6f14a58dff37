"""
Unit tests for DialogueService: turn ordering, session lifecycle and the
session-implicit parse path.
"""

import random
import threading
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from chorevoice.app import DialogueService
from chorevoice.config.core import (
    SLOT_ASSIGNED_CHILD,
    SPEAK_TURN_IGNORED,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_READY,
)
from chorevoice.data_types import Child, SlotDelta, Slots, Turn
from chorevoice.errors import ProtocolError, SessionInactiveError, SessionNotFoundError
from chorevoice.extraction import DeltaExtractor, RuleBasedExtractor
from chorevoice.merge.merger import compute_missing

TOMORROW_6PM_MS = str(int(datetime(2026, 10, 15, 23, 0, tzinfo=timezone.utc).timestamp() * 1000))


def _turn(session_id, index, transcript, user_id="parent-1", roster=()):
    return Turn(
        user_id=user_id,
        session_id=session_id,
        turn_id=f"t{index}",
        turn_index=index,
        transcript=transcript,
        roster=roster,
    )


class ScriptedExtractor(DeltaExtractor):
    """Returns queued deltas in order."""

    def __init__(self, *deltas):
        self.deltas = list(deltas)

    def extract(self, utterance, current_slots, expected_slot, roster):
        return self.deltas.pop(0)


@pytest.fixture
def session_id(service, roster):
    return service.start_session("parent-1", roster).session_id


class TestHappyPath:

    def test_two_turn_task(self, service, store, session_id):
        first = service.submit_turn(_turn(session_id, 0, "Emma"))
        assert first.needs_followup is True
        assert first.speak == "What task should I create?"
        assert first.missing == ("title", "due", "points")

        second = service.submit_turn(_turn(session_id, 1, "clean room tomorrow for 20 points"))
        assert second.needs_followup is False
        assert second.missing == ()
        assert second.speak == 'Added "clean room" for Emma, due tomorrow at 6:00 PM, for 20 points.'
        assert second.result.to_dict() == {
            "childId": "1",
            "title": "clean room",
            "dueAt": TOMORROW_6PM_MS,
            "points": 20,
        }
        assert second.turn_id == "t1"
        assert second.turn_index == 1

        stored = store.get(session_id)
        assert stored.status == STATUS_READY
        assert stored.last_turn_index == 1
        assert stored.last_prompt == second.speak

    def test_unknown_child(self, service):
        session_id = service.start_session("parent-2", [Child("1", "Emma")]).session_id
        result = service.submit_turn(_turn(session_id, 0, "Zoe", user_id="parent-2"))
        assert result.needs_followup is True
        assert result.speak == (
            "I don't recognize \"Zoe\". Available children are: Emma. Who should I assign this to?"
        )

    def test_unknown_child_with_every_other_slot_stays_in_progress(self, store, clock, roster):
        extractor = ScriptedExtractor(
            SlotDelta(intent="answer", slot_updates=Slots(
                assigned_child_name="Zoe", title="dishes", due_text="today", points=5,
            )),
            SlotDelta(intent="answer", slot_updates=Slots(assigned_child_name="Emma")),
        )
        service = DialogueService(store=store, extractor=extractor, clock=clock, extraction_timeout=5)
        session_id = service.start_session("parent-1", roster).session_id

        first = service.submit_turn(_turn(session_id, 0, "Zoe dishes today 5 points"))
        stored = store.get(session_id)
        assert first.needs_followup is True
        assert first.missing == ()
        assert first.result is None
        assert stored.status == STATUS_IN_PROGRESS
        assert stored.expected_slot == SLOT_ASSIGNED_CHILD

        second = service.submit_turn(_turn(session_id, 1, "Emma"))
        assert second.speak == "What task should I create?"
        assert store.get(session_id).slots.assigned_child_id == "1"

    def test_ambiguous_slot_needs_followup(self, store, clock, roster):
        extractor = ScriptedExtractor(SlotDelta(
            intent="answer",
            slot_updates=Slots(assigned_child_name="Emma", title="dishes", due_text="today", points=5),
            ambiguous=("points",),
        ))
        service = DialogueService(store=store, extractor=extractor, clock=clock, extraction_timeout=5)
        session_id = service.start_session("parent-1", roster).session_id

        result = service.submit_turn(_turn(session_id, 0, "Emma dishes today five or six points"))

        assert result.needs_followup is True
        assert result.result is None
        assert result.speak == "Sorry, I'm not sure about the points. How many points is this worth?"
        assert store.get(session_id).status == STATUS_IN_PROGRESS

    def test_turn_roster_adopted_when_session_has_none(self, service, store):
        session_id = service.start_session("parent-3").session_id
        result = service.submit_turn(
            _turn(session_id, 0, "Emma", user_id="parent-3", roster=(Child("1", "Emma"),))
        )
        assert result.speak == "What task should I create?"
        assert store.get(session_id).children_roster == (Child("1", "Emma"),)


class TestOrdering:

    def test_replayed_turn_is_ignored(self, service, store, session_id):
        service.submit_turn(_turn(session_id, 0, "Emma"))
        before = store.get(session_id)

        replay = service.submit_turn(_turn(session_id, 0, "Liam"))

        assert replay.speak == SPEAK_TURN_IGNORED
        assert replay.needs_followup is False
        assert replay.missing == ()
        assert replay.question == ""
        assert store.get(session_id) == before

    def test_replay_after_completion_is_still_ignored(self, service, session_id):
        service.submit_turn(_turn(session_id, 0, "Emma"))
        service.submit_turn(_turn(session_id, 1, "clean room tomorrow for 20 points"))
        assert service.submit_turn(_turn(session_id, 0, "Emma")).speak == SPEAK_TURN_IGNORED

    def test_gaps_in_indices_are_allowed(self, service, session_id):
        result = service.submit_turn(_turn(session_id, 7, "Emma"))
        assert result.turn_index == 7
        assert service.submit_turn(_turn(session_id, 3, "Liam")).speak == SPEAK_TURN_IGNORED

    def test_turn_superseded_during_extraction(self, store, clock, roster):
        class Interloper(DeltaExtractor):
            session_id = None

            def extract(self, utterance, current_slots, expected_slot, roster):
                with store.lock(self.session_id):
                    store.update(self.session_id, last_turn_index=5)
                return SlotDelta(intent="answer", slot_updates=Slots(title="dishes"))

        extractor = Interloper()
        service = DialogueService(store=store, extractor=extractor, clock=clock, extraction_timeout=5)
        extractor.session_id = service.start_session("parent-1", roster).session_id

        result = service.submit_turn(_turn(extractor.session_id, 0, "dishes"))

        assert result.speak == SPEAK_TURN_IGNORED
        assert store.get(extractor.session_id).slots.title is None

    def test_concurrent_turns_keep_state_consistent(self, service, store, session_id):
        indices = list(range(20))
        random.Random(7).shuffle(indices)
        errors = []

        def submit(index):
            try:
                service.submit_turn(_turn(session_id, index, "Emma" if index % 2 else "um"))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=submit, args=(i,)) for i in indices]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        final = store.get(session_id)
        assert final.last_turn_index == 19
        assert final.missing == compute_missing(final.slots)
        assert final.status == STATUS_IN_PROGRESS


class TestLifecycle:

    def test_unknown_session(self, service):
        with pytest.raises(SessionNotFoundError):
            service.submit_turn(_turn("does-not-exist", 0, "Emma"))

    def test_expired_session(self, service, clock, session_id):
        clock.advance(minutes=15, seconds=1)
        with pytest.raises(SessionNotFoundError):
            service.submit_turn(_turn(session_id, 0, "Emma"))

    def test_cancel_then_further_turns_rejected(self, service, store, session_id):
        service.submit_turn(_turn(session_id, 0, "Emma"))
        cancelled = service.submit_turn(_turn(session_id, 1, "cancel"))

        assert cancelled.speak == "Task creation cancelled."
        assert cancelled.needs_followup is False
        assert cancelled.missing == ()
        assert store.get(session_id).status == STATUS_CANCELLED

        with pytest.raises(SessionInactiveError):
            service.submit_turn(_turn(session_id, 2, "Liam"))

    def test_completed_session_rejects_new_turns(self, service, session_id):
        service.submit_turn(_turn(session_id, 0, "Emma"))
        service.submit_turn(_turn(session_id, 1, "clean room tomorrow for 20 points"))
        with pytest.raises(SessionInactiveError):
            service.submit_turn(_turn(session_id, 2, "make it 30 points"))

    def test_start_session_cancels_previous(self, service, store, roster):
        first = service.start_session("parent-9", roster)
        second = service.start_session("parent-9", roster)

        assert first.session_id != second.session_id
        assert store.get(first.session_id).status == STATUS_CANCELLED
        assert store.get(second.session_id).status == STATUS_IN_PROGRESS

    def test_start_session_leaves_session_that_became_ready(self, service, store, roster):
        first = service.start_session("parent-9", roster)
        store.update(first.session_id, status=STATUS_READY)

        # listing still reports the session as in progress
        with patch.object(store, "list_active_by_user", return_value=[first]):
            service.start_session("parent-9", roster)

        assert store.get(first.session_id).status == STATUS_READY

    def test_complete_session(self, service, store, session_id):
        service.submit_turn(_turn(session_id, 0, "Emma"))
        service.submit_turn(_turn(session_id, 1, "clean room tomorrow for 20 points"))

        completed = service.complete_session(session_id)

        assert completed.status == STATUS_COMPLETED
        assert store.get(session_id).status == STATUS_COMPLETED

    def test_complete_session_requires_ready(self, service, session_id):
        with pytest.raises(SessionInactiveError):
            service.complete_session(session_id)
        with pytest.raises(SessionNotFoundError):
            service.complete_session("does-not-exist")

    def test_start_session_requires_user(self, service):
        with pytest.raises(ProtocolError):
            service.start_session("")

    def test_extractor_failure_reasks(self, store, clock, roster):
        class Broken(DeltaExtractor):
            def extract(self, utterance, current_slots, expected_slot, roster):
                raise RuntimeError("boom")

        service = DialogueService(store=store, extractor=Broken(), clock=clock, extraction_timeout=5)
        session_id = service.start_session("parent-1", roster).session_id

        result = service.submit_turn(_turn(session_id, 0, "Emma"))

        assert result.needs_followup is True
        assert result.speak == "Who should I assign this to? (Emma, Liam)"
        assert store.get(session_id).last_turn_index == 0

    def test_debug_sessions(self, service, roster):
        service.start_session("parent-5", roster)
        service.start_session("parent-5", roster)
        dump = service.debug_sessions("parent-5")
        assert dump["userId"] == "parent-5"
        assert dump["totalSessions"] == 2
        assert dump["activeSessions"] == 1


class TestProtocol:

    @pytest.mark.parametrize(
        "turn",
        [
            Turn(user_id="", session_id="s", turn_id="t", turn_index=0, transcript="Emma"),
            Turn(user_id="u", session_id="", turn_id="t", turn_index=0, transcript="Emma"),
            Turn(user_id="u", session_id="s", turn_id="", turn_index=0, transcript="Emma"),
            Turn(user_id="u", session_id="s", turn_id="t", turn_index=-1, transcript="Emma"),
            Turn(user_id="u", session_id="s", turn_id="t", turn_index=True, transcript="Emma"),
            Turn(user_id="u", session_id="s", turn_id="t", turn_index=0, transcript="   "),
        ],
    )
    def test_invalid_turns(self, service, turn):
        with pytest.raises(ProtocolError):
            service.submit_turn(turn)


class TestParseUtterance:

    def test_implicit_session_and_continuation(self, service, roster):
        first = service.parse_utterance("Emma", roster=roster)
        assert first.speak == "What task should I create?"
        assert first.turn_id is None
        assert "turnId" not in first.to_dict()

        second = service.parse_utterance(
            "clean room tomorrow for 20 points", roster=roster, session_id=first.session_id
        )
        assert second.session_id == first.session_id
        assert second.result.due_at == TOMORROW_6PM_MS

    def test_unknown_session_id_creates_one(self, service, roster):
        result = service.parse_utterance("Emma", roster=roster, session_id="stale-id")
        assert result.session_id != "stale-id"

    def test_new_task_after_ready_starts_fresh(self, service, store, roster):
        done = service.parse_utterance(
            "Create a task for Emma to clean her room tomorrow at 5pm for 10 points",
            roster=roster,
            user_id="parent-1",
        )
        assert done.speak == 'Added "clean her room" for Emma, due tomorrow at 5:00 PM, for 10 points.'

        fresh = service.parse_utterance(
            "create a new task for Emma", roster=roster, session_id=done.session_id, user_id="parent-1"
        )

        assert fresh.session_id != done.session_id
        assert fresh.speak == "What task should I create?"
        assert store.get(done.session_id).status == STATUS_READY

    def test_utterance_after_completion_starts_fresh(self, service, store, roster):
        done = service.parse_utterance(
            "Create a task for Emma to clean her room tomorrow at 5pm for 10 points",
            roster=roster,
            user_id="parent-1",
        )
        service.complete_session(done.session_id)

        fresh = service.parse_utterance("Liam", roster=roster, session_id=done.session_id, user_id="parent-1")

        assert fresh.session_id != done.session_id
        assert fresh.speak == "What task should I create?"
        assert store.get(done.session_id).status == STATUS_COMPLETED

    def test_blank_transcript(self, service):
        with pytest.raises(ProtocolError):
            service.parse_utterance("  ")


class TestExtractorFactory:

    def test_default_is_rule_based(self, store):
        assert isinstance(DialogueService(store=store).extractor, RuleBasedExtractor)
