"""
Unit tests for the rule-based extractor and safe_extract().
"""

import time

import pytest

from chorevoice.config.core import (
    INTENT_ANSWER,
    INTENT_CANCEL,
    INTENT_NEW_TASK,
    INTENT_NOOP,
    INTENT_REVISE,
)
from chorevoice.data_types import SlotDelta, Slots
from chorevoice.extraction import DeltaExtractor, RuleBasedExtractor, safe_extract


@pytest.fixture
def extractor():
    return RuleBasedExtractor()


EMMA = Slots(assigned_child_id="1", assigned_child_name="Emma")
FULL = Slots(
    assigned_child_id="1",
    assigned_child_name="Emma",
    title="clean room",
    due_text="tomorrow",
    points=20,
)


class TestSingleSlotAnswers:

    def test_roster_name(self, extractor, roster):
        delta = extractor.extract("Emma", Slots(), "assignedChild", roster)
        assert delta.intent == INTENT_ANSWER
        assert delta.slot_updates == Slots(assigned_child_name="Emma")

    def test_unknown_name_when_child_expected(self, extractor, roster):
        delta = extractor.extract("Zoe", Slots(), "assignedChild", roster)
        assert delta.slot_updates.assigned_child_name == "Zoe"

    def test_bare_number_when_points_expected(self, extractor, roster):
        current = Slots(assigned_child_id="1", assigned_child_name="Emma", title="dishes", due_text="today")
        delta = extractor.extract("20", current, "points", roster)
        assert delta.slot_updates == Slots(points=20)

    def test_worth_without_unit(self, extractor, roster):
        delta = extractor.extract("worth 15", EMMA, "points", roster)
        assert delta.slot_updates.points == 15

    def test_free_text_due_when_due_expected(self, extractor, roster):
        current = Slots(assigned_child_id="1", assigned_child_name="Emma", title="dishes")
        delta = extractor.extract("next month", current, "due", roster)
        assert delta.slot_updates == Slots(due_text="next month")

    def test_due_lead_word_is_dropped(self, extractor, roster):
        delta = extractor.extract("due Friday", EMMA, "due", roster)
        assert delta.slot_updates.due_text == "Friday"


class TestMultiSlotUtterances:

    def test_title_due_and_points(self, extractor, roster):
        delta = extractor.extract("clean room tomorrow for 20 points", EMMA, "title", roster)
        assert delta.intent == INTENT_ANSWER
        assert delta.slot_updates == Slots(title="clean room", due_text="tomorrow", points=20)

    def test_full_new_task_sentence(self, extractor, roster):
        delta = extractor.extract(
            "Create a task for Emma to clean her room tomorrow at 5pm for 10 points",
            Slots(),
            "assignedChild",
            roster,
        )
        assert delta.intent == INTENT_NEW_TASK
        assert delta.slot_updates == Slots(
            assigned_child_name="Emma",
            title="clean her room",
            due_text="tomorrow at 5pm",
            points=10,
        )

    def test_unknown_name_after_for(self, extractor, roster):
        delta = extractor.extract("for Zoe to do the dishes", Slots(), "assignedChild", roster)
        assert delta.slot_updates.assigned_child_name == "Zoe"
        assert delta.slot_updates.title == "do the dishes"

    def test_weekday_after_for_is_not_a_name(self, extractor, roster):
        delta = extractor.extract("for Friday", EMMA, "due", roster)
        assert delta.slot_updates.assigned_child_name is None
        assert delta.slot_updates.due_text == "Friday"


class TestIntents:

    @pytest.mark.parametrize("utterance", ["cancel", "never mind", "forget it", "Stop."])
    def test_cancel(self, extractor, roster, utterance):
        delta = extractor.extract(utterance, EMMA, "title", roster)
        assert delta.intent == INTENT_CANCEL

    def test_revise_points(self, extractor, roster):
        delta = extractor.extract("actually make it 30 points", FULL, None, roster)
        assert delta.intent == INTENT_REVISE
        assert delta.slot_updates == Slots(points=30)

    def test_switching_child_is_a_revision(self, extractor, roster):
        delta = extractor.extract("Liam", EMMA, "title", roster)
        assert delta.intent == INTENT_REVISE
        assert delta.slot_updates.assigned_child_name == "Liam"

    @pytest.mark.parametrize("utterance", ["um", "", "   ", "okay"])
    def test_nothing_usable_is_noop(self, extractor, roster, utterance):
        delta = extractor.extract(utterance, EMMA, "title", roster)
        assert delta.intent == INTENT_NOOP
        assert delta.slot_updates == Slots()


class _Raises(DeltaExtractor):
    def extract(self, utterance, current_slots, expected_slot, roster):
        raise RuntimeError("model exploded")


class _Slow(DeltaExtractor):
    def extract(self, utterance, current_slots, expected_slot, roster):
        time.sleep(0.5)
        return SlotDelta(intent=INTENT_ANSWER, slot_updates=Slots(title="late"))


class _Returns(DeltaExtractor):
    def __init__(self, value):
        self.value = value

    def extract(self, utterance, current_slots, expected_slot, roster):
        return self.value


class TestSafeExtract:

    def test_exception_becomes_noop(self, roster):
        delta = safe_extract(_Raises(), "hi", Slots(), "title", roster)
        assert delta.intent == INTENT_NOOP
        assert delta.notes == "Extraction failed: RuntimeError"

    def test_timeout_becomes_noop(self, roster):
        delta = safe_extract(_Slow(), "hi", Slots(), "title", roster, timeout=0.05)
        assert delta.intent == INTENT_NOOP
        assert delta.notes == "Extraction timed out"

    def test_malformed_output_becomes_noop(self, roster):
        delta = safe_extract(_Returns({"intent": "dance"}), "hi", Slots(), "title", roster)
        assert delta.intent == INTENT_NOOP
        assert delta.notes.startswith("Malformed delta")

    def test_dict_output_is_validated(self, roster):
        raw = {"intent": "answer", "slot_updates": {"title": "  walk   the dog ", "points": "0", "dueIso": "x"}}
        delta = safe_extract(_Returns(raw), "hi", Slots(), "title", roster, timeout=1)
        assert delta.intent == INTENT_ANSWER
        assert delta.slot_updates == Slots(title="walk the dog")
