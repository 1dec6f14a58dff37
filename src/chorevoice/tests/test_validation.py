"""
Unit tests for extractor-output validation.
"""

import pytest

from chorevoice.data_types import SlotDelta, Slots
from chorevoice.errors import MalformedDeltaError
from chorevoice.merge import validate_delta, validate_slot_updates


class TestSlotUpdates:

    def test_wire_names_are_mapped_and_text_cleaned(self):
        slots = validate_slot_updates({
            "assignedChildName": "  Emma ",
            "title": "clean   room",
            "dueText": "tomorrow",
            "points": 20,
        })
        assert slots == Slots(
            assigned_child_name="Emma", title="clean room", due_text="tomorrow", points=20
        )

    def test_attribute_names_are_accepted(self):
        assert validate_slot_updates({"due_text": "Friday"}).due_text == "Friday"

    def test_due_iso_from_extractor_is_dropped(self):
        slots = validate_slot_updates({"dueText": "tomorrow", "dueIso": "2020-01-01T00:00:00Z"})
        assert slots.due_iso is None

    def test_unknown_keys_and_blank_strings_are_dropped(self):
        assert validate_slot_updates({"color": "red", "title": "   "}) == Slots()

    @pytest.mark.parametrize("raw,expected", [
        ("20", 20),
        (" 15 ", 15),
        (3.0, 3),
        (2.5, None),
        (0, None),
        (-5, None),
        (True, None),
        ("twenty", None),
    ])
    def test_points_coercion(self, raw, expected):
        assert validate_slot_updates({"points": raw}).points == expected

    def test_none_is_empty(self):
        assert validate_slot_updates(None) == Slots()

    def test_non_mapping_is_rejected(self):
        with pytest.raises(MalformedDeltaError):
            validate_slot_updates(["title"])


class TestDelta:

    def test_valid_delta(self):
        delta = validate_delta({
            "intent": "answer",
            "slot_updates": {"title": "dishes"},
            "ambiguous": ["title", "bogus"],
            "notes": "ok",
        })
        assert delta.intent == "answer"
        assert delta.slot_updates.title == "dishes"
        assert delta.ambiguous == ("title",)
        assert delta.notes == "ok"

    def test_slot_delta_instance_passes_through(self):
        original = SlotDelta(intent="revise", slot_updates=Slots(points=30))
        assert validate_delta(original) == original

    def test_missing_slot_updates_is_empty(self):
        assert validate_delta({"intent": "noop"}).slot_updates == Slots()

    @pytest.mark.parametrize("raw", [
        None,
        "answer",
        {"intent": "shout"},
        {"slot_updates": {}},
        {"intent": "answer", "ambiguous": "title"},
        {"intent": "answer", "slot_updates": "Emma"},
    ])
    def test_malformed_deltas_are_rejected(self, raw):
        with pytest.raises(MalformedDeltaError):
            validate_delta(raw)
