"""
Unit tests for the OpenAI-backed extractor (client mocked).
"""

import json
from unittest.mock import Mock

import pytest

from chorevoice.data_types import Slots
from chorevoice.errors import MalformedDeltaError
from chorevoice.extraction import RuleBasedExtractor, safe_extract
from chorevoice.llm import LLMExtractor, strip_code_fences


def _client_returning(content):
    client = Mock()
    message = Mock(content=content)
    client.chat.completions.create.return_value = Mock(choices=[Mock(message=message)])
    return client


class TestStripCodeFences:

    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_text_untouched(self):
        assert strip_code_fences(' {"a": 1} ') == '{"a": 1}'


class TestLLMExtractor:

    def test_parses_fenced_json(self, roster):
        payload = {"intent": "answer", "slot_updates": {"title": "feed the cat"}}
        client = _client_returning("```json\n" + json.dumps(payload) + "\n```")
        extractor = LLMExtractor(model="test-model", client=client)

        result = extractor.extract("feed the cat", Slots(), "title", roster)

        assert result == payload
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["temperature"] == 0.0

    def test_prompt_carries_context(self, roster):
        extractor = LLMExtractor(client=Mock())
        prompt = extractor.create_prompt(
            "tomorrow", Slots(title="dishes"), "due", roster
        )
        assert '"tomorrow"' in prompt
        assert '"title": "dishes"' in prompt
        assert "Expected next slot: due" in prompt
        assert "Emma, Liam" in prompt

    def test_empty_roster_is_named(self):
        prompt = LLMExtractor(client=Mock()).create_prompt("hi", Slots(), None, ())
        assert "Available children: none" in prompt

    def test_invalid_json_raises_without_fallback(self, roster):
        extractor = LLMExtractor(client=_client_returning("sure! here you go"))
        with pytest.raises(MalformedDeltaError):
            extractor.extract("feed the cat", Slots(), "title", roster)

    def test_invalid_json_is_noop_through_safe_extract(self, roster):
        extractor = LLMExtractor(client=_client_returning("[1, 2, 3]"))
        delta = safe_extract(extractor, "feed the cat", Slots(), "title", roster)
        assert delta.intent == "noop"

    def test_fallback_used_on_api_error(self, roster):
        client = Mock()
        client.chat.completions.create.side_effect = RuntimeError("rate limited")
        extractor = LLMExtractor(client=client, fallback=RuleBasedExtractor())

        delta = safe_extract(extractor, "Emma", Slots(), "assignedChild", roster)

        assert delta.intent == "answer"
        assert delta.slot_updates.assigned_child_name == "Emma"
