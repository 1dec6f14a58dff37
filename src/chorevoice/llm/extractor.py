"""
LLM-based delta extraction.

Uses OpenAI chat models to read an utterance in the context of the current
slots and return a SlotDelta-shaped JSON object. Output is still passed
through validate_delta() by the caller, so the model is never trusted with
the final structure.
"""
import json
import logging
import re
import time
from typing import Any, Dict, Optional, Sequence

from openai import OpenAI

from ..data_types import Child, Slots
from ..errors import MalformedDeltaError
from ..extraction.contract import DeltaExtractor

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

SYSTEM_PROMPT = """You are a task extraction assistant for a family chore app.
Extract slot information from user transcripts into JSON.

RULES:
1. Respond with VALID JSON ONLY - no other text
2. Extract every slot the transcript mentions, not just the expected one
3. Title must be the actual task description, never a generic word like "task" or "chore"
4. Points must be a positive integer
5. Dates stay natural language ("tomorrow at 5pm", "Friday", "December 10th") - never convert to ISO
6. Child names: return the exact roster spelling when the spoken name clearly refers to a roster child,
   otherwise return the name as spoken
7. Intent:
   - "new_task" when the user starts describing a new task
   - "answer" when the user replies to the question asked
   - "revise" when the user changes something already given
   - "cancel" when the user wants to stop
   - "noop" when nothing usable was said

JSON SCHEMA:
{
  "intent": "new_task" | "answer" | "revise" | "cancel" | "noop",
  "slot_updates": {
    "assignedChildName": "string (if a child is mentioned)",
    "title": "string (if a task is described)",
    "dueText": "string (if a date or time is mentioned)",
    "points": number (if points are mentioned)
  },
  "ambiguous": ["slot names you could not decide"],
  "notes": "optional short note"
}"""


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one."""
    return _CODE_FENCE_RE.sub("", text.strip()).strip()


class LLMExtractor(DeltaExtractor):
    """
    Delta extractor backed by an OpenAI chat model.

    Args:
        model: OpenAI model to use (default: gpt-4o-mini)
        api_key: Optional API key (uses OPENAI_API_KEY env var if not provided)
        client: Pre-built OpenAI client (tests inject a mock here)
        fallback: Extractor used when the model call or its JSON fails
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
        fallback: Optional[DeltaExtractor] = None,
    ):
        self.model = model
        if client is not None:
            self.client = client
        else:
            self.client = OpenAI(api_key=api_key) if api_key else OpenAI()
        self.fallback = fallback

    def create_prompt(
        self,
        utterance: str,
        current_slots: Slots,
        expected_slot: Optional[str],
        roster: Sequence[Child],
    ) -> str:
        names = ", ".join(child.name for child in roster) or "none"
        return f"""TRANSCRIPT: "{utterance}"

CURRENT CONTEXT:
- Existing slots: {json.dumps(current_slots.to_dict())}
- Expected next slot: {expected_slot or 'none (any slot)'}
- Available children: {names}

Return JSON with all extracted fields."""

    def _call_model(self, prompt: str) -> Dict[str, Any]:
        start_time = time.time()
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.0,
            max_tokens=300,
        )
        elapsed = time.time() - start_time
        text_output = response.choices[0].message.content or ""

        logger.debug(
            "LLM extraction response",
            extra={"model": self.model, "duration_ms": round(elapsed * 1000, 2), "raw_output": text_output},
        )

        try:
            parsed = json.loads(strip_code_fences(text_output))
        except json.JSONDecodeError as e:
            raise MalformedDeltaError(f"LLM returned invalid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise MalformedDeltaError("LLM output is not a JSON object")
        return parsed

    def extract(
        self,
        utterance: str,
        current_slots: Slots,
        expected_slot: Optional[str],
        roster: Sequence[Child],
    ) -> Any:
        prompt = self.create_prompt(utterance, current_slots, expected_slot, roster)
        try:
            return self._call_model(prompt)
        except Exception as e:
            if self.fallback is None:
                raise
            logger.warning(
                f"LLM extraction failed, using fallback extractor: {e}",
                extra={"model": self.model, "error_type": type(e).__name__},
            )
            return self.fallback.extract(utterance, current_slots, expected_slot, roster)
