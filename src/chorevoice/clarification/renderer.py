"""
Prompt Template Renderer

Deterministic template rendering from Prompt objects.
No branching logic, no fallback text.

Templates are loaded from JSON configuration at chorevoice/templates/prompts.json.
"""

from typing import Any, Dict, Optional
import re
import json
from pathlib import Path

from .models import Prompt

TEMPLATES_PATH = Path(__file__).resolve().parent.parent / "templates" / "prompts.json"

# Cache for loaded templates
_TEMPLATES_CACHE: Optional[Dict[str, Dict[str, Any]]] = None

_PLACEHOLDER_RE = re.compile(r'\{\{(\w+)\}\}')


def load_templates() -> Dict[str, Dict[str, Any]]:
    """
    Load prompt templates from JSON configuration.

    Templates are cached after first load.

    Raises:
        FileNotFoundError: If prompts.json is not found
        json.JSONDecodeError: If JSON is invalid
    """
    global _TEMPLATES_CACHE

    if _TEMPLATES_CACHE is not None:
        return _TEMPLATES_CACHE

    if not TEMPLATES_PATH.exists():
        raise FileNotFoundError(f"Prompt templates not found at {TEMPLATES_PATH}")

    with open(TEMPLATES_PATH, "r", encoding="utf-8") as f:
        _TEMPLATES_CACHE = json.load(f)

    return _TEMPLATES_CACHE


def render_prompt(prompt: Prompt) -> str:
    """
    Render the sentence for a Prompt.

    Rules:
    - Look up template by prompt.reason.value
    - Validate all required_fields are present in prompt.data
    - Replace {{placeholders}} deterministically

    Raises:
        KeyError: If no template exists for the reason
        ValueError: If required fields are missing from data
    """
    reason_value = prompt.reason.value
    templates = load_templates()

    if reason_value not in templates:
        raise KeyError(
            f"No template found for PromptReason: {reason_value}. "
            f"Available templates: {list(templates.keys())}"
        )

    template_config = templates[reason_value]
    template = template_config["template"]
    required_fields = template_config["required_fields"]

    missing_fields = [name for name in required_fields if name not in prompt.data]
    if missing_fields:
        raise ValueError(
            f"Missing required fields for {reason_value}: {missing_fields}. "
            f"Provided data: {prompt.data}"
        )

    def substitute(match: "re.Match[str]") -> str:
        placeholder = match.group(1)
        if placeholder not in prompt.data:
            raise ValueError(
                f"Placeholder '{placeholder}' found in template but missing from data. "
                f"Required fields: {required_fields}, Data: {prompt.data}"
            )
        return str(prompt.data[placeholder])

    return _PLACEHOLDER_RE.sub(substitute, template)
