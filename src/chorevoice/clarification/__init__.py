"""
Prompt Template System

Deterministic, template-driven prompts.
Maps PromptReason → reusable templates → rendered sentences.

Templates are loaded from JSON configuration at templates/prompts.json.
"""

from .reasons import PromptReason, SLOT_LABELS, SLOT_PROMPTS
from .models import Prompt
from .renderer import render_prompt, load_templates

__all__ = [
    "PromptReason",
    "SLOT_LABELS",
    "SLOT_PROMPTS",
    "Prompt",
    "render_prompt",
    "load_templates",
]
