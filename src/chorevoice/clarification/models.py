"""
Prompt Model

Structured prompt data without message text.
Data must be serializable.
"""

from dataclasses import dataclass, field
from typing import Dict, Any

from .reasons import PromptReason


@dataclass
class Prompt:
    """
    Prompt dataclass.

    Contains reason and structured data only.
    No message text allowed in this object.
    """
    reason: PromptReason
    data: Dict[str, Any] = field(default_factory=dict)
