"""
Response Module

Builds speak-strings and completed task payloads from merged session state.
"""

from .builder import build_response, build_task_payload, format_due_date, format_clock

__all__ = [
    "build_response",
    "build_task_payload",
    "format_due_date",
    "format_clock",
]
