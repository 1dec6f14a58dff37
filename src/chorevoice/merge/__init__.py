"""
Merge Module

Combines extracted deltas with stored session state.
"""

from .merger import (
    compute_missing,
    derive_state,
    find_child,
    is_child_unresolved,
    merge_delta,
    resolve_child,
)
from .validation import validate_delta, validate_slot_updates

__all__ = [
    'compute_missing',
    'derive_state',
    'find_child',
    'is_child_unresolved',
    'merge_delta',
    'resolve_child',
    'validate_delta',
    'validate_slot_updates',
]
