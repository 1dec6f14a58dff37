"""
Extraction: turning spoken text into structured slot updates.

fuzzy_matcher and date_normalizer are imported first; the merge engine
depends on them and the extractor contract depends on the merge validator.
"""
from .fuzzy_matcher import ChildMatch, child_followup_question, match_child
from .date_normalizer import extract_time, iso_to_epoch_ms, normalize_due_text
from .contract import DeltaExtractor, safe_extract
from .rule_extractor import RuleBasedExtractor

__all__ = [
    "ChildMatch",
    "DeltaExtractor",
    "RuleBasedExtractor",
    "child_followup_question",
    "extract_time",
    "iso_to_epoch_ms",
    "match_child",
    "normalize_due_text",
    "safe_extract",
]
