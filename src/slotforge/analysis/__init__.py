"""Feasibility analysis and color merging."""

from .constraints import ConstraintAnalyzer, ConstraintValidationResult, MergeSuggestion
from .dedup import ColorDeduplicator, DeduplicationResult
from .merge import MergePreview, MergeResult, MergeTransform, merge_overlapping_ranges

__all__ = [
    "ConstraintAnalyzer",
    "ConstraintValidationResult",
    "MergeSuggestion",
    "MergeTransform",
    "MergePreview",
    "MergeResult",
    "merge_overlapping_ranges",
    "ColorDeduplicator",
    "DeduplicationResult",
]
