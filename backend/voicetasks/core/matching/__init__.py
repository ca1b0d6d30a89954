"""Fuzzy matching of spoken task references against stored task titles.

This module provides a small, pure matcher with configurable scores
and thresholds, used to resolve voice commands to existing tasks.
"""

from .config import DEFAULT_CONFIG, MatchingConfig, get_matching_config
from .criteria import (
    character_similarity,
    is_contained,
    levenshtein_distance,
    normalize_title,
    word_overlap_ratio,
    words_match,
)
from .evaluator import Candidate, MatchResult, calculate_similarity, find_best_match, score_title
from .results import build_match_summary, classify_match

__all__ = [
    "MatchingConfig",
    "DEFAULT_CONFIG",
    "get_matching_config",
    "normalize_title",
    "levenshtein_distance",
    "is_contained",
    "words_match",
    "word_overlap_ratio",
    "character_similarity",
    "Candidate",
    "MatchResult",
    "score_title",
    "calculate_similarity",
    "find_best_match",
    "classify_match",
    "build_match_summary",
]
