"""Result builders for matching system.

Functions to classify a match and format it for activity metadata
and API responses.
"""

from __future__ import annotations

from typing import Any

from .evaluator import MatchResult


def classify_match(result: MatchResult | None) -> str:
    """Classify a match by the rule that produced it.

    Returns:
        "exact", "containment", "fuzzy" or "no_match"
    """
    if result is None:
        return "no_match"
    return result.rule


def build_match_summary(query: str, result: MatchResult | None) -> dict[str, Any]:
    """Build a JSON-serializable summary of a match attempt.

    Args:
        query: The task reference that was searched for
        result: Match result, or None when nothing matched

    Returns:
        Dict with query, matched task id/title, similarity and classification
    """
    if result is None:
        return {
            "query": query,
            "task_id": None,
            "matched_title": None,
            "similarity": 0.0,
            "match_classification": "no_match",
        }

    return {
        "query": query,
        "task_id": result.candidate.id,
        "matched_title": result.candidate.title,
        "similarity": result.score,
        "match_classification": classify_match(result),
    }
