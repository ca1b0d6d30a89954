"""Match evaluator - orchestrates all criteria.

This module combines the individual criteria into a single similarity
score and scans a candidate list for the best task match.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from .config import DEFAULT_CONFIG, MatchingConfig
from .criteria import (
    character_similarity,
    is_contained,
    normalize_title,
    word_overlap_ratio,
)

logger = structlog.get_logger("voicetasks.matching")


@dataclass(frozen=True)
class Candidate:
    """A stored task considered as a possible match target.

    Attributes:
        id: Opaque identifier (task primary key)
        title: Display title
    """

    id: Any
    title: str


@dataclass(frozen=True)
class MatchResult:
    """Result of a successful match.

    Attributes:
        candidate: The winning candidate
        score: Similarity score in [0, 1]
        rule: Rule that scored it: "exact", "containment" or "fuzzy"
    """

    candidate: Candidate
    score: float
    rule: str = "fuzzy"

    @property
    def percentage(self) -> int:
        """Score as a rounded percentage (e.g. 80)."""
        return round(self.score * 100)


def score_title(
    query: str,
    title: str,
    config: MatchingConfig | None = None,
) -> tuple[float, str]:
    """Score how well a spoken task reference matches a task title.

    Args:
        query: Free-text task reference
        title: Candidate task title
        config: Matching configuration (defaults to DEFAULT_CONFIG)

    Returns:
        (score, rule): score in [0, 1] and the rule that produced it,
        "exact", "containment" or "fuzzy"
    """
    if config is None:
        config = DEFAULT_CONFIG

    normalized_query = normalize_title(query)
    normalized_title = normalize_title(title)

    if normalized_query == normalized_title:
        return config.exact_match_score, "exact"

    if is_contained(normalized_query, normalized_title):
        return config.containment_score, "containment"

    word_score = word_overlap_ratio(normalized_query, normalized_title, config)
    char_score = character_similarity(normalized_query, normalized_title)
    score = (
        config.word_overlap_weight * word_score
        + config.character_similarity_weight * char_score
    )
    return score, "fuzzy"


def calculate_similarity(
    query: str,
    title: str,
    config: MatchingConfig | None = None,
) -> float:
    """Similarity score in [0, 1] for a task reference and a title."""
    return score_title(query, title, config)[0]


def find_best_match(
    query: str,
    candidates: Sequence[Candidate],
    config: MatchingConfig | None = None,
) -> MatchResult | None:
    """Find the candidate whose title best matches the query.

    An exact match (after normalization) is returned immediately. Otherwise
    the highest score wins; on equal scores the first candidate in input
    order is kept.

    Args:
        query: Free-text task reference
        candidates: Candidates to scan (not modified)
        config: Matching configuration (defaults to DEFAULT_CONFIG)

    Returns:
        MatchResult if the best score is strictly above the threshold, else None
    """
    if config is None:
        config = DEFAULT_CONFIG

    best: Candidate | None = None
    best_score = 0.0
    best_rule = "fuzzy"

    for candidate in candidates:
        score, rule = score_title(query, candidate.title, config)
        if rule == "exact":
            return MatchResult(candidate=candidate, score=score, rule=rule)
        if best is None or score > best_score:
            best = candidate
            best_score = score
            best_rule = rule

    if best is None or best_score <= config.minimum_similarity:
        logger.debug(
            "No candidate above similarity threshold",
            query=query,
            candidates=len(candidates),
            best_score=round(best_score, 3),
            threshold=config.minimum_similarity,
        )
        return None

    return MatchResult(candidate=best, score=best_score, rule=best_rule)
