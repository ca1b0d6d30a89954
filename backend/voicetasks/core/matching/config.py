"""Matching configuration - scoring weights and thresholds."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MatchingConfig:
    """Configuration for fuzzy task-title matching.

    This class centralizes all scores, weights and thresholds used when
    resolving a spoken task reference against stored task titles.
    """

    # Short-circuit scores
    exact_match_score: float = 1.0
    containment_score: float = 0.8  # Either string fully contains the other

    # Blend weights (must sum to 1.0)
    word_overlap_weight: float = 0.7
    character_similarity_weight: float = 0.3

    # Two words count as the same word within this many edits
    word_edit_tolerance: int = 2

    # Best score must be strictly greater than this to count as a match
    minimum_similarity: float = 0.5


# Default config instance
DEFAULT_CONFIG = MatchingConfig()


def get_matching_config() -> MatchingConfig:
    """Get the matching configuration for the running application.

    Only the threshold and containment score are exposed as settings;
    everything else keeps its default.

    Returns:
        MatchingConfig instance built from current settings
    """
    from voicetasks.core.config import get_settings

    settings = get_settings()
    if (
        settings.match_minimum_similarity == DEFAULT_CONFIG.minimum_similarity
        and settings.match_containment_score == DEFAULT_CONFIG.containment_score
    ):
        return DEFAULT_CONFIG

    return MatchingConfig(
        minimum_similarity=settings.match_minimum_similarity,
        containment_score=settings.match_containment_score,
    )
