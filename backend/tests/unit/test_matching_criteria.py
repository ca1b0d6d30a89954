"""Tests for the individual similarity criteria."""

from __future__ import annotations

import pytest

from voicetasks.core.matching import (
    MatchingConfig,
    character_similarity,
    is_contained,
    levenshtein_distance,
    normalize_title,
    word_overlap_ratio,
    words_match,
)


def test_normalize_title() -> None:
    assert normalize_title("  Buy MILK \n") == "buy milk"
    assert normalize_title("") == ""


@pytest.mark.parametrize(
    ("first", "second", "expected"),
    [
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("", "abc", 3),
        ("abc", "", 3),
        ("same", "same", 0),
    ],
)
def test_levenshtein_distance(first: str, second: str, expected: int) -> None:
    assert levenshtein_distance(first, second) == expected


def test_levenshtein_distance_is_symmetric() -> None:
    assert levenshtein_distance("report", "reprot") == levenshtein_distance("reprot", "report")


def test_is_contained_either_direction() -> None:
    assert is_contained("milk", "buy milk") is True
    assert is_contained("buy milk today", "buy milk") is True
    assert is_contained("milk", "bread") is False


def test_is_contained_never_for_empty_strings() -> None:
    assert is_contained("", "buy milk") is False
    assert is_contained("buy milk", "") is False


def test_words_match_containment_and_edit_distance() -> None:
    assert words_match("report", "reports") is True
    assert words_match("milk", "mlik") is True  # two edits
    assert words_match("milk", "bread") is False


def test_words_match_respects_edit_tolerance() -> None:
    strict = MatchingConfig(word_edit_tolerance=0)
    assert words_match("milk", "mlik", strict) is False
    assert words_match("milk", "milk", strict) is True


def test_word_overlap_ratio_counts_query_words() -> None:
    assert word_overlap_ratio(
        "finish quarterly report", "finish the quarterly reports"
    ) == pytest.approx(0.75)
    assert word_overlap_ratio("milk tomorow", "buy milk") == pytest.approx(0.5)


def test_word_overlap_ratio_divides_by_longer_word_count() -> None:
    # One matched query word, but the title has three words
    assert word_overlap_ratio("report", "report weekly summary") == pytest.approx(1 / 3)


def test_word_overlap_ratio_with_no_words() -> None:
    assert word_overlap_ratio("", "") == 0.0
    assert word_overlap_ratio("", "buy milk") == 0.0


def test_character_similarity() -> None:
    assert character_similarity("", "") == 1.0
    assert character_similarity("abc", "abd") == pytest.approx(2 / 3)
    assert character_similarity("", "milk") == 0.0
