"""Individual similarity criteria.

Each function measures one aspect of how close a spoken task reference is
to a stored task title. This modular approach makes it easy to:
- Test each criterion independently
- Adjust weights without touching the scan loop
- Reuse the edit distance elsewhere
"""

from __future__ import annotations

from .config import DEFAULT_CONFIG, MatchingConfig


def normalize_title(value: str) -> str:
    """Normalize a title for comparison (lowercase, surrounding whitespace trimmed).

    Args:
        value: Raw title or query text

    Returns:
        Normalized string
    """
    return value.lower().strip()


def levenshtein_distance(first: str, second: str) -> int:
    """Compute the Levenshtein edit distance between two strings.

    Classic dynamic programming over a (m+1) x (n+1) table with unit cost
    for insertion, deletion and substitution.

    Args:
        first: First string
        second: Second string

    Returns:
        Minimum number of single-character edits turning first into second
    """
    rows = len(first) + 1
    cols = len(second) + 1
    table = [[0] * cols for _ in range(rows)]

    for i in range(rows):
        table[i][0] = i
    for j in range(cols):
        table[0][j] = j

    for i in range(1, rows):
        for j in range(1, cols):
            if first[i - 1] == second[j - 1]:
                table[i][j] = table[i - 1][j - 1]
            else:
                table[i][j] = 1 + min(
                    table[i - 1][j - 1],  # substitution
                    table[i][j - 1],  # insertion
                    table[i - 1][j],  # deletion
                )

    return table[rows - 1][cols - 1]


def is_contained(query: str, title: str) -> bool:
    """Check whether either normalized string fully contains the other.

    The empty string is never treated as contained, so a blank query cannot
    match every title.

    Args:
        query: Normalized query
        title: Normalized candidate title

    Returns:
        True if one is a substring of the other
    """
    if not query or not title:
        return False
    return query in title or title in query


def words_match(
    query_word: str,
    title_word: str,
    config: MatchingConfig | None = None,
) -> bool:
    """Check whether two single words refer to the same thing.

    Args:
        query_word: Word from the query
        title_word: Word from the candidate title
        config: Matching configuration (defaults to DEFAULT_CONFIG)

    Returns:
        True if one contains the other or they are within the edit tolerance
    """
    if config is None:
        config = DEFAULT_CONFIG

    if query_word in title_word or title_word in query_word:
        return True
    return levenshtein_distance(query_word, title_word) <= config.word_edit_tolerance


def word_overlap_ratio(
    query: str,
    title: str,
    config: MatchingConfig | None = None,
) -> float:
    """Fraction of query words that have an approximate counterpart in the title.

    Args:
        query: Normalized query
        title: Normalized candidate title
        config: Matching configuration (defaults to DEFAULT_CONFIG)

    Returns:
        matched query words / max(query word count, title word count),
        or 0.0 when both have no words
    """
    query_words = query.split()
    title_words = title.split()

    longest = max(len(query_words), len(title_words))
    if longest == 0:
        return 0.0

    matched = sum(
        1
        for query_word in query_words
        if any(words_match(query_word, title_word, config) for title_word in title_words)
    )
    return matched / longest


def character_similarity(query: str, title: str) -> float:
    """Edit-distance similarity of the full strings.

    Args:
        query: Normalized query
        title: Normalized candidate title

    Returns:
        1 - distance / length of the longer string (1.0 for two empty strings)
    """
    longest = max(len(query), len(title))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(query, title) / longest
