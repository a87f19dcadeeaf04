"""Fuzzy similarity between articles, used to spot the same story from two feeds."""

from rapidfuzz.distance import Levenshtein

from .hashing import normalize_for_hash

TITLE_WEIGHT = 0.7
CONTENT_WEIGHT = 0.3


def text_similarity(a: str, b: str) -> float:
    """1 - edit distance / longer length, on hash-normalized text. 0.0 if either is empty."""
    a = normalize_for_hash(a)
    b = normalize_for_hash(b)
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


def article_similarity(title_a: str, content_a: str, title_b: str, content_b: str) -> float:
    """
    Weighted title and content similarity in [0, 1].

    Titles carry most of the weight; content only counts when both sides have
    some, so two bare identical titles score 0.7.
    """
    title_score = text_similarity(title_a, title_b)
    if title_score == 0.0:
        return 0.0
    return TITLE_WEIGHT * title_score + CONTENT_WEIGHT * text_similarity(content_a, content_b)
