"""Tests for wartracker.utils.similarity."""

import pytest

from wartracker.utils.similarity import article_similarity, text_similarity


class TestTextSimilarity:
    def test_identical_after_normalization(self) -> None:
        assert text_similarity("Strike  on Kyiv", "strike on kyiv") == 1.0

    def test_edit_distance_over_longer_length(self) -> None:
        # One substitution in ten characters
        assert text_similarity("abcdefghij", "abcdefghiX") == pytest.approx(0.9)

    def test_empty_side_scores_zero(self) -> None:
        assert text_similarity("", "anything") == 0.0


class TestArticleSimilarity:
    def test_weights_title_and_content(self) -> None:
        assert article_similarity("Same title", "Same body", "Same title", "Same body") == pytest.approx(1.0)

    def test_title_only_caps_at_title_weight(self) -> None:
        assert article_similarity("Same title", "", "Same title", "") == pytest.approx(0.7)

    def test_missing_title_scores_zero(self) -> None:
        assert article_similarity("", "Same body", "Title", "Same body") == 0.0
