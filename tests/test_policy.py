"""Tests for wartracker.policy."""

from wartracker.policy import WAR_KEYWORDS, is_war_related, match_keywords, matches_policy


class TestMatchKeywords:
    def test_matches_at_word_start(self) -> None:
        assert match_keywords("Troops advance near the frontline") == ["troop", "frontline"]

    def test_does_not_match_inside_words(self) -> None:
        assert match_keywords("Film wins award at festival") == []
        assert match_keywords("Software upgrade released") == []

    def test_case_insensitive(self) -> None:
        assert "ukraine" in match_keywords("UKRAINE talks resume")

    def test_prefix_keywords_match_inflections(self) -> None:
        assert "casualt" in match_keywords("Casualties reported")
        assert "palestin" in match_keywords("Palestinian officials said")

    def test_multi_word_keyword(self) -> None:
        assert "north korea" in match_keywords("North Korea fires another missile")

    def test_results_follow_list_order_without_duplicates(self) -> None:
        found = match_keywords("Missile attack", "attack on Gaza, another missile")
        assert found == [k for k in WAR_KEYWORDS if k in {"attack", "missile", "gaza"}]

    def test_empty_texts(self) -> None:
        assert match_keywords("", None) == []


class TestIsWarRelated:
    def test_title_or_content_can_match(self) -> None:
        assert is_war_related("Quiet day in parliament", "Debate turned to the war in Sudan")
        assert not is_war_related("Local bakery opens", "Fresh bread every morning")


class TestMatchesPolicy:
    def test_filters_rows_with_the_same_rule(self) -> None:
        rows = [
            {"title": "Airstrike in Syria", "content": ""},
            {"title": "Stock markets rally", "content": "Shares rose"},
            {"headline": "Ceasefire holds", "body": None},
        ]
        assert matches_policy(rows) == [rows[0]]
        assert matches_policy(rows, title_key="headline", content_key="body") == [rows[2]]
