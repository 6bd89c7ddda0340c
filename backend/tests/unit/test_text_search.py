"""Unit tests for keyword extraction, relevance scoring and snippets."""

from backend.src.services.text_search import (
    calculate_relevance,
    extract_keywords,
    extract_snippet,
    score_item,
)


class TestExtractKeywords:
    """Tests for extract_keywords()."""

    def test_drops_stop_words_and_short_tokens(self) -> None:
        """Stop words and tokens of two characters or fewer are removed."""
        keywords = extract_keywords("What did I write about the launch plan?")

        assert keywords == ["launch", "plan"]

    def test_keeps_quoted_phrase_verbatim(self) -> None:
        """Quoted phrases survive intact alongside their lowercased words."""
        keywords = extract_keywords('notes on "Launch Date" moved')

        assert keywords[0] == "Launch Date"
        assert "notes" in keywords
        assert "launch" in keywords
        assert "on" not in keywords

    def test_keeps_identifiers_and_deduplicates(self) -> None:
        """camelCase and snake_case identifiers are kept once, in original spelling."""
        keywords = extract_keywords("where is apiRateLimiter used with redirect_map and redirect_map")

        assert keywords[0] == "apiRateLimiter"
        assert keywords.count("redirect_map") == 1
        assert "used" in keywords

    def test_identifier_has_no_lowercased_twin(self) -> None:
        """A verbatim identifier is not repeated as its lowercased form."""
        keywords = extract_keywords("where is apiRateLimiter configured")

        assert keywords == ["apiRateLimiter", "configured"]

    def test_identifier_counts_once_when_scored(self) -> None:
        """Scoring the extracted keywords counts an identifier hit once."""
        keywords = extract_keywords("apiRateLimiter")

        assert calculate_relevance("uses apiRateLimiter", keywords) == 3

    def test_empty_and_stop_word_only_queries(self) -> None:
        """Blank or stop-word-only queries produce no keywords."""
        assert extract_keywords("") == []
        assert extract_keywords(None) == []
        assert extract_keywords("   ") == []
        assert extract_keywords("what is it about?") == []
        assert extract_keywords("go to UI") == []


class TestCalculateRelevance:
    """Tests for calculate_relevance() and score_item()."""

    def test_whole_word_matches_weigh_three(self) -> None:
        """Each whole-word hit adds 3."""
        assert calculate_relevance("Budget review: budget approved", ["budget"]) == 6

    def test_substring_matches_weigh_one(self) -> None:
        """A hit inside a longer word adds 1."""
        assert calculate_relevance("Budgets are tight", ["budget"]) == 1

    def test_matching_is_case_insensitive(self) -> None:
        """Case differences do not affect matching."""
        assert calculate_relevance("BUDGET", ["budget"]) == 3

    def test_case_variants_of_a_keyword_count_once(self) -> None:
        """Keywords equal ignoring case are scored a single time."""
        assert calculate_relevance("uses apiRateLimiter", ["apiRateLimiter", "apiratelimiter"]) == 3

    def test_sums_over_keywords(self) -> None:
        """Scores of distinct keywords add up."""
        assert calculate_relevance("launch plan for launch", ["launch", "plan"]) == 9

    def test_empty_text_scores_zero(self) -> None:
        """Missing text never scores."""
        assert calculate_relevance("", ["budget"]) == 0
        assert calculate_relevance(None, ["budget"]) == 0

    def test_score_item_counts_title_triple(self) -> None:
        """A title hit counts in the combined text and twice more for the title."""
        assert score_item("Budget", "nothing relevant", ["budget"]) == 9
        assert score_item("Other", "budget", ["budget"]) == 3
        assert score_item("Other", "nothing", ["budget"]) == 0


class TestExtractSnippet:
    """Tests for extract_snippet()."""

    def test_short_text_returned_unchanged(self) -> None:
        """Text within max_length is returned whole."""
        assert extract_snippet("short body", ["body"]) == "short body"

    def test_empty_text(self) -> None:
        """Missing text gives an empty snippet."""
        assert extract_snippet("", ["body"]) == ""
        assert extract_snippet(None, ["body"]) == ""

    def test_picks_window_around_keyword(self) -> None:
        """The densest window is chosen and marked with ellipses on both sides."""
        text = "filler " * 100 + "keyword here " + "filler " * 100

        snippet = extract_snippet(text, ["keyword"])

        assert "keyword" in snippet
        assert snippet.startswith("...")
        assert snippet.endswith("...")
        assert len(snippet) <= 206

    def test_snippet_does_not_cut_words(self) -> None:
        """Window edges snap to whole words."""
        text = "alpha " * 60 + "target " + "omega " * 60

        snippet = extract_snippet(text, ["target"], max_length=100)
        body = snippet.strip(".")

        for word in body.split():
            assert word in {"alpha", "target", "omega"}

    def test_no_match_uses_start_of_text(self) -> None:
        """Without any hit the first window is used."""
        text = "filler " * 100

        snippet = extract_snippet(text, ["absent"])

        assert snippet.startswith("filler")
        assert snippet.endswith("...")
        assert len(snippet) <= 203
