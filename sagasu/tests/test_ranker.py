"""
Tests for Relevance Ranker

Parsing of the LLM ranking answer is tested with literal strings; the
ranker itself with a mocked LLM client.
"""

import pytest
from unittest.mock import Mock

from sagasu.common.llm_client import CompletionError
from sagasu.fuzzy.errors import NoRelevantResultsError, RankingFailedError
from sagasu.fuzzy.models import MessageHit
from sagasu.fuzzy.ranker import (
    RelevanceRanker,
    make_echo_filter,
    parse_ranking,
    select_results,
)


def _pool(*items):
    return [
        MessageHit(text=text, permalink=permalink, raw_index=i)
        for i, (text, permalink) in enumerate(items)
    ]


class TestParseRanking:
    def test_converts_to_zero_based(self):
        assert parse_ranking("1, 3, 2", 3) == [0, 2, 1]

    def test_drops_non_numeric_tokens(self):
        assert parse_ranking("2, two, 1., , 3", 3) == [1, 2]

    def test_drops_out_of_range(self):
        assert parse_ranking("0, 1, 4, -1, 3", 3) == [0, 2]

    def test_keeps_repeats_in_order(self):
        assert parse_ranking("2, 1, 1", 2) == [1, 0, 0]

    def test_accepts_newlines_and_full_width_commas(self):
        assert parse_ranking("3\n1，2", 3) == [2, 0, 1]

    def test_prose_answer_yields_nothing(self):
        assert parse_ranking("I think message 2 is best", 3) == []

    def test_empty_answer(self):
        assert parse_ranking("", 3) == []


class TestSelectResults:
    def test_first_reference_wins(self):
        pool = _pool(("a", "p1"), ("b", "p2"), ("a again", "p1"))

        results = select_results([2, 1, 0], pool)

        assert [h.permalink for h in results] == ["p1", "p2"]
        assert results[0].text == "a again"

    def test_truncates_to_max_results(self):
        pool = _pool(*[(f"m{i}", f"p{i}") for i in range(20)])

        results = select_results(list(range(20)), pool, max_results=15)

        assert len(results) == 15
        assert results[-1].permalink == "p14"

    def test_excluded_hits_are_skipped(self):
        pool = _pool(("Fuzzy search: report", "p1"), ("report", "p2"))
        exclude = make_echo_filter("contains", "Fuzzy search")

        results = select_results([0, 1], pool, exclude=exclude)

        assert [h.permalink for h in results] == ["p2"]


class TestEchoFilter:
    def test_contains(self):
        f = make_echo_filter("contains", "Fuzzy search")
        assert f(MessageHit(text="hey, fuzzy search: report", permalink="p"))
        assert not f(MessageHit(text="a fuzzy search idea", permalink="p"))

    def test_prefix(self):
        f = make_echo_filter("prefix", "Fuzzy search")
        assert f(MessageHit(text="  Fuzzy search report", permalink="p"))
        assert not f(MessageHit(text="about Fuzzy search: x", permalink="p"))

    def test_exact(self):
        f = make_echo_filter("exact", "Fuzzy search", "Fuzzy search: report")
        assert f(MessageHit(text="fuzzy search: REPORT ", permalink="p"))
        assert not f(MessageHit(text="Fuzzy search: report card", permalink="p"))

    def test_off(self):
        assert make_echo_filter("off", "Fuzzy search") is None

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            make_echo_filter("fuzzy", "Fuzzy search")


class TestRelevanceRanker:
    @pytest.fixture
    def llm(self):
        llm = Mock()
        llm.generate.return_value = "2, 1, 1"
        return llm

    @pytest.fixture
    def ranker(self, llm):
        return RelevanceRanker(llm, max_results=15)

    def test_example_progress_report(self, ranker):
        pool = _pool(("progress report for March", "p1"), ("進捗報告です", "p2"))

        results = ranker.rank("progress report", pool)

        assert [h.permalink for h in results] == ["p2", "p1"]

    def test_prompt_numbers_pool_from_one(self, ranker, llm):
        pool = _pool(("first\nline", "p1"), ("second", "p2"))

        ranker.rank("progress report", pool)

        prompt = llm.generate.call_args.args[0]
        assert "1: first line" in prompt
        assert "2: second" in prompt
        assert "Fuzzy search:" in prompt
        assert '"progress report"' in prompt

    def test_all_invalid_raises_no_relevant(self, ranker, llm):
        llm.generate.return_value = "none of these, 7, x"
        with pytest.raises(NoRelevantResultsError):
            ranker.rank("progress report", _pool(("a", "p1")))

    def test_only_echoes_raises_no_relevant(self, ranker, llm):
        llm.generate.return_value = "1"
        with pytest.raises(NoRelevantResultsError):
            ranker.rank("report", _pool(("Fuzzy search: report", "p1")))

    def test_completion_error_is_ranking_failure(self, ranker, llm):
        llm.generate.side_effect = CompletionError("503")
        with pytest.raises(RankingFailedError):
            ranker.rank("report", _pool(("a", "p1")))

    def test_empty_pool_skips_llm(self, ranker, llm):
        with pytest.raises(NoRelevantResultsError):
            ranker.rank("report", [])
        llm.generate.assert_not_called()

    def test_results_are_subset_of_pool(self, ranker, llm):
        pool = _pool(*[(f"m{i}", f"p{i % 4}") for i in range(10)])
        llm.generate.return_value = "10, 3, 3, 8, 1, 12, 5"

        results = ranker.rank("m", pool)

        assert all(hit in pool for hit in results)
        assert len({h.permalink for h in results}) == len(results)

    def test_invalid_echo_mode_rejected(self, llm):
        with pytest.raises(ValueError):
            RelevanceRanker(llm, echo_filter="sometimes")
