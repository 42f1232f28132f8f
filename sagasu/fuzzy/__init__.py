"""
Fuzzy Search - find past Slack messages from a vague description

Key Components:
- QueryExpander: LLM turns the vague query into concrete search queries
- SearchExecutor: Runs one query against search.messages
- ResultAggregator: Concurrent fan-out into an ordered candidate pool
- RelevanceRanker: LLM re-ranks the pool; output parsed defensively
- ResultPresenter: Formats the final list for Slack

Pipeline:
1. Expand query (LLM)
2. Search every expanded query (Slack)
3. Re-rank and deduplicate (LLM)
4. Format snippets with permalinks
"""

from .aggregator import ResultAggregator
from .errors import (
    EmptyQueryError,
    ExpansionFailedError,
    FuzzySearchError,
    NoRelevantResultsError,
    RankingFailedError,
)
from .models import AggregationStats, MessageHit, QueryOutcome, SearchRequest
from .pipeline import FuzzySearchPipeline
from .presenter import ResultPresenter
from .query_expander import QueryExpander, is_fuzzy_search_request
from .ranker import RelevanceRanker
from .search_executor import SearchExecutor

__all__ = [
    "ResultAggregator",
    "EmptyQueryError",
    "ExpansionFailedError",
    "FuzzySearchError",
    "NoRelevantResultsError",
    "RankingFailedError",
    "AggregationStats",
    "MessageHit",
    "QueryOutcome",
    "SearchRequest",
    "FuzzySearchPipeline",
    "ResultPresenter",
    "QueryExpander",
    "is_fuzzy_search_request",
    "RelevanceRanker",
    "SearchExecutor",
]
