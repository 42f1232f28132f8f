"""
Relevance Ranker

Second LLM pass: the model sees the original query and the numbered
candidate pool and answers with 1-based indices in order of relevance.

The answer is untrusted text. Parsing keeps what is usable and silently
drops the rest:
- tokens that are not integers, or point outside the pool, are discarded
- repeated references to one permalink collapse to the first occurrence
- messages echoing the fuzzy search command are excluded
- the result is truncated to ``max_results``
"""

import logging
import re
from typing import Callable, List, Optional

from ..common.llm_client import DEFAULT_SYSTEM_PROMPT, CompletionError, LLMClient
from .errors import NoRelevantResultsError, RankingFailedError
from .models import MessageHit

logger = logging.getLogger("sagasu.fuzzy.ranker")


RANKING_PROMPT = """From the message list below, select the messages most relevant to the query "{query}" and list their indices in descending order of relevance.
Exclude messages with duplicate content and messages with low relevance.
Exclude any message that contains the words "{command}".
Once again: exclude messages whose content duplicates another message.
Output the indices only, as a comma-separated list.

Query: "{query}"

Message list:
{messages}

Expected output format:
1, 3, 5, ..."""

ECHO_FILTER_MODES = ("contains", "prefix", "exact", "off")

_TOKEN_SPLIT_RE = re.compile(r"[,\n，、]+")


def parse_ranking(raw: str, pool_size: int) -> List[int]:
    """
    Parse an LLM ranking answer into 0-based pool indices.

    Order and repeats are preserved; invalid tokens are dropped.

    >>> parse_ranking("2, 1, x, 9, 1", 3)
    [1, 0, 0]
    """
    indices = []
    for token in _TOKEN_SPLIT_RE.split(raw or ""):
        token = token.strip()
        if not token:
            continue
        try:
            index = int(token) - 1
        except ValueError:
            logger.debug("Dropping non-numeric ranking token %r", token)
            continue
        if 0 <= index < pool_size:
            indices.append(index)
        else:
            logger.debug("Dropping out-of-range ranking token %r", token)
    return indices


def make_echo_filter(
    mode: str,
    command_prefix: str,
    request_text: str = "",
) -> Optional[Callable[[MessageHit], bool]]:
    """
    Build the predicate that recognises echoed fuzzy search commands.

    Modes (case-insensitive matching):
        contains: text contains "<command_prefix>:"
        prefix:   text starts with the command prefix
        exact:    text equals the request that started this search
        off:      no filtering
    """
    if mode not in ECHO_FILTER_MODES:
        raise ValueError(f"Unknown echo filter mode: {mode!r}")
    if mode == "off" or not command_prefix:
        return None

    prefix = command_prefix.lower()
    marker = f"{prefix}:"
    request = (request_text or "").strip().lower()

    if mode == "contains":
        return lambda hit: marker in hit.text.lower()
    if mode == "prefix":
        return lambda hit: hit.text.strip().lower().startswith(prefix)
    if not request:
        return None
    return lambda hit: hit.text.strip().lower() == request


def select_results(
    indices: List[int],
    pool: List[MessageHit],
    max_results: int = 15,
    exclude: Optional[Callable[[MessageHit], bool]] = None,
) -> List[MessageHit]:
    """Resolve indices to hits: drop excluded, keep first per permalink, truncate."""
    results = []
    seen_permalinks = set()
    for index in indices:
        hit = pool[index]
        if exclude is not None and exclude(hit):
            continue
        if hit.permalink in seen_permalinks:
            continue
        seen_permalinks.add(hit.permalink)
        results.append(hit)
        if len(results) >= max_results:
            break
    return results


class RelevanceRanker:
    """Orders the candidate pool by relevance to the original query."""

    def __init__(
        self,
        llm_client: LLMClient,
        max_results: int = 15,
        command_prefix: str = "Fuzzy search",
        echo_filter: str = "contains",
        max_tokens: int = 512,
        timeout: float = 30.0,
        prompt_text_limit: int = 500,
    ):
        if echo_filter not in ECHO_FILTER_MODES:
            raise ValueError(f"Unknown echo filter mode: {echo_filter!r}")
        self._llm = llm_client
        self._max_results = max_results
        self._command_prefix = command_prefix
        self._echo_filter = echo_filter
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._prompt_text_limit = prompt_text_limit

    def build_prompt(self, original_query: str, pool: List[MessageHit]) -> str:
        lines = []
        for position, hit in enumerate(pool, 1):
            text = " ".join(hit.text.split())[: self._prompt_text_limit]
            lines.append(f"{position}: {text}")
        return RANKING_PROMPT.format(
            query=original_query,
            command=f"{self._command_prefix}:",
            messages="\n".join(lines),
        )

    def rank(
        self,
        original_query: str,
        pool: List[MessageHit],
        request_text: str = "",
    ) -> List[MessageHit]:
        """
        Rank the pool.

        Args:
            original_query: Query as the user meant it (label removed)
            pool: Candidate pool from the aggregator
            request_text: Raw request, used by the "exact" echo filter

        Returns:
            Relevance-ordered hits, unique by permalink, at most
            ``max_results`` long

        Raises:
            RankingFailedError: the completion call failed
            NoRelevantResultsError: nothing usable survived parsing
        """
        if not pool:
            raise NoRelevantResultsError("Candidate pool is empty")

        try:
            raw = self._llm.generate(
                self.build_prompt(original_query, pool),
                system=DEFAULT_SYSTEM_PROMPT,
                max_tokens=self._max_tokens,
                timeout=self._timeout,
            )
        except CompletionError as e:
            raise RankingFailedError(f"Ranking failed: {e}") from e

        logger.debug("Ranking answer: %r", raw)

        indices = parse_ranking(raw, len(pool))
        exclude = make_echo_filter(self._echo_filter, self._command_prefix, request_text)
        results = select_results(indices, pool, self._max_results, exclude)

        if not results:
            raise NoRelevantResultsError(
                f"No usable indices in ranking answer ({len(indices)} valid of pool {len(pool)})"
            )

        logger.info("Ranked %d of %d candidates", len(results), len(pool))
        return results
