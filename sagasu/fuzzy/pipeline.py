"""
Fuzzy Search Pipeline

Entry point the assistant calls for a "Fuzzy search: ..." message.

Pipeline:
1. Strip the command label (empty -> usage hint)
2. Expand the query with the LLM (failure -> generic failure message)
3. Search every expanded query, concurrently, into one candidate pool
   (empty pool -> "no results")
4. Re-rank the pool with the LLM (nothing usable -> "no relevant results",
   transport failure -> generic failure message)
5. Format the ranked hits

Each run is independent; components only hold read-only configuration
and shared clients.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Type

from ..common.language import pick_language
from ..common.llm_client import LLMClient
from ..common.slack_client import SlackClient
from .aggregator import ResultAggregator
from .errors import (
    EmptyQueryError,
    ExpansionFailedError,
    FuzzySearchError,
    NoRelevantResultsError,
    RankingFailedError,
)
from .messages import SUPPORTED_LANGUAGES, get_message
from .models import SearchRequest
from .presenter import ResultPresenter
from .query_expander import QueryExpander, extract_query
from .ranker import RelevanceRanker
from .search_executor import SearchExecutor

logger = logging.getLogger("sagasu.fuzzy.pipeline")

Notify = Callable[[str], Awaitable[None]]


class FuzzySearchPipeline:
    """
    Orchestrates expansion, search, ranking and presentation.

    ``run`` always returns text for the user: either the formatted results
    or one of the designated messages. Details of every failure go to the
    log, never to the user.
    """

    def __init__(
        self,
        expander: QueryExpander,
        aggregator: ResultAggregator,
        ranker: RelevanceRanker,
        presenter: ResultPresenter,
        command_prefix: str = "Fuzzy search",
        announce_queries: bool = True,
        default_language: str = "en",
        llm_timeout: float = 30.0,
        stage_timeout: Optional[float] = None,
    ):
        self._expander = expander
        self._aggregator = aggregator
        self._ranker = ranker
        self._presenter = presenter
        self._command_prefix = command_prefix
        self._announce_queries = announce_queries
        self._default_language = default_language
        # Hard ceiling on a blocking LLM stage, above the client's own timeout
        self._stage_timeout = stage_timeout if stage_timeout is not None else llm_timeout + 5.0

    @classmethod
    def from_config(
        cls,
        config,
        llm_client: LLMClient,
        slack_client: SlackClient,
    ) -> "FuzzySearchPipeline":
        """Wire the pipeline from a SagasuConfig"""
        fuzzy = config.fuzzy
        llm = config.llm
        executor = SearchExecutor(
            slack_client,
            limit=fuzzy.search_limit,
            retry_limit=fuzzy.retry_limit,
            exclude_bots=fuzzy.exclude_bots,
            timeout=fuzzy.search_timeout,
            membership_errors=fuzzy.membership_errors,
        )
        return cls(
            expander=QueryExpander(
                llm_client,
                max_queries=fuzzy.max_queries,
                max_tokens=llm.max_tokens,
                timeout=llm.timeout,
            ),
            aggregator=ResultAggregator(executor, concurrency=fuzzy.concurrency),
            ranker=RelevanceRanker(
                llm_client,
                max_results=fuzzy.max_results,
                command_prefix=fuzzy.command_prefix,
                echo_filter=fuzzy.echo_filter,
                max_tokens=llm.max_tokens,
                timeout=llm.timeout,
            ),
            presenter=ResultPresenter(snippet_length=fuzzy.snippet_length),
            command_prefix=fuzzy.command_prefix,
            announce_queries=fuzzy.announce_queries,
            default_language=fuzzy.default_language,
            llm_timeout=llm.timeout,
        )

    def parse_request(self, raw_text: str, scope_id: Optional[str] = None) -> SearchRequest:
        query = extract_query(raw_text, self._command_prefix)
        if not query:
            raise EmptyQueryError("No search term after the command label")
        return SearchRequest(raw_text=raw_text, original_query=query, scope_id=scope_id)

    async def run(
        self,
        raw_text: str,
        scope_id: Optional[str] = None,
        notify: Optional[Notify] = None,
    ) -> str:
        """
        Run one fuzzy search.

        Args:
            raw_text: The user's message, command label included
            scope_id: Channel the search may join on membership errors
            notify: Optional callback for progress messages

        Returns:
            Text to post back to the user
        """
        query = extract_query(raw_text, self._command_prefix)
        language = pick_language(query, SUPPORTED_LANGUAGES, self._default_language)

        try:
            request = self.parse_request(raw_text, scope_id)

            queries = await self._blocking(
                ExpansionFailedError, self._expander.expand, request.original_query
            )
            if notify is not None and self._announce_queries:
                await self._notify(
                    notify, get_message("queries", language, queries=", ".join(queries))
                )

            pool, stats = await self._aggregator.aggregate(queries, scope_id=request.scope_id)
            if not pool:
                logger.info("No candidates for %r (%s)", request.original_query, stats.summary())
                return get_message("no_results", language)

            results = await self._blocking(
                RankingFailedError,
                self._ranker.rank,
                request.original_query,
                pool,
                request.raw_text,
            )
            return self._presenter.format(results, language)

        except EmptyQueryError:
            return get_message("usage", language, prefix=self._command_prefix)
        except NoRelevantResultsError as e:
            logger.info("No relevant results for %r: %s", query, e)
            return get_message("no_relevant", language)
        except (ExpansionFailedError, RankingFailedError) as e:
            logger.error("Fuzzy search for %r failed: %s", query, e, exc_info=True)
            return get_message("failure", language)
        except Exception as e:
            logger.error("Unexpected fuzzy search error for %r: %s", query, e, exc_info=True)
            return get_message("failure", language)

    async def _blocking(self, error_cls: Type[FuzzySearchError], func, *args):
        """Run a synchronous LLM stage off the event loop, with a ceiling."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), self._stage_timeout)
        except asyncio.TimeoutError as e:
            name = getattr(func, "__name__", "LLM stage")
            raise error_cls(f"{name} timed out after {self._stage_timeout}s") from e

    async def _notify(self, notify: Notify, text: str) -> None:
        try:
            await notify(text)
        except Exception as e:
            logger.warning("Progress message failed: %s", e)
