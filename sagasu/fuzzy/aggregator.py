"""
Result Aggregator

Fans expanded queries out to the SearchExecutor and builds the candidate
pool.

Searches run concurrently (bounded by a semaphore) but every query owns a
pre-reserved slot, so the pool is assembled in query order whatever order
the searches finish in. Ranker indices are therefore reproducible.
"""

import asyncio
import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from .models import AggregationStats, MessageHit, QueryOutcome
from .search_executor import SearchExecutor

logger = logging.getLogger("sagasu.fuzzy.aggregator")


class ResultAggregator:
    """Runs every expanded query and concatenates the hits."""

    def __init__(self, executor: SearchExecutor, concurrency: int = 5):
        self._executor = executor
        self._concurrency = max(1, concurrency)

    async def aggregate(
        self,
        queries: List[str],
        scope_id: Optional[str] = None,
    ) -> Tuple[List[MessageHit], AggregationStats]:
        """
        Search every query and build the candidate pool.

        Returns:
            (pool, stats). The pool keeps duplicates; ``raw_index`` of each
            hit is its position in the pool.
        """
        slots: List[Optional[QueryOutcome]] = [None] * len(queries)
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _worker(position: int, query: str) -> None:
            async with semaphore:
                slots[position] = await self._executor.search(query, scope_id=scope_id)

        await asyncio.gather(*(_worker(i, q) for i, q in enumerate(queries)))

        pool: List[MessageHit] = []
        for outcome in slots:
            for hit in outcome.hits:
                pool.append(replace(hit, raw_index=len(pool)))

        stats = AggregationStats(outcomes=list(slots))
        logger.info("Aggregated %s into a pool of %d", stats.summary(), len(pool))
        if stats.failed:
            logger.warning("Failed queries: %s", stats.failed)
        return pool, stats
