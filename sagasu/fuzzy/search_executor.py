"""
Search Executor

Runs one expanded query against Slack's search.messages.

Failures never escape: a failing query becomes a failed QueryOutcome with
no hits, so one bad query cannot abort a fuzzy search.
"""

import asyncio
import logging
from typing import Iterable, Optional

from ..common.slack_client import SlackAPIError, SlackClient
from .models import MessageHit, QueryOutcome

logger = logging.getLogger("sagasu.fuzzy.search_executor")


class SearchExecutor:
    """
    Executes single search queries with one recovery path.

    When Slack answers with a membership error (the caller cannot see the
    scope), the executor joins the scope once and retries with a smaller
    limit. Anything else is recorded as a failed outcome.
    """

    def __init__(
        self,
        slack_client: SlackClient,
        limit: int = 20,
        retry_limit: int = 10,
        exclude_bots: bool = True,
        timeout: float = 15.0,
        membership_errors: Iterable[str] = ("not_in_channel",),
    ):
        self._slack = slack_client
        self._limit = limit
        self._retry_limit = retry_limit
        self._exclude_bots = exclude_bots
        self._timeout = timeout
        self._membership_errors = frozenset(membership_errors)

    async def search(
        self,
        query: str,
        limit: Optional[int] = None,
        scope_id: Optional[str] = None,
    ) -> QueryOutcome:
        """
        Run one query.

        Args:
            query: Expanded search query
            limit: Result count (default from constructor)
            scope_id: Channel to join if Slack reports missing membership

        Returns:
            QueryOutcome; ``ok`` is False when the query failed
        """
        limit = limit or self._limit
        try:
            return await self._run(query, limit)
        except SlackAPIError as e:
            if e.error not in self._membership_errors:
                return self._failed(query, e.error)
            if not scope_id:
                return self._failed(query, f"{e.error} (no scope to join)")
            return await self._recover(query, scope_id, e.error)
        except asyncio.TimeoutError:
            return self._failed(query, "timeout")
        except Exception as e:
            logger.error("Unexpected search error for %r: %s", query, e, exc_info=True)
            return QueryOutcome(query=query, ok=False, error=f"unexpected: {e}")

    async def _recover(self, query: str, scope_id: str, reason: str) -> QueryOutcome:
        logger.info("Search %r hit %s, joining %s and retrying", query, reason, scope_id)
        try:
            await asyncio.wait_for(self._slack.join_conversation(scope_id), self._timeout)
            outcome = await self._run(query, self._retry_limit)
        except SlackAPIError as e:
            return self._failed(query, f"retry failed: {e.error}", retried=True)
        except asyncio.TimeoutError:
            return self._failed(query, "retry failed: timeout", retried=True)
        except Exception as e:
            logger.error("Unexpected retry error for %r: %s", query, e, exc_info=True)
            return self._failed(query, f"retry failed: unexpected: {e}", retried=True)
        outcome.retried = True
        return outcome

    async def _run(self, query: str, limit: int) -> QueryOutcome:
        matches = await asyncio.wait_for(
            self._slack.search_messages(query, count=limit, exclude_bots=self._exclude_bots),
            self._timeout,
        )
        hits = [MessageHit.from_match(m, query=query) for m in matches]
        logger.info("Search %r: %d messages", query, len(hits))
        return QueryOutcome(query=query, hits=hits)

    def _failed(self, query: str, error: str, retried: bool = False) -> QueryOutcome:
        logger.warning("Search %r failed: %s", query, error)
        return QueryOutcome(query=query, ok=False, error=error, retried=retried)
