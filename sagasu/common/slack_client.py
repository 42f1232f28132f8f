"""
Slack Web API Client

Thin async wrapper over the Slack Web API using httpx.
One instance is shared by every request handled by the process; it holds
only read-only credentials and a pooled HTTP connection.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger("sagasu.common.slack_client")


class SlackAPIError(Exception):
    """Slack rejected a Web API call or could not be reached."""

    def __init__(self, method: str, error: str, retry_after: Optional[float] = None):
        super().__init__(f"{method} failed: {error}")
        self.method = method
        self.error = error
        self.retry_after = retry_after


class SlackClient:
    """
    Async Slack Web API client.

    Usage:
        client = SlackClient(bot_token="xoxb-...", user_token="xoxp-...")
        matches = await client.search_messages("progress report", count=20)
        await client.aclose()
    """

    def __init__(
        self,
        bot_token: str = "",
        user_token: str = "",
        base_url: str = "https://slack.com/api",
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._bot_token = bot_token
        self._user_token = user_token
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    @classmethod
    def from_config(cls, slack_config) -> "SlackClient":
        return cls(
            bot_token=slack_config.bot_token,
            user_token=slack_config.user_token,
            base_url=slack_config.api_base_url,
            timeout=slack_config.timeout,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def api_call(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Call a Web API method and return the decoded body.

        Raises:
            SlackAPIError: on transport errors, non-2xx responses, rate
                limiting or an ``ok: false`` body
        """
        token = token or self._bot_token
        form = {}
        for key, value in (params or {}).items():
            if value is None:
                continue
            if isinstance(value, bool):
                form[key] = "true" if value else "false"
            elif isinstance(value, (list, dict)):
                form[key] = json.dumps(value)
            else:
                form[key] = str(value)

        try:
            response = await self._http.post(
                f"{self._base_url}/{method}",
                data=form,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as e:
            raise SlackAPIError(method, "timeout") from e
        except httpx.HTTPError as e:
            raise SlackAPIError(method, f"transport_error: {e}") from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise SlackAPIError(
                method,
                "ratelimited",
                retry_after=float(retry_after) if retry_after else None,
            )
        if response.status_code >= 400:
            raise SlackAPIError(method, f"http_{response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise SlackAPIError(method, "invalid_json") from e

        if not body.get("ok"):
            raise SlackAPIError(method, body.get("error", "unknown_error"))

        if body.get("warning"):
            logger.debug("%s warning: %s", method, body["warning"])
        return body

    # =========================================================================
    # Search
    # =========================================================================

    async def search_messages(
        self,
        query: str,
        count: int = 20,
        exclude_bots: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Run search.messages with the user token.

        Returns:
            Matches normalised to dicts with text, permalink, author,
            channel and ts
        """
        body = await self.api_call(
            "search.messages",
            {"query": query, "count": count, "search_exclude_bots": exclude_bots},
            token=self._user_token,
        )
        matches = (body.get("messages") or {}).get("matches") or []
        return [self._normalise_match(m) for m in matches]

    @staticmethod
    def _normalise_match(match: Dict[str, Any]) -> Dict[str, Any]:
        channel = match.get("channel") or {}
        if isinstance(channel, dict):
            channel_name = channel.get("name") or channel.get("id", "")
        else:
            channel_name = str(channel)
        return {
            "text": match.get("text", ""),
            "permalink": match.get("permalink", ""),
            "author": match.get("username") or match.get("user", ""),
            "channel": channel_name,
            "ts": match.get("ts", ""),
        }

    # =========================================================================
    # Conversations
    # =========================================================================

    async def join_conversation(self, channel: str) -> None:
        await self.api_call("conversations.join", {"channel": channel})

    async def conversations_history(self, channel: str, limit: int = 50) -> List[Dict[str, Any]]:
        body = await self.api_call("conversations.history", {"channel": channel, "limit": limit})
        return body.get("messages", [])

    async def conversations_replies(
        self,
        channel: str,
        ts: str,
        oldest: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        body = await self.api_call(
            "conversations.replies",
            {"channel": channel, "ts": ts, "oldest": oldest},
        )
        return body.get("messages", [])

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self.api_call(
            "chat.postMessage",
            {"channel": channel, "text": text, "thread_ts": thread_ts},
        )

    # =========================================================================
    # Assistant threads
    # =========================================================================

    async def set_status(self, channel: str, thread_ts: str, status: str) -> None:
        await self.api_call(
            "assistant.threads.setStatus",
            {"channel_id": channel, "thread_ts": thread_ts, "status": status},
        )

    async def set_title(self, channel: str, thread_ts: str, title: str) -> None:
        await self.api_call(
            "assistant.threads.setTitle",
            {"channel_id": channel, "thread_ts": thread_ts, "title": title},
        )

    async def set_suggested_prompts(
        self,
        channel: str,
        thread_ts: str,
        prompts: List[Dict[str, str]],
        title: Optional[str] = None,
    ) -> None:
        await self.api_call(
            "assistant.threads.setSuggestedPrompts",
            {"channel_id": channel, "thread_ts": thread_ts, "prompts": prompts, "title": title},
        )
