"""
Assistant

Reacts to assistant thread events:
- thread started: greet, remember the context channel, suggest prompts
- context changed: remember the new context channel
- user message: summarize the context channel, run a fuzzy search, or
  answer from the thread history with the LLM
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from ..common.config import AssistantConfig
from ..common.llm_client import DEFAULT_SYSTEM_PROMPT, LLMClient
from ..common.slack_client import SlackAPIError, SlackClient
from ..fuzzy.pipeline import FuzzySearchPipeline
from ..fuzzy.query_expander import is_fuzzy_search_request
from .handlers import CONTEXT_CHANGED, THREAD_STARTED, USER_MESSAGE, AssistantEvent

logger = logging.getLogger("sagasu.bot.assistant")

GREETING = "Hi, how can I help?"
FAILURE_MESSAGE = "Sorry, something went wrong!"
TYPING_STATUS = "is typing.."

SUMMARIZE_PROMPT_MESSAGE = "Assistant, please summarize the activity in this channel!"
SUMMARIZE_PROMPT = "Please generate a brief summary of the following messages from Slack channel <#{channel}>:"
# Output language instruction appended to the summary request
SUMMARY_LANGUAGE_INSTRUCTIONS = {
    "en": "Please write the summary in English.",
    "ja": "出力は必ず日本語でお願いします！",
}


class ThreadContextStore:
    """In-memory map of assistant thread -> context channel (bounded LRU)."""

    def __init__(self, max_threads: int = 1000):
        self._max_threads = max_threads
        self._contexts: "OrderedDict[Tuple[str, str], Optional[str]]" = OrderedDict()

    def save(self, channel: str, thread_ts: str, context_channel: Optional[str]) -> None:
        key = (channel, thread_ts)
        self._contexts[key] = context_channel
        self._contexts.move_to_end(key)
        while len(self._contexts) > self._max_threads:
            self._contexts.popitem(last=False)

    def get(self, channel: str, thread_ts: str) -> Optional[str]:
        return self._contexts.get((channel, thread_ts))


class Assistant:
    """Routes assistant thread events to the right behaviour."""

    def __init__(
        self,
        slack_client: SlackClient,
        llm_client: LLMClient,
        pipeline: FuzzySearchPipeline,
        config: Optional[AssistantConfig] = None,
        command_prefix: str = "Fuzzy search",
        context_store: Optional[ThreadContextStore] = None,
        language: str = "en",
    ):
        self._slack = slack_client
        self._llm = llm_client
        self._pipeline = pipeline
        self._config = config or AssistantConfig()
        self._command_prefix = command_prefix
        self._contexts = context_store or ThreadContextStore()
        self._language = language

    async def handle(self, event: AssistantEvent) -> None:
        if event.kind == THREAD_STARTED:
            await self.thread_started(event)
        elif event.kind == CONTEXT_CHANGED:
            self.context_changed(event)
        elif event.kind == USER_MESSAGE:
            await self.user_message(event)

    # =========================================================================
    # Thread lifecycle
    # =========================================================================

    def suggested_prompts(self, context_channel: Optional[str]) -> List[Dict[str, str]]:
        prompts = [{
            "title": "This is a suggested prompt",
            "message": (
                "When a user clicks a prompt, the resulting prompt message text can be passed "
                "directly to your LLM for processing.\n\nAssistant, please create some helpful "
                "prompts I can provide to my users."
            ),
        }]
        # Summaries only make sense when the thread was opened from a channel
        if context_channel:
            prompts.append({"title": "Summarize channel", "message": SUMMARIZE_PROMPT_MESSAGE})
        prompts.append({"title": "Fuzzy search", "message": f"{self._command_prefix}:"})
        return prompts

    async def thread_started(self, event: AssistantEvent) -> None:
        try:
            await self._slack.post_message(event.channel, GREETING, thread_ts=event.thread_ts)
            self._contexts.save(event.channel, event.thread_ts, event.context_channel)
            await self._slack.set_suggested_prompts(
                event.channel,
                event.thread_ts,
                self.suggested_prompts(event.context_channel),
                title="Here are some suggested options:",
            )
        except SlackAPIError as e:
            logger.error("Failed to start assistant thread: %s", e)

    def context_changed(self, event: AssistantEvent) -> None:
        self._contexts.save(event.channel, event.thread_ts, event.context_channel)

    # =========================================================================
    # User messages
    # =========================================================================

    async def user_message(self, event: AssistantEvent) -> None:
        async def say(text: str) -> None:
            await self._slack.post_message(event.channel, text, thread_ts=event.thread_ts)

        try:
            await self._slack.set_title(event.channel, event.thread_ts, event.text)
            await self._slack.set_status(event.channel, event.thread_ts, TYPING_STATUS)

            context_channel = self._contexts.get(event.channel, event.thread_ts)

            if event.text.strip() == SUMMARIZE_PROMPT_MESSAGE:
                reply = await self.summarize_channel(context_channel)
            elif is_fuzzy_search_request(event.text, self._command_prefix):
                reply = await self._pipeline.run(event.text, scope_id=context_channel, notify=say)
            else:
                reply = await self.answer_in_thread(event)

            await say(reply)
        except Exception as e:
            logger.error("Failed to handle assistant message: %s", e, exc_info=True)
            try:
                await say(FAILURE_MESSAGE)
            except SlackAPIError as post_error:
                logger.error("Failed to post failure message: %s", post_error)

    async def summarize_channel(self, channel: Optional[str]) -> str:
        """Summarize recent messages of the thread's context channel."""
        if not channel:
            raise ValueError("Assistant thread has no context channel to summarize")

        try:
            history = await self._slack.conversations_history(
                channel, limit=self._config.history_limit
            )
        except SlackAPIError as e:
            if e.error != "not_in_channel":
                raise
            # Join the channel being asked about, then retry once
            logger.info("Joining %s to read its history", channel)
            await self._slack.join_conversation(channel)
            history = await self._slack.conversations_history(
                channel, limit=self._config.retry_history_limit
            )

        prompt = SUMMARIZE_PROMPT.format(channel=channel)
        instruction = SUMMARY_LANGUAGE_INSTRUCTIONS.get(self._language)
        if instruction:
            prompt += f" {instruction}"
        # conversations.history is newest first
        for message in reversed(history):
            if message.get("user"):
                prompt += f"\n<@{message['user']}> says: {message.get('text', '')}"

        return await asyncio.to_thread(
            self._llm.generate, prompt, system=DEFAULT_SYSTEM_PROMPT
        )

    async def answer_in_thread(self, event: AssistantEvent) -> str:
        """Answer the message with the thread history as conversation."""
        replies = await self._slack.conversations_replies(
            event.channel, event.thread_ts, oldest=event.thread_ts
        )
        messages = [
            {"role": "assistant" if m.get("bot_id") else "user", "content": m.get("text", "")}
            for m in replies
            if m.get("ts") != event.ts
        ]
        messages.append({"role": "user", "content": event.text})

        return await asyncio.to_thread(
            self._llm.chat, messages, system=DEFAULT_SYSTEM_PROMPT
        )
