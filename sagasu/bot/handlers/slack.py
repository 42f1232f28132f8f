"""
Slack Handler

Handles Slack Events API webhooks for the assistant container.
"""

import hashlib
import hmac
import time
from typing import Any, Dict, Optional

from .base import (
    CONTEXT_CHANGED,
    THREAD_STARTED,
    USER_MESSAGE,
    AssistantEvent,
    BaseHandler,
)

# Requests older than this are rejected as possible replays
SIGNATURE_MAX_AGE = 300


class SlackHandler(BaseHandler):
    """
    Handler for Slack Events API webhooks.

    Processes:
    - assistant_thread_started
    - assistant_thread_context_changed
    - user messages inside assistant threads (DM threads)

    Ignores:
    - Bot messages and message subtypes (edits, joins, deletions...)
    - Messages outside assistant threads
    """

    def __init__(self, signing_secret: str = ""):
        self._signing_secret = signing_secret

    def parse_event(self, raw_data: Dict[str, Any]) -> Optional[AssistantEvent]:
        if raw_data.get("type") != "event_callback":
            return None

        event = raw_data.get("event", {})
        event_type = event.get("type", "")

        if event_type == "assistant_thread_started":
            return self._parse_thread_event(THREAD_STARTED, event)
        if event_type == "assistant_thread_context_changed":
            return self._parse_thread_event(CONTEXT_CHANGED, event)
        if event_type == "message":
            return self._parse_message_event(event)
        return None

    def _parse_thread_event(self, kind: str, event: Dict[str, Any]) -> Optional[AssistantEvent]:
        thread = event.get("assistant_thread", {})
        channel = thread.get("channel_id")
        if not channel:
            return None
        context = thread.get("context", {}) or {}
        return AssistantEvent(
            kind=kind,
            channel=channel,
            thread_ts=thread.get("thread_ts"),
            user=thread.get("user_id", ""),
            context_channel=context.get("channel_id"),
            raw_data=event,
        )

    def _parse_message_event(self, event: Dict[str, Any]) -> Optional[AssistantEvent]:
        # Skip bot messages, including our own replies
        if event.get("bot_id") or event.get("subtype"):
            return None

        # Assistant threads live in the app's DM with the user
        if event.get("channel_type") != "im" or not event.get("thread_ts"):
            return None

        text = event.get("text", "")
        if not text.strip():
            return None

        return AssistantEvent(
            kind=USER_MESSAGE,
            channel=event.get("channel", ""),
            thread_ts=event.get("thread_ts"),
            text=text,
            user=event.get("user", ""),
            ts=event.get("ts", ""),
            raw_data=event,
        )

    def verify_signature(self, body: bytes, signature: str, timestamp: str) -> bool:
        """
        Verify Slack request signature (v0 HMAC-SHA256).

        Args:
            body: Raw request body
            signature: X-Slack-Signature header
            timestamp: X-Slack-Request-Timestamp header
        """
        if not self._signing_secret:
            # Skip verification if no secret configured
            return True

        if not signature or not timestamp:
            return False

        try:
            ts = int(timestamp)
        except ValueError:
            return False
        if abs(time.time() - ts) > SIGNATURE_MAX_AGE:
            return False

        sig_basestring = b"v0:" + timestamp.encode("utf-8") + b":" + body
        expected_sig = "v0=" + hmac.new(
            self._signing_secret.encode("utf-8"),
            sig_basestring,
            hashlib.sha256,
        ).hexdigest()

        return hmac.compare_digest(expected_sig, signature)

    def is_url_verification(self, raw_data: Dict[str, Any]) -> bool:
        return raw_data.get("type") == "url_verification"

    def get_challenge(self, raw_data: Dict[str, Any]) -> Optional[str]:
        if self.is_url_verification(raw_data):
            return raw_data.get("challenge")
        return None
