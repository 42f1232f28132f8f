"""
Assistant Bot - Slack event layer

Receives Slack assistant events over webhooks and answers them.

Key Components:
- SlackHandler: Signature verification and event parsing
- Assistant: Greets, summarizes channels, answers questions, and routes
  "Fuzzy search:" messages to the fuzzy search pipeline
- server: FastAPI app (POST /slack/events, GET /health)
"""

from .assistant import Assistant, ThreadContextStore
from .handlers import AssistantEvent, SlackHandler

__all__ = [
    "Assistant",
    "ThreadContextStore",
    "AssistantEvent",
    "SlackHandler",
]
