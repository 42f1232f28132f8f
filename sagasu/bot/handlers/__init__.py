"""
Source Handlers

Each handler converts platform webhook payloads to AssistantEvents.

Available Handlers:
- SlackHandler: Slack Events API
"""

from .base import (
    CONTEXT_CHANGED,
    THREAD_STARTED,
    USER_MESSAGE,
    AssistantEvent,
    BaseHandler,
)
from .slack import SlackHandler

__all__ = [
    "CONTEXT_CHANGED",
    "THREAD_STARTED",
    "USER_MESSAGE",
    "AssistantEvent",
    "BaseHandler",
    "SlackHandler",
]
