"""
Base Handler

Abstract base class for chat platform event handlers.
Handlers turn raw webhook payloads into AssistantEvents.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

THREAD_STARTED = "thread_started"
CONTEXT_CHANGED = "context_changed"
USER_MESSAGE = "user_message"


@dataclass
class AssistantEvent:
    """
    Platform-neutral assistant event.

    ``channel``/``thread_ts`` identify the assistant thread;
    ``context_channel`` is the channel the user was viewing when they opened it.
    """
    kind: str  # THREAD_STARTED, CONTEXT_CHANGED or USER_MESSAGE
    channel: str
    thread_ts: Optional[str]
    text: str = ""
    user: str = ""
    ts: str = ""
    context_channel: Optional[str] = None
    raw_data: Optional[Dict[str, Any]] = None


class BaseHandler(ABC):
    """
    Abstract base class for source handlers.

    Each handler must implement:
    - parse_event: Convert raw event to AssistantEvent
    - verify_signature: Verify webhook signature
    """

    @abstractmethod
    def parse_event(self, raw_data: Dict[str, Any]) -> Optional[AssistantEvent]:
        """
        Parse raw event data.

        Returns:
            AssistantEvent or None if the event should be ignored
        """
        pass

    @abstractmethod
    def verify_signature(self, body: bytes, signature: str, timestamp: str) -> bool:
        pass
