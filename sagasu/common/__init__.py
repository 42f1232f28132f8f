"""
Sagasu Common Module

Shared infrastructure for the fuzzy search pipeline and the assistant bot.
"""

from .config import SagasuConfig, load_config, setup_logging
from .llm_client import CompletionError, LLMClient
from .slack_client import SlackAPIError, SlackClient

__all__ = [
    "SagasuConfig",
    "load_config",
    "setup_logging",
    "CompletionError",
    "LLMClient",
    "SlackAPIError",
    "SlackClient",
]
