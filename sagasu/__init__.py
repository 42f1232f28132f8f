"""
Sagasu

A Slack assistant that answers questions with an LLM and finds past messages
from vague descriptions ("fuzzy search").

Philosophy:
- The LLM proposes, the code validates: every piece of LLM output is parsed
  defensively before it steers the pipeline
- One failing search never sinks the whole fuzzy search
- Stateless per request: nothing is persisted between runs

Usage:
    from sagasu.common import load_config, LLMClient, SlackClient
    from sagasu.fuzzy import FuzzySearchPipeline
    from sagasu.bot.server import app
"""

__version__ = "0.1.0"
