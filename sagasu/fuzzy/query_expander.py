"""
Query Expander

Turns one vague user query into concrete Slack search queries
(keywords + search operators) with a single LLM call.
"""

import logging
import re
from typing import List, Optional

from ..common.llm_client import DEFAULT_SYSTEM_PROMPT, CompletionError, LLMClient
from .errors import EmptyQueryError, ExpansionFailedError

logger = logging.getLogger("sagasu.fuzzy.query_expander")


EXPANSION_PROMPT = """A user is looking for past Slack messages about "{query}".
Generate variations of search terms that help this search and output them in a form usable with Slack's search.messages method.

- "{query}" may be a single word or a sentence (a question). Read the intent and produce related search terms, considering synonyms, abbreviations, and both English and Japanese notation.
- Combine keywords with Slack search operators where they help.
- Operators to consider:
    - OR finds messages containing either word.
    - from:@user, in:#channel, after:YYYY-MM-DD, before:YYYY-MM-DD, has:link narrow the scope.
- Do not use operators unnecessarily; judge what fits the request.
- Use OR so that results the user wants come up efficiently, but do not overuse it: too much OR picks up messages that are unrelated to the request.
- Output keywords and operators only. No explanations, no numbering.
- Each query is keywords separated by spaces; output one query per line.
- List at most {max_queries} concrete queries.
- After writing the queries, check again that they really search for "{query}", then give your final output.

### Expected output example
videojs-overlay フルスクリーン from:@ItoMadoka
videojs-overlay fullscreen in:#onboarding-itomado
videojs-overlay フルスクリーン 検証 after:2024-01-01
videojs-overlay fullscreen has:link"""

# Separators between queries in the LLM output
_SPLIT_RE = re.compile(r"[\n,，]+")
# Bullets or numbering the LLM adds despite being told not to
_MARKER_RE = re.compile(r"^(?:[-*•]\s+|\d+[.)]\s+)")
# Separators allowed between the command label and the query
_LABEL_SEPARATORS = (":", "：")


def _after_label(text: str, command_prefix: str) -> Optional[str]:
    """Text following the command label, or None when ``text`` is not labelled.

    The label must end at a word boundary: end of text, whitespace or a
    separator. "Fuzzy searching" is not a request.
    """
    stripped = (text or "").strip()
    if not command_prefix or not stripped.lower().startswith(command_prefix.lower()):
        return None
    rest = stripped[len(command_prefix):]
    if rest and not (rest[0].isspace() or rest[0] in _LABEL_SEPARATORS):
        return None
    return rest


def extract_query(text: str, command_prefix: str) -> str:
    """
    Strip the command label from a fuzzy search request.

    "Fuzzy search: 進捗報告" -> "進捗報告". Only the leading label and one
    separator (":" or full-width "：") are removed. Text without the label
    is returned trimmed.
    """
    rest = _after_label(text, command_prefix)
    if rest is None:
        return (text or "").strip()
    rest = rest.lstrip()
    if rest[:1] in _LABEL_SEPARATORS:
        rest = rest[1:]
    return rest.strip()


def is_fuzzy_search_request(text: str, command_prefix: str) -> bool:
    """Whether a chat message asks for a fuzzy search"""
    return _after_label(text, command_prefix) is not None


def parse_expansion(raw: str, max_queries: int = 10) -> List[str]:
    """
    Parse LLM output into search queries.

    Splits on newlines and commas, trims, drops empty tokens, bullets and
    code fences, removes exact duplicates and keeps at most ``max_queries``
    in output order.
    """
    queries = []
    seen = set()
    for token in _SPLIT_RE.split(raw or ""):
        token = _MARKER_RE.sub("", token.strip()).strip()
        if not token or token.startswith("```"):
            continue
        if token in seen:
            continue
        seen.add(token)
        queries.append(token)
    return queries[:max_queries]


class QueryExpander:
    """
    Expands a fuzzy query into concrete search queries.

    No side effects beyond the completion call.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        max_queries: int = 10,
        max_tokens: int = 512,
        timeout: float = 30.0,
    ):
        self._llm = llm_client
        self._max_queries = max_queries
        self._max_tokens = max_tokens
        self._timeout = timeout

    def build_prompt(self, query: str) -> str:
        return EXPANSION_PROMPT.format(query=query, max_queries=self._max_queries)

    def expand(self, query: str) -> List[str]:
        """
        Expand a query into at most ``max_queries`` search queries.

        Args:
            query: The search term, command label already removed

        Raises:
            EmptyQueryError: the query is blank (the LLM is not called)
            ExpansionFailedError: the completion call failed or its output
                held no query
        """
        query = (query or "").strip()
        if not query:
            raise EmptyQueryError("No search term to expand")

        try:
            raw = self._llm.generate(
                self.build_prompt(query),
                system=DEFAULT_SYSTEM_PROMPT,
                max_tokens=self._max_tokens,
                timeout=self._timeout,
            )
        except CompletionError as e:
            raise ExpansionFailedError(f"Query expansion failed: {e}") from e

        queries = parse_expansion(raw, self._max_queries)
        if not queries:
            raise ExpansionFailedError("Query expansion returned no queries")

        logger.info("Expanded %r into %d queries: %s", query, len(queries), queries)
        return queries
