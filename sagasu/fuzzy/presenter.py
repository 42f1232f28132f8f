"""Result Presenter: turns ranked hits into the Slack reply."""

from typing import List

from .messages import get_message
from .models import MessageHit

ELLIPSIS = "…"


def snippet(text: str, length: int = 30) -> str:
    """First ``length`` characters on one line, with an ellipsis when cut."""
    flat = " ".join((text or "").split())
    if len(flat) <= length:
        return flat
    return flat[:length] + ELLIPSIS


class ResultPresenter:
    """Formats the final result list. Pure and deterministic."""

    def __init__(self, snippet_length: int = 30):
        self._snippet_length = snippet_length

    def format(self, results: List[MessageHit], language: str = "en") -> str:
        label = get_message("link", language)
        return "\n".join(
            f"{position}. {snippet(hit.text, self._snippet_length)} → <{hit.permalink}|{label}>"
            for position, hit in enumerate(results, 1)
        )
