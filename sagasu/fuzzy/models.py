"""
Fuzzy Search Data Model

Values passed between the pipeline stages. Everything here lives for a
single pipeline run.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class SearchRequest:
    """One fuzzy search, as typed by the user"""
    raw_text: str
    original_query: str
    scope_id: Optional[str] = None  # channel to join when search lacks access


@dataclass(frozen=True)
class MessageHit:
    """A single message returned by the search API"""
    text: str
    permalink: str  # dedup key
    author: str = ""
    channel: str = ""
    ts: str = ""
    query: str = ""  # expanded query that found it
    raw_index: int = -1  # position in the candidate pool

    @classmethod
    def from_match(cls, match: Dict[str, Any], query: str = "") -> "MessageHit":
        return cls(
            text=match.get("text", "") or "",
            permalink=match.get("permalink", "") or "",
            author=match.get("author", "") or "",
            channel=match.get("channel", "") or "",
            ts=match.get("ts", "") or "",
            query=query,
        )


@dataclass
class QueryOutcome:
    """Result of running one expanded query"""
    query: str
    hits: List[MessageHit] = field(default_factory=list)
    ok: bool = True
    error: Optional[str] = None
    retried: bool = False

    @property
    def hit_count(self) -> int:
        return len(self.hits)


@dataclass
class AggregationStats:
    """Per-query bookkeeping from the search fan-out. Observability only."""
    outcomes: List[QueryOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[str]:
        return [o.query for o in self.outcomes if o.ok]

    @property
    def failed(self) -> List[str]:
        return [o.query for o in self.outcomes if not o.ok]

    @property
    def retried(self) -> List[str]:
        return [o.query for o in self.outcomes if o.retried]

    @property
    def total_hits(self) -> int:
        return sum(o.hit_count for o in self.outcomes)

    def summary(self) -> str:
        return (
            f"{len(self.succeeded)}/{len(self.outcomes)} queries succeeded "
            f"({len(self.retried)} retried after joining), {self.total_hits} hits"
        )
