"""Fuzzy search failure conditions."""


class FuzzySearchError(Exception):
    """Base class for fuzzy search pipeline errors."""
    pass


class EmptyQueryError(FuzzySearchError):
    """The request carried no search term after the command label."""
    pass


class ExpansionFailedError(FuzzySearchError):
    """The completion service failed or answered nothing during expansion."""
    pass


class RankingFailedError(FuzzySearchError):
    """The completion service failed during re-ranking."""
    pass


class NoRelevantResultsError(FuzzySearchError):
    """Ranking produced no usable result. An expected outcome, not a bug."""
    pass
