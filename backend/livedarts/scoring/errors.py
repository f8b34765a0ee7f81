from __future__ import annotations


class ScoringError(Exception):
    """Base class for errors raised by the scoring engine."""


class InvalidConfigError(ScoringError, ValueError):
    pass


class MatchCompletionError(ScoringError):
    """
    Raised when a visit would complete the match but the result cannot be emitted,
    e.g. because a player id is missing. The visit is not applied.
    """
