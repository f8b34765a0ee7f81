from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from livedarts.scoring.visit import Visit


class Outcome(str, Enum):
    NORMAL = "normal"
    BUST = "bust"
    CHECKOUT = "checkout"


@dataclass(frozen=True)
class Resolution:
    """
    Result of applying the finishing rules to a visit.

    - new_score: the player's remaining score after the visit
    - remaining: the raw turn_start_score - visit.score (may be negative)
    - closes_visit: whether the turn is over and play passes on
    """

    outcome: Outcome
    new_score: int
    remaining: int
    closes_visit: bool


def resolve(visit: Visit) -> Resolution:
    """
    Resolve a (possibly still open) visit under double-out rules.

    Bust: below 0, exactly 1 (no double can finish it), or 0 without a
    double on the last dart. The score reverts to the start of the visit.
    Checkout: exactly 0 with the last dart a double.
    Otherwise the score drops and the visit closes once 3 darts are in.
    """
    remaining = visit.remaining

    if remaining < 0 or remaining == 1:
        return Resolution(Outcome.BUST, visit.turn_start_score, remaining, True)

    if remaining == 0:
        if visit.ends_on_double:
            return Resolution(Outcome.CHECKOUT, 0, remaining, True)
        return Resolution(Outcome.BUST, visit.turn_start_score, remaining, True)

    return Resolution(Outcome.NORMAL, remaining, remaining, visit.is_full)
