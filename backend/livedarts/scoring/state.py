from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from livedarts.scoring.darts import Modifier
from livedarts.scoring.visit import Visit

if TYPE_CHECKING:
    from livedarts.scoring.history import HistoryEntry


class Phase(str, Enum):
    AWAITING_STARTER = "awaiting_starter"
    LEG_IN_PROGRESS = "leg_in_progress"
    MATCH_COMPLETE = "match_complete"


class ScoringMode(str, Enum):
    DARTS = "darts"
    TURN_TOTAL = "turn_total"


@dataclass(frozen=True)
class CheckoutRecord:
    leg: int
    checkout: str
    darts_used: int


@dataclass(frozen=True)
class LegDetail:
    leg: int
    darts: int
    checkout: str | None
    average: float
    is_win: bool


@dataclass(frozen=True)
class PlayerLegState:
    """
    Per-player scoring state for a match.

    current_score and leg_darts belong to the leg being played. Everything
    else accumulates over the whole match.
    """

    current_score: int
    legs: int = 0
    total_score: int = 0
    total_darts: int = 0
    leg_darts: int = 0
    leg_averages: tuple[float, ...] = ()
    checkouts: tuple[CheckoutRecord, ...] = ()
    leg_details: tuple[LegDetail, ...] = ()
    busts: int = 0
    highest_visit: int = 0
    count_180: int = 0
    count_140_plus: int = 0
    count_100_plus: int = 0

    @property
    def average(self) -> float:
        if self.total_darts == 0:
            return 0.0
        return (self.total_score / self.total_darts) * 3.0


@dataclass(frozen=True)
class MatchState:
    starting_score: int
    players: tuple[PlayerLegState, PlayerLegState]
    current_leg: int = 1
    current_player: int | None = None  # None until a starter is chosen
    match_starter: int | None = None  # None when unknown (e.g. recovered remotely)
    current_visit: Visit | None = None
    history: tuple[HistoryEntry, ...] = field(default_factory=tuple)
    match_complete: bool = False
    winner: int | None = None
    input_mode: Modifier = Modifier.SINGLE
    scoring_mode: ScoringMode = ScoringMode.DARTS
    pending_total: int | None = None  # turn total awaiting checkout confirmation
    dart_count: int = 0  # darts in closed visits, whole match
    version: int = 0

    @property
    def phase(self) -> Phase:
        if self.match_complete:
            return Phase.MATCH_COMPLETE
        if self.current_player is None:
            return Phase.AWAITING_STARTER
        return Phase.LEG_IN_PROGRESS

    @property
    def has_started(self) -> bool:
        return self.current_player is not None or self.match_starter is not None

    def player(self, index: int) -> PlayerLegState:
        return self.players[_check_index(index)]

    def with_player(self, index: int, updated: PlayerLegState) -> MatchState:
        if _check_index(index) == 0:
            return replace(self, players=(updated, self.players[1]))
        return replace(self, players=(self.players[0], updated))


def _check_index(index: int) -> int:
    if index not in (0, 1):
        raise ValueError("player index must be 0 or 1")
    return index


def other_player(index: int) -> int:
    return 1 - _check_index(index)


def leg_starter(leg: int, match_starter: int) -> int:
    """
    Odd legs are started by the match starter, even legs by the other player.
    """
    if leg < 1:
        raise ValueError("leg numbers start at 1")
    return match_starter if leg % 2 == 1 else other_player(match_starter)


def initial_state(starting_score: int) -> MatchState:
    return MatchState(
        starting_score=starting_score,
        players=(PlayerLegState(starting_score), PlayerLegState(starting_score)),
    )
