from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from livedarts.scoring.state import CheckoutRecord, LegDetail, MatchState, PlayerLegState

if TYPE_CHECKING:
    from livedarts.scoring.game import Match


def three_dart_average(points: int, darts: int) -> float:
    if darts <= 0:
        return 0.0
    return (points / darts) * 3.0


def leg_average(starting_score: int, leg_darts: int) -> float:
    """
    Average for a won leg: the whole starting score over the darts it took.
    """
    return three_dart_average(starting_score, leg_darts)


def count_visit(player: PlayerLegState, total: int) -> PlayerLegState:
    """
    Fold a scoring (non-bust) visit total into the player's visit counters.
    """
    return replace(
        player,
        highest_visit=max(player.highest_visit, total),
        count_180=player.count_180 + (1 if total == 180 else 0),
        count_140_plus=player.count_140_plus + (1 if total >= 140 else 0),
        count_100_plus=player.count_100_plus + (1 if total >= 100 else 0),
    )


@dataclass(frozen=True)
class PlayerStats:
    total_score: int
    total_darts: int
    leg_averages: tuple[float, ...]
    checkouts: tuple[CheckoutRecord, ...]
    legs: tuple[LegDetail, ...]
    busts: int
    highest_visit: int
    count_180: int
    count_140_plus: int
    count_100_plus: int

    @property
    def average(self) -> float:
        # Over the whole match, whatever the number of legs won.
        return three_dart_average(self.total_score, self.total_darts)


@dataclass(frozen=True)
class MatchResult:
    """
    Final outcome of a match, handed to the tournament engine exactly once.
    """

    match_id: str
    winner: str
    player1_id: str
    player2_id: str
    player1_legs: int
    player2_legs: int
    player1_stats: PlayerStats
    player2_stats: PlayerStats
    group_id: str | None = None
    is_playoff: bool = False
    playoff_round: int | None = None
    playoff_match_number: int | None = None


def player_stats(p: PlayerLegState) -> PlayerStats:
    return PlayerStats(
        total_score=p.total_score,
        total_darts=p.total_darts,
        leg_averages=p.leg_averages,
        checkouts=p.checkouts,
        legs=p.leg_details,
        busts=p.busts,
        highest_visit=p.highest_visit,
        count_180=p.count_180,
        count_140_plus=p.count_140_plus,
        count_100_plus=p.count_100_plus,
    )


def build_match_result(match: Match, state: MatchState) -> MatchResult:
    if state.winner is None:
        raise ValueError("match has no winner yet")
    ids = (match.player1.id, match.player2.id)
    p1, p2 = state.players
    return MatchResult(
        match_id=match.id,
        winner=ids[state.winner],
        player1_id=ids[0],
        player2_id=ids[1],
        player1_legs=p1.legs,
        player2_legs=p2.legs,
        player1_stats=player_stats(p1),
        player2_stats=player_stats(p2),
        group_id=match.group_id,
        is_playoff=match.is_playoff,
        playoff_round=match.playoff_round,
        playoff_match_number=match.playoff_match_number,
    )
