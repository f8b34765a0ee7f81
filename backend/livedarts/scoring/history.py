from __future__ import annotations

from dataclasses import dataclass, replace

from livedarts.scoring.darts import Modifier
from livedarts.scoring.resolver import Outcome
from livedarts.scoring.state import MatchState, PlayerLegState
from livedarts.scoring.visit import Visit


@dataclass(frozen=True)
class Checkpoint:
    """
    Everything a visit can change, captured just before the visit.

    History is deliberately not part of it; entries would otherwise nest
    every earlier entry.
    """

    current_leg: int
    current_player: int | None
    match_starter: int | None
    players: tuple[PlayerLegState, PlayerLegState]
    dart_count: int


@dataclass(frozen=True)
class HistoryEntry:
    player: int
    leg: int
    visit: Visit
    outcome: Outcome
    before: Checkpoint


def checkpoint(state: MatchState) -> Checkpoint:
    return Checkpoint(
        current_leg=state.current_leg,
        current_player=state.current_player,
        match_starter=state.match_starter,
        players=state.players,
        dart_count=state.dart_count,
    )


def record_visit(history: tuple[HistoryEntry, ...], entry: HistoryEntry) -> tuple[HistoryEntry, ...]:
    return (*history, entry)


def restore(state: MatchState, entry: HistoryEntry) -> MatchState:
    """
    Rewind `state` to just before `entry`'s visit and drop the entry.

    `entry` must be the last item of state.history.
    """
    if not state.history or state.history[-1] is not entry:
        raise ValueError("only the most recent visit can be restored")
    before = entry.before
    return replace(
        state,
        current_leg=before.current_leg,
        current_player=before.current_player,
        match_starter=before.match_starter,
        players=before.players,
        dart_count=before.dart_count,
        current_visit=None,
        history=state.history[:-1],
        match_complete=False,
        winner=None,
        pending_total=None,
        input_mode=Modifier.SINGLE,
    )
