from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from livedarts.logger import get_logger
from livedarts.scoring.darts import Dart, Modifier, make_dart
from livedarts.scoring.errors import InvalidConfigError, MatchCompletionError
from livedarts.scoring.finishes import is_finishable
from livedarts.scoring.history import HistoryEntry, checkpoint, record_visit, restore
from livedarts.scoring.resolver import Outcome, Resolution, resolve
from livedarts.scoring.state import (
    CheckoutRecord,
    LegDetail,
    MatchState,
    Phase,
    PlayerLegState,
    ScoringMode,
    initial_state,
    leg_starter,
    other_player,
)
from livedarts.scoring.stats import (
    MatchResult,
    build_match_result,
    count_visit,
    leg_average,
    three_dart_average,
)
from livedarts.scoring.visit import Visit, open_visit, turn_total_visit

log = get_logger("scoring.game")

STARTING_SCORES = (301, 501, 701)


class MatchStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ChangeKind(str, Enum):
    MUTATION = "mutation"
    VISIT_CLOSED = "visit_closed"
    LEG_COMPLETE = "leg_complete"
    MATCH_COMPLETE = "match_complete"


@dataclass(frozen=True)
class MatchConfig:
    starting_score: int = 501
    legs_to_win: int = 3

    def __post_init__(self) -> None:
        if self.starting_score not in STARTING_SCORES:
            raise InvalidConfigError("starting_score must be 301, 501 or 701")
        if self.legs_to_win <= 0:
            raise InvalidConfigError("legs_to_win must be > 0")


@dataclass(frozen=True)
class Player:
    id: str | None
    name: str = ""


@dataclass(frozen=True)
class Match:
    """
    A match as created by the tournament engine.

    The optional tournament fields are passed through to the MatchResult.
    """

    id: str
    player1: Player
    player2: Player
    config: MatchConfig = MatchConfig()
    status: MatchStatus = MatchStatus.PENDING
    group_id: str | None = None
    is_playoff: bool = False
    playoff_round: int | None = None
    playoff_match_number: int | None = None

    @property
    def has_player_ids(self) -> bool:
        return bool(self.player1.id) and bool(self.player2.id)


@dataclass(frozen=True)
class TurnTotalResult:
    accepted: bool
    needs_confirmation: bool = False
    outcome: Outcome | None = None


ChangeListener = Callable[[MatchState, ChangeKind], None]
CompletionListener = Callable[[MatchResult], None]


class LiveMatch:
    """
    Two-player double-out match controller: legs, busts, checkouts, and undo.

    This module contains no web/persistence imports.

    - A leg starts on config.starting_score for both players.
    - A visit is up to 3 darts, or one declared total in turn-total mode.
    - Bust: below 0, leaving 1, or reaching 0 without a double. The score
      reverts to the start of the visit; the darts still count.
    - Checkout wins the leg. legs_to_win legs win the match.
    - Leg starters alternate from the match starter (odd legs) to the
      other player (even legs).

    Invalid input is rejected by returning None/False and leaving the state
    untouched. State is immutable; every change produces a new MatchState
    and notifies `on_change`.
    """

    def __init__(
        self,
        match: Match,
        *,
        state: MatchState | None = None,
        can_score: Callable[[], bool] | None = None,
        on_change: ChangeListener | None = None,
        on_complete: CompletionListener | None = None,
    ) -> None:
        self._match = match
        self._config = match.config
        self._state = state or initial_state(self._config.starting_score)
        self._can_score = can_score or (lambda: True)
        self._on_change = on_change
        self._on_complete = on_complete
        self._result: MatchResult | None = None
        if self._state.match_complete and match.has_player_ids:
            self._result = build_match_result(match, self._state)

    @property
    def match(self) -> Match:
        return self._match

    @property
    def phase(self) -> Phase:
        return self._state.phase

    def state(self) -> MatchState:
        return self._state

    def result(self) -> MatchResult | None:
        return self._result

    # --- Starter ---

    def select_starter(self, player: int) -> bool:
        if not self._can_score():
            return self._reject("this device is not the scorer for the match")
        if self._state.phase is not Phase.AWAITING_STARTER:
            return self._reject("starter already chosen")
        if player not in (0, 1):
            return self._reject("starter must be player 0 or 1")
        state = replace(
            self._state,
            current_player=player,
            match_starter=player,
            current_leg=1,
            history=tuple(),
        )
        self._commit(state, ChangeKind.MUTATION)
        return True

    # --- Accumulator ---

    def set_input_mode(self, modifier: Modifier | str) -> bool:
        try:
            modifier = Modifier(modifier)
        except ValueError:
            return self._reject(f"unknown modifier {modifier!r}")
        if self._state.match_complete or not self._can_score():
            return self._reject("not accepting input")
        self._commit(replace(self._state, input_mode=modifier), ChangeKind.MUTATION)
        return True

    def set_scoring_mode(self, mode: ScoringMode | str) -> bool:
        try:
            mode = ScoringMode(mode)
        except ValueError:
            return self._reject(f"unknown scoring mode {mode!r}")
        if not self._can_score():
            return self._reject("this device is not the scorer for the match")
        visit = self._state.current_visit
        if visit is not None and not visit.is_empty:
            return self._reject("finish or clear the open visit first")
        if self._state.pending_total is not None:
            return self._reject("a checkout confirmation is pending")
        self._commit(replace(self._state, scoring_mode=mode), ChangeKind.MUTATION)
        return True

    def add_dart(self, number: int, modifier: Modifier | str | None = None) -> Dart | None:
        """
        Add one dart to the active player's visit.

        Returns the accepted dart, or None if the input was rejected.
        The input modifier falls back to single after every accepted dart.
        """
        state = self._state
        if not self._accepting_input():
            return None
        try:
            dart = make_dart(number, modifier if modifier is not None else state.input_mode)
        except ValueError as e:
            return self._reject_none(str(e))

        player = state.player(state.current_player)
        visit = state.current_visit or open_visit(player.current_score, dart_count=state.dart_count)
        if visit.is_full:
            return self._reject_none("3 darts already thrown")

        visit = visit.with_dart(dart)
        resolution = resolve(visit)
        if not resolution.closes_visit:
            provisional = replace(player, current_score=resolution.new_score)
            new_state = replace(
                state.with_player(state.current_player, provisional),
                current_visit=visit,
                input_mode=Modifier.SINGLE,
            )
            self._commit(new_state, ChangeKind.MUTATION)
            return dart

        self._close_visit(visit, resolution)
        return dart

    def submit_turn_total(self, total: int) -> TurnTotalResult:
        """
        Score a whole visit from its declared total (0-180).

        A total that would reach exactly zero is held until confirm_checkout()
        says how many darts were used and whether the last was a double.
        """
        state = self._state
        if not self._accepting_input():
            return TurnTotalResult(accepted=False)
        if state.current_visit is not None and not state.current_visit.is_empty:
            self._reject("an open darts visit must be finished first")
            return TurnTotalResult(accepted=False)

        player = state.player(state.current_player)
        try:
            visit = turn_total_visit(player.current_score, total, dart_count=state.dart_count)
        except ValueError as e:
            self._reject(str(e))
            return TurnTotalResult(accepted=False)

        if visit.remaining == 0:
            self._commit(
                replace(state, pending_total=total, current_visit=None),
                ChangeKind.MUTATION,
            )
            return TurnTotalResult(accepted=True, needs_confirmation=True)

        resolution = resolve(visit)
        self._close_visit(visit, resolution)
        return TurnTotalResult(accepted=True, outcome=resolution.outcome)

    def confirm_checkout(self, darts_used: int, finished_on_double: bool) -> Outcome | None:
        state = self._state
        total = state.pending_total
        if total is None:
            return self._reject_none("no checkout confirmation pending")
        if state.match_complete or not self._can_score():
            return self._reject_none("not accepting input")
        if finished_on_double and not is_finishable(total, darts_used):
            return self._reject_none(f"{total} cannot be finished with {darts_used} darts")

        player = state.player(state.current_player)
        try:
            visit = turn_total_visit(
                player.current_score,
                total,
                dart_count=state.dart_count,
                darts_used=darts_used,
                finished_on_double=finished_on_double,
            )
        except ValueError as e:
            return self._reject_none(str(e))

        resolution = resolve(visit)
        self._close_visit(visit, resolution)
        return resolution.outcome

    def cancel_checkout(self) -> bool:
        if self._state.pending_total is None:
            return self._reject("no checkout confirmation pending")
        if not self._can_score():
            return self._reject("this device is not the scorer for the match")
        self._commit(replace(self._state, pending_total=None), ChangeKind.MUTATION)
        return True

    # --- History & undo ---

    def undo(self) -> bool:
        """
        Revert the most recent closed visit, whatever its outcome.

        With no closed visit to revert, discards the open visit instead.
        """
        state = self._state
        if state.match_complete:
            return self._reject("a completed match cannot be undone")
        if not self._can_score():
            return self._reject("this device is not the scorer for the match")
        if state.history:
            self._commit(restore(state, state.history[-1]), ChangeKind.MUTATION)
            return True
        if state.pending_total is not None or (state.current_visit and not state.current_visit.is_empty):
            self._commit(self._rewind_open_visit(state), ChangeKind.MUTATION)
            return True
        return self._reject("nothing to undo")

    def remove_last_dart(self) -> bool:
        """
        Remove one dart from the open visit, restoring its points.

        If the open visit is empty, the last closed visit is reopened without
        its final dart (a closed turn-total visit is reverted whole).
        """
        state = self._state
        if state.match_complete or not self._can_score():
            return self._reject("not accepting input")
        if state.pending_total is not None:
            return self._reject("a checkout confirmation is pending")

        visit = state.current_visit
        if visit is not None and visit.darts:
            visit, _ = visit.without_last_dart()
            player = replace(state.player(state.current_player), current_score=visit.remaining)
            new_state = replace(
                state.with_player(state.current_player, player),
                current_visit=None if visit.is_empty else visit,
            )
            self._commit(new_state, ChangeKind.MUTATION)
            return True

        if not state.history:
            return self._reject("no dart to remove")

        entry = state.history[-1]
        restored = restore(state, entry)
        if entry.visit.is_turn_total or len(entry.visit.darts) <= 1:
            self._commit(restored, ChangeKind.MUTATION)
            return True

        reopened, _ = entry.visit.without_last_dart()
        player = replace(restored.player(entry.player), current_score=reopened.remaining)
        self._commit(
            replace(restored.with_player(entry.player, player), current_visit=reopened),
            ChangeKind.MUTATION,
        )
        return True

    # --- internals ---

    def _accepting_input(self) -> bool:
        state = self._state
        if state.match_complete:
            return self._reject("match is complete")
        if state.current_player is None:
            return self._reject("no active player; choose a starter first")
        if state.pending_total is not None:
            return self._reject("a checkout confirmation is pending")
        if not self._can_score():
            return self._reject("this device is not the scorer for the match")
        return True

    @staticmethod
    def _rewind_open_visit(state: MatchState) -> MatchState:
        visit = state.current_visit
        if visit is not None and state.current_player is not None:
            player = replace(state.player(state.current_player), current_score=visit.turn_start_score)
            state = state.with_player(state.current_player, player)
        return replace(state, current_visit=None, pending_total=None, input_mode=Modifier.SINGLE)

    def _close_visit(self, visit: Visit, resolution: Resolution) -> None:
        before = self._rewind_open_visit(self._state)
        index = before.current_player
        entry = HistoryEntry(
            player=index,
            leg=before.current_leg,
            visit=visit,
            outcome=resolution.outcome,
            before=checkpoint(before),
        )
        darts = visit.darts_thrown
        player = before.player(index)
        base = replace(
            before,
            history=record_visit(before.history, entry),
            dart_count=before.dart_count + darts,
        )

        if resolution.outcome is Outcome.BUST:
            player = replace(
                player,
                current_score=visit.turn_start_score,
                total_darts=player.total_darts + darts,
                leg_darts=player.leg_darts + darts,
                busts=player.busts + 1,
            )
            state = replace(base.with_player(index, player), current_player=other_player(index))
            self._commit(state, ChangeKind.VISIT_CLOSED)
            return

        player = count_visit(
            replace(
                player,
                current_score=resolution.new_score,
                total_score=player.total_score + visit.score,
                total_darts=player.total_darts + darts,
                leg_darts=player.leg_darts + darts,
            ),
            visit.score,
        )

        if resolution.outcome is Outcome.NORMAL:
            state = replace(base.with_player(index, player), current_player=other_player(index))
            self._commit(state, ChangeKind.VISIT_CLOSED)
            return

        self._finish_leg(base, index, player, visit, entry)

    def _finish_leg(
        self,
        base: MatchState,
        winner_index: int,
        winner: PlayerLegState,
        visit: Visit,
        entry: HistoryEntry,
    ) -> None:
        leg = base.current_leg
        loser_index = other_player(winner_index)
        label = visit.checkout_label
        average = leg_average(self._config.starting_score, winner.leg_darts)

        winner = replace(
            winner,
            legs=winner.legs + 1,
            leg_averages=(*winner.leg_averages, average),
            checkouts=(*winner.checkouts, CheckoutRecord(leg=leg, checkout=label, darts_used=visit.darts_thrown)),
            leg_details=(*winner.leg_details, LegDetail(leg, winner.leg_darts, label, average, True)),
        )
        loser = base.player(loser_index)
        partial = three_dart_average(self._config.starting_score - loser.current_score, loser.leg_darts)
        loser = replace(
            loser,
            leg_details=(*loser.leg_details, LegDetail(leg, loser.leg_darts, None, partial, False)),
        )
        state = base.with_player(winner_index, winner).with_player(loser_index, loser)

        if winner.legs >= self._config.legs_to_win:
            if not self._match.has_player_ids:
                log.error(
                    "cannot complete match %s: missing player ids (%r, %r)",
                    self._match.id,
                    self._match.player1.id,
                    self._match.player2.id,
                )
                raise MatchCompletionError(f"match {self._match.id} is missing a player id")
            state = replace(state, match_complete=True, winner=winner_index)
            result = build_match_result(self._match, state)
            self._commit(state, ChangeKind.MATCH_COMPLETE)
            self._emit(result)
            return

        next_leg = leg + 1
        starter = state.match_starter
        if starter is None:
            # Historical starter unknown: the leg loser throws first, and the
            # starter is back-computed so alternation holds from here on.
            first = loser_index
            starter = first if next_leg % 2 == 1 else other_player(first)
            log.info("match %s: starter unknown, inferred player %d from leg %d", self._match.id, starter, leg)
        first = leg_starter(next_leg, starter)

        p1, p2 = state.players
        start = self._config.starting_score
        state = replace(
            state,
            players=(
                replace(p1, current_score=start, leg_darts=0),
                replace(p2, current_score=start, leg_darts=0),
            ),
            current_leg=next_leg,
            current_player=first,
            match_starter=starter,
            history=(entry,),
        )
        self._commit(state, ChangeKind.LEG_COMPLETE)

    def _commit(self, state: MatchState, kind: ChangeKind) -> None:
        self._state = replace(state, version=self._state.version + 1)
        if self._on_change is not None:
            self._on_change(self._state, kind)

    def _emit(self, result: MatchResult) -> None:
        if self._result is not None:
            return
        self._result = result
        log.info("match %s complete, winner %s (%d-%d)", result.match_id, result.winner, result.player1_legs, result.player2_legs)
        if self._on_complete is not None:
            self._on_complete(result)

    def _reject(self, reason: str) -> bool:
        log.debug("match %s: input rejected: %s", self._match.id, reason)
        return False

    def _reject_none(self, reason: str) -> None:
        self._reject(reason)
        return None
