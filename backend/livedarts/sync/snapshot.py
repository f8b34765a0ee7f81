from __future__ import annotations

import time
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from livedarts.scoring.darts import Dart, Modifier
from livedarts.scoring.history import Checkpoint, HistoryEntry
from livedarts.scoring.resolver import Outcome
from livedarts.scoring.state import CheckoutRecord, LegDetail, MatchState, PlayerLegState, ScoringMode
from livedarts.scoring.visit import Visit


class DartModel(BaseModel):
    number: int = Field(..., ge=0, le=25)
    multiplier: int = Field(..., ge=0, le=3)


class VisitModel(BaseModel):
    turn_start_score: int
    darts: list[DartModel] = Field(default_factory=list)
    dart_count: int = 0
    declared_total: int | None = None
    declared_darts: int | None = None
    finished_on_double: bool = False


class CheckoutModel(BaseModel):
    leg: int
    checkout: str
    darts_used: int


class LegDetailModel(BaseModel):
    leg: int
    darts: int
    checkout: str | None
    average: float
    is_win: bool


class PlayerStateModel(BaseModel):
    current_score: int
    legs: int = 0
    total_score: int = 0
    total_darts: int = 0
    leg_darts: int = 0
    leg_averages: list[float] = Field(default_factory=list)
    checkouts: list[CheckoutModel] = Field(default_factory=list)
    leg_details: list[LegDetailModel] = Field(default_factory=list)
    busts: int = 0
    highest_visit: int = 0
    count_180: int = 0
    count_140_plus: int = 0
    count_100_plus: int = 0


class CheckpointModel(BaseModel):
    current_leg: int
    current_player: int | None
    match_starter: int | None
    players: list[PlayerStateModel]
    dart_count: int


class HistoryEntryModel(BaseModel):
    player: int
    leg: int
    visit: VisitModel
    outcome: Outcome
    before: CheckpointModel


class PersistedMatchState(BaseModel):
    """
    Device-local snapshot of a live match. Holds everything needed to resume
    exactly, down to the open visit's darts.
    """

    match_id: str
    version: int
    saved_at: float
    starting_score: int
    current_leg: int = 1
    current_player: int | None = None
    match_starter: int | None = None
    players: list[PlayerStateModel]
    current_visit: VisitModel | None = None
    history: list[HistoryEntryModel] = Field(default_factory=list)
    match_complete: bool = False
    winner: int | None = None
    input_mode: Modifier = Modifier.SINGLE
    scoring_mode: ScoringMode = ScoringMode.DARTS
    pending_total: int | None = None
    dart_count: int = 0


class RemoteMatchRecord(BaseModel):
    """
    Cross-device copy of a match. Coarse: no individual throws.
    """

    match_id: str
    status: str = "pending"
    current_leg: int = 1
    player1_current_score: int | None = None
    player2_current_score: int | None = None
    player1_legs: int = 0
    player2_legs: int = 0
    current_player: int | None = None
    match_starter: int | None = None
    last_activity_at: datetime | None = None
    started_by_user_id: str | None = None
    live_device_id: str | None = None
    version: int = 0


# --- dataclass -> model ---


def visit_to_model(v: Visit) -> VisitModel:
    return VisitModel(
        turn_start_score=v.turn_start_score,
        darts=[DartModel(number=d.number, multiplier=d.multiplier) for d in v.darts],
        dart_count=v.dart_count,
        declared_total=v.declared_total,
        declared_darts=v.declared_darts,
        finished_on_double=v.finished_on_double,
    )


def player_to_model(p: PlayerLegState) -> PlayerStateModel:
    return PlayerStateModel(
        current_score=p.current_score,
        legs=p.legs,
        total_score=p.total_score,
        total_darts=p.total_darts,
        leg_darts=p.leg_darts,
        leg_averages=list(p.leg_averages),
        checkouts=[CheckoutModel(leg=c.leg, checkout=c.checkout, darts_used=c.darts_used) for c in p.checkouts],
        leg_details=[
            LegDetailModel(leg=d.leg, darts=d.darts, checkout=d.checkout, average=d.average, is_win=d.is_win)
            for d in p.leg_details
        ],
        busts=p.busts,
        highest_visit=p.highest_visit,
        count_180=p.count_180,
        count_140_plus=p.count_140_plus,
        count_100_plus=p.count_100_plus,
    )


def _entry_to_model(e: HistoryEntry) -> HistoryEntryModel:
    return HistoryEntryModel(
        player=e.player,
        leg=e.leg,
        visit=visit_to_model(e.visit),
        outcome=e.outcome,
        before=CheckpointModel(
            current_leg=e.before.current_leg,
            current_player=e.before.current_player,
            match_starter=e.before.match_starter,
            players=[player_to_model(p) for p in e.before.players],
            dart_count=e.before.dart_count,
        ),
    )


def to_persisted(match_id: str, state: MatchState) -> PersistedMatchState:
    return PersistedMatchState(
        match_id=match_id,
        version=state.version,
        saved_at=time.time(),
        starting_score=state.starting_score,
        current_leg=state.current_leg,
        current_player=state.current_player,
        match_starter=state.match_starter,
        players=[player_to_model(p) for p in state.players],
        current_visit=visit_to_model(state.current_visit) if state.current_visit is not None else None,
        history=[_entry_to_model(e) for e in state.history],
        match_complete=state.match_complete,
        winner=state.winner,
        input_mode=state.input_mode,
        scoring_mode=state.scoring_mode,
        pending_total=state.pending_total,
        dart_count=state.dart_count,
    )


# --- model -> dataclass ---


def _visit_from_model(m: VisitModel) -> Visit:
    return Visit(
        turn_start_score=m.turn_start_score,
        darts=tuple(Dart(d.number, d.multiplier) for d in m.darts),
        dart_count=m.dart_count,
        declared_total=m.declared_total,
        declared_darts=m.declared_darts,
        finished_on_double=m.finished_on_double,
    )


def _player_from_model(m: PlayerStateModel) -> PlayerLegState:
    return PlayerLegState(
        current_score=m.current_score,
        legs=m.legs,
        total_score=m.total_score,
        total_darts=m.total_darts,
        leg_darts=m.leg_darts,
        leg_averages=tuple(m.leg_averages),
        checkouts=tuple(CheckoutRecord(c.leg, c.checkout, c.darts_used) for c in m.checkouts),
        leg_details=tuple(LegDetail(d.leg, d.darts, d.checkout, d.average, d.is_win) for d in m.leg_details),
        busts=m.busts,
        highest_visit=m.highest_visit,
        count_180=m.count_180,
        count_140_plus=m.count_140_plus,
        count_100_plus=m.count_100_plus,
    )


def _pair(players: list[PlayerStateModel]) -> tuple[PlayerLegState, PlayerLegState]:
    if len(players) != 2:
        raise ValueError("a match snapshot must hold exactly 2 players")
    return (_player_from_model(players[0]), _player_from_model(players[1]))


def _entry_from_model(m: HistoryEntryModel) -> HistoryEntry:
    return HistoryEntry(
        player=m.player,
        leg=m.leg,
        visit=_visit_from_model(m.visit),
        outcome=m.outcome,
        before=Checkpoint(
            current_leg=m.before.current_leg,
            current_player=m.before.current_player,
            match_starter=m.before.match_starter,
            players=_pair(m.before.players),
            dart_count=m.before.dart_count,
        ),
    )


def from_persisted(p: PersistedMatchState) -> MatchState:
    return MatchState(
        starting_score=p.starting_score,
        players=_pair(p.players),
        current_leg=p.current_leg,
        current_player=p.current_player,
        match_starter=p.match_starter,
        current_visit=_visit_from_model(p.current_visit) if p.current_visit is not None else None,
        history=tuple(_entry_from_model(e) for e in p.history),
        match_complete=p.match_complete,
        winner=p.winner,
        input_mode=p.input_mode,
        scoring_mode=p.scoring_mode,
        pending_total=p.pending_total,
        dart_count=p.dart_count,
        version=p.version,
    )


# --- remote record ---


def remote_status(state: MatchState) -> str:
    if state.match_complete:
        return "completed"
    if state.has_started:
        return "in_progress"
    return "pending"


def to_remote_record(
    match_id: str,
    state: MatchState,
    *,
    device_id: str | None = None,
    user_id: str | None = None,
) -> RemoteMatchRecord:
    p1, p2 = state.players
    return RemoteMatchRecord(
        match_id=match_id,
        status=remote_status(state),
        current_leg=state.current_leg,
        player1_current_score=p1.current_score,
        player2_current_score=p2.current_score,
        player1_legs=p1.legs,
        player2_legs=p2.legs,
        current_player=state.current_player,
        match_starter=state.match_starter,
        last_activity_at=datetime.now(timezone.utc),
        started_by_user_id=user_id,
        live_device_id=None if state.match_complete else device_id,
        version=state.version,
    )


def remote_shows_progress(record: RemoteMatchRecord, starting_score: int) -> bool:
    return (
        record.current_leg > 1
        or record.player1_legs > 0
        or record.player2_legs > 0
        or (record.player1_current_score is not None and record.player1_current_score != starting_score)
        or (record.player2_current_score is not None and record.player2_current_score != starting_score)
        or (record.match_starter is not None and record.current_player is not None)
    )


def from_remote_record(record: RemoteMatchRecord, starting_score: int) -> MatchState:
    """
    Rebuild a best-effort state from the remote record.

    Dart-level detail and statistics are lost; leg number, scores, legs and
    the active player survive. The match starter comes from the record when
    it was persisted, and is otherwise only inferable in leg 1.
    """
    current_player = record.current_player if record.current_player is not None else 0
    if record.match_starter is not None:
        starter = record.match_starter
    elif record.current_leg == 1:
        starter = current_player
    else:
        starter = None

    def score(value: int | None) -> int:
        return value if value is not None else starting_score

    completed = record.status == "completed"
    winner = None
    if completed and record.player1_legs != record.player2_legs:
        winner = 0 if record.player1_legs > record.player2_legs else 1

    return MatchState(
        starting_score=starting_score,
        players=(
            PlayerLegState(current_score=score(record.player1_current_score), legs=record.player1_legs),
            PlayerLegState(current_score=score(record.player2_current_score), legs=record.player2_legs),
        ),
        current_leg=record.current_leg,
        current_player=current_player,
        match_starter=starter,
        match_complete=completed,
        winner=winner,
        version=record.version,
    )
