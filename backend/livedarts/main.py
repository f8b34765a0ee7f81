from __future__ import annotations

from typing import Literal

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import RedirectResponse
from fastapi.routing import APIRoute
from pydantic import BaseModel, Field

from livedarts.scoring.errors import InvalidConfigError, MatchCompletionError
from livedarts.scoring.finishes import suggest_finishes
from livedarts.scoring.game import Match, MatchConfig, MatchStatus, Player
from livedarts.scoring.state import MatchState
from livedarts.scoring.stats import MatchResult, PlayerStats
from livedarts.session import MatchSession
from livedarts.store import SessionStore, get_store
from livedarts.sync.snapshot import (
    CheckoutModel,
    LegDetailModel,
    PlayerStateModel,
    RemoteMatchRecord,
    VisitModel,
    player_to_model,
    visit_to_model,
)

app = FastAPI(title="Live Darts Scorer")


@app.get("/", include_in_schema=False)
def index(request: Request):
    if "text/html" in (request.headers.get("accept") or "").lower():
        return RedirectResponse(url="/docs")
    endpoints = sorted(
        f"{method} {route.path}"
        for route in app.routes
        if isinstance(route, APIRoute) and route.include_in_schema
        for method in route.methods
    )
    return {"name": app.title, "docs": "/docs", "health": "/health", "endpoints": endpoints}


@app.get("/health")
def health():
    return {"status": "ok"}


class PlayerDTO(BaseModel):
    id: str | None = None
    name: str = ""


class OpenMatchRequest(BaseModel):
    player1: PlayerDTO
    player2: PlayerDTO
    legs_to_win: int = Field(default=3, gt=0)
    starting_score: Literal[301, 501, 701] = 501
    status: MatchStatus = MatchStatus.PENDING
    group_id: str | None = None
    is_playoff: bool = False
    playoff_round: int | None = None
    playoff_match_number: int | None = None
    user_id: str | None = Field(default=None, description="Logged-in user; omit for view-only visitors")
    view_only: bool = False
    is_admin: bool = False


class StarterRequest(BaseModel):
    player: int = Field(..., ge=0, le=1)


class DartRequest(BaseModel):
    number: int = Field(..., description="0=miss, 1-20, 25=bull")
    modifier: Literal["single", "double", "triple"] | None = Field(
        default=None, description="Defaults to the current input mode"
    )


class InputModeRequest(BaseModel):
    modifier: Literal["single", "double", "triple"]


class ScoringModeRequest(BaseModel):
    mode: Literal["darts", "turn_total"]


class TurnTotalRequest(BaseModel):
    total: int = Field(..., ge=0, le=180)


class CheckoutConfirmationRequest(BaseModel):
    darts_used: int = Field(..., ge=1, le=3)
    finished_on_double: bool


class PlayerStateDTO(PlayerStateModel):
    average: float


class MatchStateDTO(BaseModel):
    match_id: str
    accepted: bool = True
    needs_confirmation: bool = False
    outcome: str | None = None
    phase: str
    can_score: bool
    current_leg: int
    current_player: int | None
    match_starter: int | None
    players: list[PlayerStateDTO]
    current_visit: VisitModel | None
    pending_total: int | None
    input_mode: str
    scoring_mode: str
    match_complete: bool
    winner: int | None
    history_length: int
    version: int


class FinishDTO(BaseModel):
    darts: list[str]
    total: int


class CheckoutHintsDTO(BaseModel):
    remaining: int | None
    suggestions: list[FinishDTO]


class PlayerStatsDTO(BaseModel):
    total_score: int
    total_darts: int
    average: float
    leg_averages: list[float]
    checkouts: list[CheckoutModel]
    legs: list[LegDetailModel]
    busts: int
    highest_visit: int
    count_180: int


class MatchResultDTO(BaseModel):
    match_id: str
    winner: str
    player1_id: str
    player2_id: str
    player1_legs: int
    player2_legs: int
    player1_stats: PlayerStatsDTO
    player2_stats: PlayerStatsDTO
    group_id: str | None
    is_playoff: bool
    playoff_round: int | None
    playoff_match_number: int | None


def _state_to_dto(session: MatchSession, s: MatchState, **extra) -> MatchStateDTO:
    return MatchStateDTO(
        match_id=session.match.id,
        phase=s.phase.value,
        can_score=session.can_score,
        current_leg=s.current_leg,
        current_player=s.current_player,
        match_starter=s.match_starter,
        players=[PlayerStateDTO(**player_to_model(p).model_dump(), average=p.average) for p in s.players],
        current_visit=visit_to_model(s.current_visit) if s.current_visit is not None else None,
        pending_total=s.pending_total,
        input_mode=s.input_mode.value,
        scoring_mode=s.scoring_mode.value,
        match_complete=s.match_complete,
        winner=s.winner,
        history_length=len(s.history),
        version=s.version,
        **extra,
    )


def _stats_to_dto(p: PlayerStats) -> PlayerStatsDTO:
    return PlayerStatsDTO(
        total_score=p.total_score,
        total_darts=p.total_darts,
        average=p.average,
        leg_averages=list(p.leg_averages),
        checkouts=[CheckoutModel(leg=c.leg, checkout=c.checkout, darts_used=c.darts_used) for c in p.checkouts],
        legs=[
            LegDetailModel(leg=d.leg, darts=d.darts, checkout=d.checkout, average=d.average, is_win=d.is_win)
            for d in p.legs
        ],
        busts=p.busts,
        highest_visit=p.highest_visit,
        count_180=p.count_180,
    )


def _result_to_dto(r: MatchResult) -> MatchResultDTO:
    return MatchResultDTO(
        match_id=r.match_id,
        winner=r.winner,
        player1_id=r.player1_id,
        player2_id=r.player2_id,
        player1_legs=r.player1_legs,
        player2_legs=r.player2_legs,
        player1_stats=_stats_to_dto(r.player1_stats),
        player2_stats=_stats_to_dto(r.player2_stats),
        group_id=r.group_id,
        is_playoff=r.is_playoff,
        playoff_round=r.playoff_round,
        playoff_match_number=r.playoff_match_number,
    )


def _store() -> SessionStore:
    return get_store()


def _session(match_id: str) -> MatchSession:
    session = _store().get(match_id)
    if session is None:
        raise HTTPException(status_code=404, detail="match is not open on this device")
    return session


def _respond(session: MatchSession, accepted: bool, **extra) -> MatchStateDTO:
    return _state_to_dto(session, session.state(), accepted=accepted, **extra)


@app.post("/matches/{match_id}/open", response_model=MatchStateDTO)
def open_match(match_id: str, req: OpenMatchRequest) -> MatchStateDTO:
    try:
        match = Match(
            id=match_id,
            player1=Player(id=req.player1.id, name=req.player1.name),
            player2=Player(id=req.player2.id, name=req.player2.name),
            config=MatchConfig(starting_score=req.starting_score, legs_to_win=req.legs_to_win),
            status=req.status,
            group_id=req.group_id,
            is_playoff=req.is_playoff,
            playoff_round=req.playoff_round,
            playoff_match_number=req.playoff_match_number,
        )
    except InvalidConfigError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    session = _store().open(match, user_id=req.user_id, view_only=req.view_only, is_admin=req.is_admin)
    return _respond(session, True)


# Matches currently scored on some device. Declared before the per-match route.
@app.get("/matches/live", response_model=list[RemoteMatchRecord])
def live_matches() -> list[RemoteMatchRecord]:
    return _store().live_matches()


@app.get("/matches/{match_id}", response_model=MatchStateDTO)
def get_match_state(match_id: str) -> MatchStateDTO:
    session = _session(match_id)
    return _state_to_dto(session, session.refresh(), accepted=True)


@app.post("/matches/{match_id}/starter", response_model=MatchStateDTO)
def select_starter(match_id: str, req: StarterRequest) -> MatchStateDTO:
    session = _session(match_id)
    return _respond(session, session.select_starter(req.player))


@app.post("/matches/{match_id}/input-mode", response_model=MatchStateDTO)
def set_input_mode(match_id: str, req: InputModeRequest) -> MatchStateDTO:
    session = _session(match_id)
    return _respond(session, session.set_input_mode(req.modifier))


@app.post("/matches/{match_id}/scoring-mode", response_model=MatchStateDTO)
def set_scoring_mode(match_id: str, req: ScoringModeRequest) -> MatchStateDTO:
    session = _session(match_id)
    return _respond(session, session.set_scoring_mode(req.mode))


@app.post("/matches/{match_id}/darts", response_model=MatchStateDTO)
def add_dart(match_id: str, req: DartRequest) -> MatchStateDTO:
    session = _session(match_id)
    try:
        dart = session.add_dart(req.number, req.modifier)
    except MatchCompletionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    outcome = None
    state = session.state()
    if dart is not None and state.current_visit is None and state.history:
        outcome = state.history[-1].outcome.value
    return _respond(session, dart is not None, outcome=outcome)


@app.post("/matches/{match_id}/total", response_model=MatchStateDTO)
def submit_turn_total(match_id: str, req: TurnTotalRequest) -> MatchStateDTO:
    session = _session(match_id)
    try:
        result = session.submit_turn_total(req.total)
    except MatchCompletionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _respond(
        session,
        result.accepted,
        needs_confirmation=result.needs_confirmation,
        outcome=result.outcome.value if result.outcome is not None else None,
    )


@app.post("/matches/{match_id}/confirm-checkout", response_model=MatchStateDTO)
def confirm_checkout(match_id: str, req: CheckoutConfirmationRequest) -> MatchStateDTO:
    session = _session(match_id)
    try:
        outcome = session.confirm_checkout(req.darts_used, req.finished_on_double)
    except MatchCompletionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _respond(session, outcome is not None, outcome=outcome.value if outcome is not None else None)


@app.post("/matches/{match_id}/cancel-checkout", response_model=MatchStateDTO)
def cancel_checkout(match_id: str) -> MatchStateDTO:
    session = _session(match_id)
    return _respond(session, session.cancel_checkout())


@app.post("/matches/{match_id}/undo", response_model=MatchStateDTO)
def undo(match_id: str) -> MatchStateDTO:
    session = _session(match_id)
    return _respond(session, session.undo())


@app.post("/matches/{match_id}/remove-last-dart", response_model=MatchStateDTO)
def remove_last_dart(match_id: str) -> MatchStateDTO:
    session = _session(match_id)
    return _respond(session, session.remove_last_dart())


@app.post("/matches/{match_id}/take-over", response_model=MatchStateDTO)
def take_over(match_id: str) -> MatchStateDTO:
    session = _session(match_id)
    return _respond(session, session.take_over())


@app.post("/matches/{match_id}/abandon")
def abandon(match_id: str) -> dict:
    return {"abandoned": _store().abandon(match_id)}


@app.post("/matches/{match_id}/close")
def close(match_id: str) -> dict:
    return {"closed": _store().close(match_id)}


# Checkout hints for the active player's remaining score.
@app.get("/matches/{match_id}/checkout", response_model=CheckoutHintsDTO)
def checkout_hints(match_id: str) -> CheckoutHintsDTO:
    state = _session(match_id).state()
    if state.current_player is None or state.match_complete:
        return CheckoutHintsDTO(remaining=None, suggestions=[])
    remaining = state.player(state.current_player).current_score
    darts_left = 3 - (state.current_visit.darts_thrown if state.current_visit is not None else 0)
    suggestions = suggest_finishes(remaining, max_darts=darts_left) if darts_left > 0 else tuple()
    return CheckoutHintsDTO(
        remaining=remaining,
        suggestions=[FinishDTO(darts=f.as_strings(), total=f.total) for f in suggestions],
    )


@app.get("/matches/{match_id}/result", response_model=MatchResultDTO)
def match_result(match_id: str) -> MatchResultDTO:
    session = _store().get(match_id)
    result = session.result() if session is not None else _store().result(match_id)
    if result is None:
        raise HTTPException(status_code=404, detail="match has no result yet")
    return _result_to_dto(result)
