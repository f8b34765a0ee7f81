from __future__ import annotations

from dataclasses import replace

from livedarts.scoring.game import LiveMatch, Match
from livedarts.scoring.resolver import Outcome
from livedarts.scoring.state import PlayerLegState, ScoringMode, initial_state


def _at(match: Match, score: int) -> LiveMatch:
    state = replace(
        initial_state(501),
        players=(PlayerLegState(score, total_score=501 - score, total_darts=21, leg_darts=21), PlayerLegState(501)),
        current_player=0,
        match_starter=0,
        scoring_mode=ScoringMode.TURN_TOTAL,
    )
    return LiveMatch(match, state=state)


def test_170_needs_confirmation_then_checks_out_with_three_darts(match: Match) -> None:
    g = _at(match, 170)

    r = g.submit_turn_total(170)
    assert r.accepted
    assert r.needs_confirmation
    assert g.state().pending_total == 170
    assert g.state().player(0).current_score == 170

    assert g.confirm_checkout(3, True) is Outcome.CHECKOUT
    s = g.state()
    assert s.pending_total is None
    assert s.player(0).legs == 1
    assert s.player(0).checkouts[-1].darts_used == 3
    assert s.player(0).checkouts[-1].checkout == "170"
    assert s.player(0).leg_details[-1].darts == 24
    assert s.current_leg == 2


def test_confirming_without_a_double_is_a_bust(match: Match) -> None:
    g = _at(match, 60)
    g.submit_turn_total(60)

    assert g.confirm_checkout(2, False) is Outcome.BUST
    s = g.state()
    assert s.player(0).current_score == 60
    assert s.player(0).busts == 1
    assert s.player(0).leg_darts == 23
    assert s.current_player == 1


def test_impossible_checkout_confirmation_is_rejected(match: Match) -> None:
    g = _at(match, 170)
    g.submit_turn_total(170)

    # 170 needs T20 T20 bull; it cannot be done in two darts.
    assert g.confirm_checkout(2, True) is None
    assert g.state().pending_total == 170
    assert g.confirm_checkout(3, True) is Outcome.CHECKOUT


def test_input_waits_while_a_checkout_is_pending(match: Match) -> None:
    g = _at(match, 100)
    g.submit_turn_total(100)

    assert g.add_dart(20) is None
    assert not g.submit_turn_total(50).accepted
    assert g.cancel_checkout()
    assert g.state().pending_total is None
    assert not g.cancel_checkout()

    assert g.submit_turn_total(50).outcome is Outcome.NORMAL
    assert g.state().player(0).current_score == 50


def test_totals_that_bust_resolve_immediately(match: Match) -> None:
    g = _at(match, 40)
    r = g.submit_turn_total(39)
    assert r.accepted
    assert r.outcome is Outcome.BUST
    assert g.state().player(0).current_score == 40

    g = _at(match, 40)
    assert g.submit_turn_total(41).outcome is Outcome.BUST


def test_out_of_range_totals_are_rejected(match: Match) -> None:
    g = _at(match, 501)
    assert not g.submit_turn_total(181).accepted
    assert not g.submit_turn_total(-5).accepted
    assert g.state().version == 0


def test_total_cannot_follow_darts_in_the_same_visit(match: Match) -> None:
    g = _at(match, 501)
    g.add_dart(20)
    assert not g.submit_turn_total(60).accepted


def test_scoring_mode_switches_only_between_visits(match: Match) -> None:
    g = _at(match, 501)
    assert g.set_scoring_mode("darts")
    g.add_dart(20)
    assert not g.set_scoring_mode("turn_total")
    g.add_dart(20)
    g.add_dart(20)
    assert g.set_scoring_mode(ScoringMode.TURN_TOTAL)
    assert g.state().scoring_mode is ScoringMode.TURN_TOTAL
