from dataclasses import replace

import pytest

from livedarts.scoring.game import Match
from livedarts.scoring.state import CheckoutRecord, PlayerLegState, initial_state
from livedarts.scoring.stats import build_match_result, count_visit, leg_average, player_stats, three_dart_average


def test_three_dart_average() -> None:
    assert three_dart_average(180, 3) == 180.0
    assert three_dart_average(501, 9) == pytest.approx(167.0)
    assert three_dart_average(100, 0) == 0.0


def test_leg_average_uses_the_starting_score() -> None:
    assert leg_average(501, 15) == pytest.approx(100.2)


def test_visit_counters() -> None:
    p = PlayerLegState(501)
    for total in (180, 140, 100, 99, 26):
        p = count_visit(p, total)
    assert p.highest_visit == 180
    assert p.count_180 == 1
    assert p.count_140_plus == 2
    assert p.count_100_plus == 3


def test_player_stats_mirror_leg_state() -> None:
    p = PlayerLegState(
        0,
        legs=1,
        total_score=501,
        total_darts=15,
        leg_averages=(100.2,),
        checkouts=(CheckoutRecord(leg=1, checkout="D20", darts_used=1),),
        busts=2,
    )
    stats = player_stats(p)
    assert stats.average == pytest.approx(100.2)
    assert stats.checkouts[0].checkout == "D20"
    assert stats.busts == 2


def test_result_requires_a_winner(match: Match) -> None:
    with pytest.raises(ValueError):
        build_match_result(match, initial_state(501))


def test_result_maps_winner_to_player_id(match: Match) -> None:
    state = replace(
        initial_state(501),
        players=(PlayerLegState(0, legs=1), PlayerLegState(32, legs=2)),
        match_complete=True,
        winner=1,
    )
    result = build_match_result(match, state)
    assert result.winner == "p2"
    assert (result.player1_id, result.player2_id) == ("p1", "p2")
    assert (result.player1_legs, result.player2_legs) == (1, 2)
    assert result.group_id == "g1"
    assert not result.is_playoff
