from __future__ import annotations

import pytest

from livedarts.scoring.darts import Modifier
from livedarts.scoring.errors import MatchCompletionError
from livedarts.scoring.game import Match, MatchConfig, MatchStatus, Player
from livedarts.scoring.resolver import Outcome
from livedarts.store import SessionStore
from livedarts.sync.cache import InMemoryCache, match_key
from livedarts.sync.synchronizer import RecoverySource


def _store(cache, remote, scheduler, settings) -> SessionStore:
    return SessionStore(settings=settings, cache=cache, remote=remote, scheduler=scheduler)


def _one_leg(**players) -> Match:
    return Match(
        id="m1",
        player1=players.get("player1", Player(id="p1", name="Ann")),
        player2=players.get("player2", Player(id="p2", name="Bob")),
        config=MatchConfig(starting_score=501, legs_to_win=1),
    )


def _finish_leg(session, winner: int = 0) -> None:
    session.select_starter(winner)
    session.submit_turn_total(180)
    session.submit_turn_total(0)
    session.submit_turn_total(180)
    session.submit_turn_total(0)
    assert session.submit_turn_total(141).needs_confirmation
    assert session.confirm_checkout(3, True) is Outcome.CHECKOUT


def test_new_match_plays_to_a_result(cache, remote, scheduler, settings) -> None:
    store = _store(cache, remote, scheduler, settings)
    session = store.open(_one_leg(), user_id="u1")
    assert session.recovery_source is RecoverySource.NEW
    assert session.can_score
    assert store.open(_one_leg(), user_id="u1") is session

    _finish_leg(session)
    assert session.state().match_complete
    assert not session.presence.is_live("m1")
    assert cache.get(match_key("m1")) is None

    scheduler.run_pending()
    record = remote.fetch("m1")
    assert record.status == "completed"
    assert record.player1_legs == 1
    assert record.live_device_id is None

    result = store.result("m1")
    assert result is not None
    assert result.winner == "p1"
    assert result is session.result()


def test_reopening_resumes_from_the_device_cache(cache, remote, scheduler, settings) -> None:
    store = _store(cache, remote, scheduler, settings)
    session = store.open(_one_leg(), user_id="u1")
    session.select_starter(1)
    session.add_dart(20, Modifier.TRIPLE)
    session.add_dart(20, Modifier.TRIPLE)
    before = session.state()

    assert store.close("m1")
    scheduler.run_pending()
    assert not store.close("m1")

    again = _store(cache, remote, scheduler, settings)
    assert again.device_id == store.device_id
    resumed = again.open(_one_leg(), user_id="u1")
    assert resumed.recovery_source is RecoverySource.LOCAL
    assert resumed.state() == before
    resumed.add_dart(20, Modifier.TRIPLE)
    assert resumed.state().player(1).current_score == 321


def test_second_device_observes_and_recovers_remotely(cache, remote, scheduler, settings) -> None:
    a = _store(cache, remote, scheduler, settings).open(_one_leg(), user_id="u1")
    a.select_starter(0)
    for _ in range(3):
        a.add_dart(20, Modifier.TRIPLE)
    scheduler.run_pending()

    b = _store(InMemoryCache(), remote, scheduler, settings).open(_one_leg(), user_id="u2")
    assert b.recovery_source is RecoverySource.REMOTE
    assert b.state().player(0).current_score == 321
    assert b.state().current_player == 1
    assert not b.can_score
    assert b.add_dart(20) is None
    assert not b.take_over()


def test_admin_can_take_over_scoring(cache, remote, scheduler, settings) -> None:
    a = _store(cache, remote, scheduler, settings).open(_one_leg(), user_id="u1")
    a.select_starter(0)
    scheduler.run_pending()

    b = _store(InMemoryCache(), remote, scheduler, settings).open(_one_leg(), user_id="admin", is_admin=True)
    assert not b.can_score
    assert b.take_over()
    assert b.can_score
    assert not a.can_score

    assert b.add_dart(20, Modifier.TRIPLE) is not None
    assert a.add_dart(20) is None


def test_view_only_visitor_cannot_score(cache, remote, scheduler, settings) -> None:
    session = _store(cache, remote, scheduler, settings).open(_one_leg(), user_id="u1", view_only=True)
    assert not session.can_score
    assert not session.select_starter(0)
    assert session.state().current_player is None
    assert remote.fetch("m1") is None


def test_completed_match_does_not_register_presence(cache, remote, scheduler, settings) -> None:
    done = Match(id="m1", player1=Player(id="p1"), player2=Player(id="p2"), status=MatchStatus.COMPLETED)
    session = _store(cache, remote, scheduler, settings).open(done, user_id="u1")
    assert not session.presence.is_live("m1")
    assert not session.can_score


def test_abandon_leaves_the_remote_record_for_manual_resolution(cache, remote, scheduler, settings) -> None:
    store = _store(cache, remote, scheduler, settings)
    session = store.open(_one_leg(), user_id="u1")
    session.select_starter(0)
    session.add_dart(20)

    assert store.abandon("m1")
    assert store.get("m1") is None
    assert cache.get(match_key("m1")) is None
    scheduler.run_pending()

    record = remote.fetch("m1")
    assert record.status == "in_progress"
    assert record.player1_current_score == 481
    assert record.live_device_id is None
    assert not session.can_score


def test_missing_player_id_surfaces_on_completion(cache, remote, scheduler, settings) -> None:
    store = _store(cache, remote, scheduler, settings)
    session = store.open(_one_leg(player2=Player(id=None, name="Guest")), user_id="u1")
    session.select_starter(0)
    session.submit_turn_total(180)
    session.submit_turn_total(0)
    session.submit_turn_total(180)
    session.submit_turn_total(0)
    session.submit_turn_total(141)

    with pytest.raises(MatchCompletionError):
        session.confirm_checkout(3, True)
    assert not session.state().match_complete
    assert session.state().pending_total == 141
    assert store.result("m1") is None
    assert session.presence.is_live("m1")


def test_take_over_resumes_from_the_other_devices_latest_state(cache, remote, scheduler, settings) -> None:
    a = _store(cache, remote, scheduler, settings).open(_one_leg(), user_id="u1")
    a.select_starter(0)
    b = _store(InMemoryCache(), remote, scheduler, settings).open(_one_leg(), user_id="admin", is_admin=True)

    for _ in range(4):
        assert a.submit_turn_total(60).accepted
    scheduler.run_pending()
    pushed = remote.fetch("m1").version
    assert remote.fetch("m1").player1_current_score == 381

    assert b.take_over()
    s = b.state()
    assert [p.current_score for p in s.players] == [381, 381]
    assert s.current_player == 0
    assert s.version == pushed
    assert not a.submit_turn_total(60).accepted

    for _ in range(3):
        b.add_dart(20, Modifier.TRIPLE)
    scheduler.run_pending()
    record = remote.fetch("m1")
    assert record.player1_current_score == 201
    assert record.version > pushed
    assert record.live_device_id == b.presence.device_id


def test_observer_refresh_follows_the_scorer(cache, remote, scheduler, settings) -> None:
    a = _store(cache, remote, scheduler, settings).open(_one_leg(), user_id="u1")
    b = _store(InMemoryCache(), remote, scheduler, settings).open(_one_leg(), user_id="u2")
    a.select_starter(0)
    for _ in range(3):
        a.add_dart(20, Modifier.TRIPLE)
    scheduler.run_pending()

    s = b.refresh()
    assert s.player(0).current_score == 321
    assert s.current_player == 1
    assert b.state() == s

    a.submit_turn_total(100)
    scheduler.run_pending()
    assert b.refresh().player(1).current_score == 401
    assert b.add_dart(20) is None

    # The scorer's own view is never replaced from the remote record.
    before = a.state()
    assert a.refresh() is before


def test_idle_sessions_are_pruned_on_the_next_open(cache, remote, scheduler, settings, clock) -> None:
    store = SessionStore(settings=settings, cache=cache, remote=remote, scheduler=scheduler, clock=clock)
    session = store.open(_one_leg(), user_id="u1")
    session.select_starter(0)

    clock.advance(settings.presence_ttl_sec + 1)
    other = Match(id="m2", player1=Player(id="p1"), player2=Player(id="p2"))
    store.open(other, user_id="u1")

    assert store.get("m1") is None
    assert not session.can_score
    assert cache.get(match_key("m1")) is not None
    scheduler.run_pending()
    assert remote.fetch("m1").live_device_id is None
    assert [r.match_id for r in store.live_matches()] == ["m2"]
