from __future__ import annotations

from livedarts.presence.tracker import DEVICE_ID_KEY, PresenceTracker, load_or_create_device_id
from livedarts.scoring.game import MatchStatus
from livedarts.sync.remote import RemoteStoreError


def _tracker(remote, scheduler, settings, clock, *, device_id="dev-a", **kwargs) -> PresenceTracker:
    return PresenceTracker(
        device_id=device_id, remote=remote, scheduler=scheduler, settings=settings, clock=clock, **kwargs
    )


def test_device_id_is_created_once(cache, clock) -> None:
    first = load_or_create_device_id(cache, clock=clock)
    assert first.startswith(f"device_{int(clock() * 1000)}_")
    assert cache.get(DEVICE_ID_KEY) == first
    assert load_or_create_device_id(cache, clock=clock) == first


def test_scorer_registers_and_owns_the_match(remote, scheduler, settings, clock) -> None:
    t = _tracker(remote, scheduler, settings, clock, user_id="u1")
    assert t.start_presence("m1")
    assert t.is_live("m1")
    assert t.is_owning_device("m1")
    assert t.is_owning_user("m1")
    assert t.can_score("m1")
    assert remote.fetch("m1").live_device_id == "dev-a"


def test_visitors_and_completed_matches_do_not_register(remote, scheduler, settings, clock) -> None:
    assert not _tracker(remote, scheduler, settings, clock).start_presence("m1")
    assert not _tracker(remote, scheduler, settings, clock, user_id="u1", view_only=True).start_presence("m1")
    assert not _tracker(remote, scheduler, settings, clock, user_id="u1").start_presence("m1", MatchStatus.COMPLETED)
    assert remote.fetch("m1") is None


def test_second_device_observes_only(remote, scheduler, settings, clock) -> None:
    a = _tracker(remote, scheduler, settings, clock, user_id="u1")
    b = _tracker(remote, scheduler, settings, clock, device_id="dev-b", user_id="u1")
    a.start_presence("m1")

    assert not b.start_presence("m1")
    assert not b.can_score("m1")
    # Same user, other device: the user still owns the match.
    assert b.is_owning_user("m1", started_by_user_id=remote.fetch("m1").started_by_user_id)


def test_admin_take_over_moves_scoring(remote, scheduler, settings, clock) -> None:
    a = _tracker(remote, scheduler, settings, clock, user_id="u1")
    b = _tracker(remote, scheduler, settings, clock, device_id="dev-b", user_id="boss", is_admin=True)
    plain = _tracker(remote, scheduler, settings, clock, device_id="dev-c", user_id="u3")
    a.start_presence("m1")

    assert not plain.take_over("m1")
    assert b.take_over("m1")
    assert b.can_score("m1")
    assert not a.can_score("m1")
    assert remote.fetch("m1").live_device_id == "dev-b"


def test_end_presence_releases_via_the_scheduler(remote, scheduler, settings, clock) -> None:
    t = _tracker(remote, scheduler, settings, clock, user_id="u1")
    t.start_presence("m1")

    t.end_presence("m1")
    assert not t.is_live("m1")
    assert remote.fetch("m1").live_device_id == "dev-a"

    scheduler.run_pending()
    assert remote.fetch("m1").live_device_id is None
    assert remote.lease("m1") is None

    t.end_presence("m1")
    assert scheduler.queue == []


def test_touch_renews_the_lease_after_half_its_life(remote, scheduler, settings, clock) -> None:
    t = _tracker(remote, scheduler, settings, clock, user_id="u1")
    t.start_presence("m1")
    expires = remote.lease("m1").expires_at

    clock.advance(60)
    t.touch("m1")
    assert remote.lease("m1").expires_at == expires

    clock.advance(settings.presence_ttl_sec / 2)
    t.touch("m1")
    assert remote.lease("m1").expires_at > expires


def test_prune_drops_idle_registrations(remote, scheduler, settings, clock) -> None:
    t = _tracker(remote, scheduler, settings, clock, user_id="u1")
    t.start_presence("m1")
    t.start_presence("m2")
    clock.advance(settings.presence_ttl_sec - 10)
    t.touch("m2")
    clock.advance(20)

    assert t.prune() == ["m1"]
    assert t.is_live("m2")


class _OfflineRemote:
    def acquire_lease(self, match_id, **kwargs):
        raise RemoteStoreError("offline")

    def lease(self, match_id):
        raise RemoteStoreError("offline")


def test_offline_store_still_registers_locally(settings, clock) -> None:
    t = PresenceTracker(device_id="dev-a", remote=_OfflineRemote(), user_id="u1", settings=settings, clock=clock)
    assert t.start_presence("m1")
    assert t.can_score("m1")
