from __future__ import annotations

import time
from dataclasses import dataclass, replace
from threading import RLock
from typing import Callable
from uuid import uuid4

from livedarts.config import Settings, get_settings
from livedarts.logger import get_logger
from livedarts.scoring.game import MatchStatus
from livedarts.sync.cache import LocalCache
from livedarts.sync.remote import Lease, LeaseError, RemoteStore, RemoteStoreError
from livedarts.sync.scheduler import Scheduler

log = get_logger("presence.tracker")

DEVICE_ID_KEY = "darts-device-id"


def load_or_create_device_id(cache: LocalCache, *, clock: Callable[[], float] = time.time) -> str:
    device_id = cache.get(DEVICE_ID_KEY)
    if not device_id:
        device_id = f"device_{int(clock() * 1000)}_{uuid4().hex[:9]}"
        cache.set(DEVICE_ID_KEY, device_id)
    return device_id


@dataclass(frozen=True)
class PresenceEntry:
    match_id: str
    device_id: str
    user_id: str | None
    started_at: float
    last_update: float


class PresenceTracker:
    """
    Which device and user is scoring each live match.

    Registration is backed by a lease in the remote store, so another device
    cannot push state for a match while the lease is valid. A non-owning
    device observes only, unless it takes over with the admin override.
    """

    def __init__(
        self,
        *,
        device_id: str,
        remote: RemoteStore,
        user_id: str | None = None,
        view_only: bool = False,
        is_admin: bool = False,
        scheduler: Scheduler | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.device_id = device_id
        self.user_id = user_id
        self.view_only = view_only
        self.is_admin = is_admin
        self._remote = remote
        self._scheduler = scheduler
        self._settings = settings or get_settings()
        self._clock = clock
        self._lock = RLock()
        self._entries: dict[str, PresenceEntry] = {}
        self._renewed_at: dict[str, float] = {}

    def start_presence(self, match_id: str, status: MatchStatus | str = MatchStatus.PENDING) -> bool:
        if self.view_only or self.user_id is None:
            log.debug("match %s: view-only visitor, not registering presence", match_id)
            return False
        if MatchStatus(status) is MatchStatus.COMPLETED:
            return False
        try:
            self._acquire(match_id, force=False)
        except LeaseError as e:
            log.info("match %s: scored elsewhere, observing only (%s)", match_id, e)
            return False
        except RemoteStoreError as e:
            # Shared store unreachable: register locally, pushes will be retried.
            log.warning("match %s: could not register presence remotely: %s", match_id, e)
        self._register(match_id)
        return True

    def take_over(self, match_id: str) -> bool:
        if not self.is_admin or self.view_only:
            log.info("match %s: take-over refused for user %s", match_id, self.user_id)
            return False
        self._acquire(match_id, force=True)
        self._register(match_id)
        log.info("match %s: scoring taken over by device %s", match_id, self.device_id)
        return True

    def touch(self, match_id: str) -> None:
        """Note activity and renew the lease once half of it has run out."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(match_id)
            if entry is None:
                return
            self._entries[match_id] = replace(entry, last_update=now)
            due = now - self._renewed_at.get(match_id, 0.0) >= self._settings.presence_ttl_sec / 2
        if due:
            try:
                self._acquire(match_id, force=False)
            except RemoteStoreError as e:
                log.warning("match %s: lease renewal failed: %s", match_id, e)

    def end_presence(self, match_id: str) -> None:
        with self._lock:
            existed = self._entries.pop(match_id, None) is not None
            self._renewed_at.pop(match_id, None)
        if not existed:
            return
        if self._scheduler is not None:
            # Queued behind any pending pushes so the final state lands first.
            self._scheduler.submit(lambda: self._release(match_id))
        else:
            self._release(match_id)

    def is_live(self, match_id: str) -> bool:
        with self._lock:
            return match_id in self._entries

    def is_owning_device(self, match_id: str) -> bool:
        with self._lock:
            entry = self._entries.get(match_id)
        if entry is None or entry.device_id != self.device_id:
            return False
        lease = self._lease(match_id)
        return lease is None or lease.device_id == self.device_id

    def is_owning_user(self, match_id: str, started_by_user_id: str | None = None) -> bool:
        if self.user_id is None:
            return False
        with self._lock:
            entry = self._entries.get(match_id)
        if entry is not None and entry.user_id == self.user_id:
            return True
        return started_by_user_id is not None and started_by_user_id == self.user_id

    def can_score(self, match_id: str) -> bool:
        return not self.view_only and self.is_owning_device(match_id)

    def prune(self) -> list[str]:
        """Drop registrations idle for longer than the presence TTL."""
        cutoff = self._clock() - self._settings.presence_ttl_sec
        with self._lock:
            stale = [m for m, e in self._entries.items() if e.last_update <= cutoff]
        for match_id in stale:
            self.end_presence(match_id)
        return stale

    # --- internals ---

    def _register(self, match_id: str) -> None:
        now = self._clock()
        with self._lock:
            current = self._entries.get(match_id)
            started_at = current.started_at if current is not None else now
            self._entries[match_id] = PresenceEntry(
                match_id=match_id,
                device_id=self.device_id,
                user_id=self.user_id,
                started_at=started_at,
                last_update=now,
            )

    def _acquire(self, match_id: str, *, force: bool) -> None:
        self._remote.acquire_lease(
            match_id,
            device_id=self.device_id,
            user_id=self.user_id,
            ttl_sec=self._settings.presence_ttl_sec,
            force=force,
        )
        with self._lock:
            self._renewed_at[match_id] = self._clock()

    def _lease(self, match_id: str) -> Lease | None:
        try:
            return self._remote.lease(match_id)
        except RemoteStoreError as e:
            log.warning("match %s: lease lookup failed: %s", match_id, e)
            return None

    def _release(self, match_id: str) -> None:
        try:
            self._remote.release_lease(match_id, device_id=self.device_id)
        except RemoteStoreError as e:
            log.warning("match %s: failed to end presence remotely: %s", match_id, e)
