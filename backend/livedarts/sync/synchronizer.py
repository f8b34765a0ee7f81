from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from threading import Lock

from livedarts.config import Settings, get_settings
from livedarts.logger import get_logger
from livedarts.scoring.game import ChangeKind, Match
from livedarts.scoring.state import MatchState, Phase, initial_state
from livedarts.sync.cache import LocalCache, match_key
from livedarts.sync.remote import RemoteStore, RemoteStoreError
from livedarts.sync.scheduler import Cancellable, Scheduler
from livedarts.sync.snapshot import (
    PersistedMatchState,
    RemoteMatchRecord,
    from_persisted,
    from_remote_record,
    remote_shows_progress,
    to_persisted,
    to_remote_record,
)

log = get_logger("sync.synchronizer")


class RecoverySource(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"
    NEW = "new"


@dataclass(frozen=True)
class Recovery:
    state: MatchState
    source: RecoverySource

    @property
    def starter_known(self) -> bool:
        return self.state.match_starter is not None


class StateSynchronizer:
    """
    Keeps the in-memory match, the device cache and the remote record in step.

    - The device cache is written synchronously on every change.
    - The remote record is pushed in the background: periodically while the
      match is live, shortly after every closed visit or leg, and once more
      on completion. Remote failures are logged and dropped; the next push
      carries the newer state anyway.
    """

    def __init__(
        self,
        match: Match,
        *,
        cache: LocalCache,
        remote: RemoteStore,
        scheduler: Scheduler,
        device_id: str,
        user_id: str | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._match = match
        self._cache = cache
        self._remote = remote
        self._scheduler = scheduler
        self._device_id = device_id
        self._user_id = user_id
        self._settings = settings or get_settings()
        self._lock = Lock()
        self._latest: MatchState | None = None
        self._periodic: Cancellable | None = None
        self._stopped = False

    @property
    def latest(self) -> MatchState | None:
        return self._latest

    # --- recovery ---

    def recover(self) -> Recovery:
        """
        Pick the state to resume from.

        1. A started match in the device cache, unless the remote record is
           strictly newer (another device kept scoring).
        2. A remote record showing progress, rebuilt without dart detail.
        3. Otherwise a fresh match awaiting its starter.
        """
        starting_score = self._match.config.starting_score
        local = self._load_local()
        remote = self._fetch_remote()

        remote_usable = remote is not None and remote_shows_progress(remote, starting_score)

        if local is not None and local.has_started:
            if remote_usable and remote.version > local.version:
                log.info(
                    "match %s: remote record v%d is newer than local v%d, resuming from remote",
                    self._match.id,
                    remote.version,
                    local.version,
                )
                return self._from_remote(remote)
            log.info("match %s: resuming from device cache (v%d)", self._match.id, local.version)
            return Recovery(local, RecoverySource.LOCAL)

        if remote_usable:
            return self._from_remote(remote)

        return Recovery(initial_state(starting_score), RecoverySource.NEW)

    def _from_remote(self, record: RemoteMatchRecord) -> Recovery:
        state = from_remote_record(record, self._match.config.starting_score)
        if state.match_starter is None:
            log.info(
                "match %s: resumed in leg %d with unknown historical starter",
                self._match.id,
                state.current_leg,
            )
        self._save_local(state)
        return Recovery(state, RecoverySource.REMOTE)

    def newer_remote_state(self, current: MatchState) -> MatchState | None:
        """Remote state strictly newer than `current`, for a device that is only watching."""
        starting_score = self._match.config.starting_score
        record = self._fetch_remote()
        if record is None or record.version <= current.version:
            return None
        if not remote_shows_progress(record, starting_score):
            return None
        return from_remote_record(record, starting_score)

    def take_over(self, current: MatchState) -> Recovery:
        """
        Resume scoring after taking the lease from another device.

        The remote record replaces `current` when it is newer. Otherwise the
        version is lifted to the remote one so the next push is accepted.
        """
        starting_score = self._match.config.starting_score
        record = self._fetch_remote()
        if record is not None and record.version > current.version and remote_shows_progress(record, starting_score):
            log.info("match %s: taking over from remote record v%d", self._match.id, record.version)
            recovery = self._from_remote(record)
        else:
            state = current
            if record is not None and record.version > state.version:
                state = replace(state, version=record.version)
            self._save_local(state)
            recovery = Recovery(state, RecoverySource.LOCAL)
        self.attach(recovery.state)
        return recovery

    # --- writes ---

    def attach(self, state: MatchState) -> None:
        """Start tracking a recovered state (no writes unless the match is live)."""
        with self._lock:
            self._latest = state
        if state.phase is Phase.LEG_IN_PROGRESS:
            self._start_periodic()

    def record(self, state: MatchState, kind: ChangeKind) -> None:
        """Change hook for LiveMatch: write through locally, schedule remote pushes."""
        with self._lock:
            previous = self._latest
            self._latest = state
            if self._stopped:
                return

        if kind is ChangeKind.MATCH_COMPLETE:
            self._stop_periodic()
            self.push_now(state)
            self._delete_local()
            return

        self._save_local(state)

        started = previous is not None and previous.phase is Phase.AWAITING_STARTER and state.has_started
        if kind in (ChangeKind.VISIT_CLOSED, ChangeKind.LEG_COMPLETE) or started:
            record = self._record_for(state)
            self._scheduler.call_later(self._settings.milestone_delay_sec, lambda: self._push(record))
        if state.phase is Phase.LEG_IN_PROGRESS:
            self._start_periodic()

    def push_now(self, state: MatchState | None = None) -> None:
        state = state or self._latest
        if state is None:
            return
        record = self._record_for(state)
        self._scheduler.submit(lambda: self._push(record))

    def abandon(self) -> None:
        """Push what we have, drop the device cache, and stop syncing."""
        state = self._latest
        if state is not None and state.has_started and not state.match_complete:
            self.push_now(state)
        self._delete_local()
        self.stop()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
        self._stop_periodic()

    # --- internals ---

    def _record_for(self, state: MatchState) -> RemoteMatchRecord:
        # Built now, by value: a push that runs late still carries this snapshot.
        return to_remote_record(self._match.id, state, device_id=self._device_id, user_id=self._user_id)

    def _push(self, record: RemoteMatchRecord) -> None:
        try:
            accepted = self._remote.push(record, device_id=self._device_id)
        except RemoteStoreError as e:
            log.warning("match %s: remote push v%d rejected: %s", record.match_id, record.version, e)
            return
        except Exception as e:
            log.warning("match %s: remote push v%d failed: %s", record.match_id, record.version, e)
            return
        if not accepted:
            log.debug("match %s: remote already newer than v%d", record.match_id, record.version)

    def _periodic_push(self) -> None:
        state = self._latest
        if state is None or state.phase is not Phase.LEG_IN_PROGRESS:
            return
        self._push(self._record_for(state))

    def _start_periodic(self) -> None:
        with self._lock:
            if self._periodic is not None or self._stopped:
                return
            self._periodic = self._scheduler.every(self._settings.sync_interval_sec, self._periodic_push)

    def _stop_periodic(self) -> None:
        with self._lock:
            periodic, self._periodic = self._periodic, None
        if periodic is not None:
            periodic.cancel()

    def _load_local(self) -> MatchState | None:
        raw = self._cache.get(match_key(self._match.id))
        if raw is None:
            return None
        try:
            return from_persisted(PersistedMatchState.model_validate_json(raw))
        except ValueError as e:
            log.warning("match %s: unreadable device cache entry, ignoring: %s", self._match.id, e)
            return None

    def _save_local(self, state: MatchState) -> None:
        try:
            self._cache.set(match_key(self._match.id), to_persisted(self._match.id, state).model_dump_json())
        except OSError as e:
            log.error("match %s: failed to write device cache: %s", self._match.id, e)

    def _delete_local(self) -> None:
        try:
            self._cache.delete(match_key(self._match.id))
        except OSError as e:
            log.error("match %s: failed to delete device cache: %s", self._match.id, e)

    def _fetch_remote(self) -> RemoteMatchRecord | None:
        try:
            return self._remote.fetch(self._match.id)
        except RemoteStoreError as e:
            log.warning("match %s: remote record unavailable: %s", self._match.id, e)
            return None
