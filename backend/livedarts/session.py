from __future__ import annotations

import time
from threading import RLock
from typing import Callable

from livedarts.config import Settings, get_settings
from livedarts.logger import get_logger
from livedarts.presence.tracker import PresenceTracker
from livedarts.scoring.darts import Dart, Modifier
from livedarts.scoring.game import ChangeKind, LiveMatch, Match, TurnTotalResult
from livedarts.scoring.resolver import Outcome
from livedarts.scoring.state import MatchState, ScoringMode
from livedarts.scoring.stats import MatchResult
from livedarts.sync.cache import LocalCache
from livedarts.sync.remote import RemoteStore
from livedarts.sync.scheduler import Scheduler
from livedarts.sync.synchronizer import Recovery, RecoverySource, StateSynchronizer

log = get_logger("session")


class MatchSession:
    """
    One live match on this device.

    Responsibilities:
    - Register presence and recover the freshest state on open
    - Route input to the LiveMatch controller under a lock
    - Forward every change to the synchronizer
    - Hand the MatchResult to the tournament engine once, then end presence
    """

    def __init__(
        self,
        match: Match,
        *,
        presence: PresenceTracker,
        synchronizer: StateSynchronizer,
        recovery: Recovery,
        on_complete: Callable[[MatchResult], None] | None = None,
    ) -> None:
        self._lock = RLock()
        self._match = match
        self._presence = presence
        self._sync = synchronizer
        self._recovery = recovery
        self._on_complete = on_complete
        self._closed = False
        self._game = self._build_game(recovery.state)
        if not recovery.state.match_complete and presence.can_score(match.id):
            synchronizer.attach(recovery.state)

    @classmethod
    def open(
        cls,
        match: Match,
        *,
        device_id: str,
        cache: LocalCache,
        remote: RemoteStore,
        scheduler: Scheduler,
        user_id: str | None = None,
        view_only: bool = False,
        is_admin: bool = False,
        settings: Settings | None = None,
        on_complete: Callable[[MatchResult], None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> MatchSession:
        settings = settings or get_settings()
        presence = PresenceTracker(
            device_id=device_id,
            remote=remote,
            user_id=user_id,
            view_only=view_only,
            is_admin=is_admin,
            scheduler=scheduler,
            settings=settings,
            clock=clock,
        )
        presence.start_presence(match.id, match.status)
        synchronizer = StateSynchronizer(
            match,
            cache=cache,
            remote=remote,
            scheduler=scheduler,
            device_id=device_id,
            user_id=user_id,
            settings=settings,
        )
        recovery = synchronizer.recover()
        log.info("match %s opened on %s (source=%s)", match.id, device_id, recovery.source.value)
        return cls(match, presence=presence, synchronizer=synchronizer, recovery=recovery, on_complete=on_complete)

    @property
    def match(self) -> Match:
        return self._match

    @property
    def recovery_source(self) -> RecoverySource:
        return self._recovery.source

    @property
    def presence(self) -> PresenceTracker:
        return self._presence

    @property
    def can_score(self) -> bool:
        return not self._closed and self._presence.can_score(self._match.id)

    def state(self) -> MatchState:
        with self._lock:
            return self._game.state()

    def result(self) -> MatchResult | None:
        with self._lock:
            return self._game.result()

    # --- input events ---

    def select_starter(self, player: int) -> bool:
        with self._lock:
            return self._game.select_starter(player)

    def set_input_mode(self, modifier: Modifier | str) -> bool:
        with self._lock:
            return self._game.set_input_mode(modifier)

    def set_scoring_mode(self, mode: ScoringMode | str) -> bool:
        with self._lock:
            return self._game.set_scoring_mode(mode)

    def add_dart(self, number: int, modifier: Modifier | str | None = None) -> Dart | None:
        with self._lock:
            return self._game.add_dart(number, modifier)

    def submit_turn_total(self, total: int) -> TurnTotalResult:
        with self._lock:
            return self._game.submit_turn_total(total)

    def confirm_checkout(self, darts_used: int, finished_on_double: bool) -> Outcome | None:
        with self._lock:
            return self._game.confirm_checkout(darts_used, finished_on_double)

    def cancel_checkout(self) -> bool:
        with self._lock:
            return self._game.cancel_checkout()

    def undo(self) -> bool:
        with self._lock:
            return self._game.undo()

    def remove_last_dart(self) -> bool:
        with self._lock:
            return self._game.remove_last_dart()

    def take_over(self) -> bool:
        with self._lock:
            if self._closed or not self._presence.take_over(self._match.id):
                return False
            self._recovery = self._sync.take_over(self._game.state())
            self._game = self._build_game(self._recovery.state)
            return True

    def refresh(self) -> MatchState:
        """Pick up another device's progress while this one is only watching."""
        with self._lock:
            if not self._closed and not self.can_score:
                newer = self._sync.newer_remote_state(self._game.state())
                if newer is not None:
                    self._game = self._build_game(newer)
            return self._game.state()

    def prune_idle(self) -> bool:
        """Close the session once its presence has sat idle past the TTL."""
        with self._lock:
            if self._closed or self._match.id not in self._presence.prune():
                return False
            self._sync.stop()
            self._closed = True
            log.info("match %s: idle past the presence TTL, session closed", self._match.id)
            return True

    def abandon(self) -> None:
        """Leave without completing; the remote record stays for manual resolution."""
        with self._lock:
            if self._closed:
                return
            if self.can_score:
                self._sync.abandon()
            else:
                self._sync.stop()
            self._presence.end_presence(self._match.id)
            self._closed = True
            log.info("match %s abandoned", self._match.id)

    def close(self) -> None:
        """Stop syncing and end presence, keeping the device cache for later."""
        with self._lock:
            if self._closed:
                return
            if self.can_score:
                self._sync.push_now()
            self._sync.stop()
            self._presence.end_presence(self._match.id)
            self._closed = True

    # --- controller hooks ---

    def _build_game(self, state: MatchState) -> LiveMatch:
        return LiveMatch(
            self._match,
            state=state,
            can_score=lambda: self._presence.can_score(self._match.id),
            on_change=self._changed,
            on_complete=self._completed,
        )

    def _changed(self, state: MatchState, kind: ChangeKind) -> None:
        self._sync.record(state, kind)
        if kind is not ChangeKind.MATCH_COMPLETE:
            self._presence.touch(self._match.id)

    def _completed(self, result: MatchResult) -> None:
        self._presence.end_presence(self._match.id)
        self._sync.stop()
        if self._on_complete is not None:
            self._on_complete(result)
