from __future__ import annotations

import time
from threading import RLock
from typing import Callable

from livedarts.config import Settings, get_settings
from livedarts.logger import get_logger
from livedarts.presence.tracker import load_or_create_device_id
from livedarts.scoring.game import Match
from livedarts.scoring.stats import MatchResult
from livedarts.session import MatchSession
from livedarts.sync.cache import InMemoryCache, JsonFileCache, LocalCache
from livedarts.sync.remote import InMemoryRemoteStore, RemoteStore, RemoteStoreError
from livedarts.sync.scheduler import Scheduler, ThreadScheduler
from livedarts.sync.snapshot import RemoteMatchRecord

log = get_logger("store")


class SessionStore:
    """
    Open match sessions for this device, plus the results handed on to the
    tournament engine.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        cache: LocalCache | None = None,
        remote: RemoteStore | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings or get_settings()
        self._clock = clock
        if cache is None:
            cache = JsonFileCache(self._settings.cache_dir) if self._settings.cache_dir else InMemoryCache()
        self.cache = cache
        self.remote = remote or InMemoryRemoteStore()
        self.scheduler = scheduler or ThreadScheduler()
        self.device_id = load_or_create_device_id(self.cache)
        self._lock = RLock()
        self._sessions: dict[str, MatchSession] = {}
        self._results: dict[str, MatchResult] = {}

    def open(
        self,
        match: Match,
        *,
        user_id: str | None = None,
        view_only: bool = False,
        is_admin: bool = False,
    ) -> MatchSession:
        self.prune_idle()
        with self._lock:
            existing = self._sessions.get(match.id)
            if existing is not None:
                return existing
            session = MatchSession.open(
                match,
                device_id=self.device_id,
                cache=self.cache,
                remote=self.remote,
                scheduler=self.scheduler,
                user_id=user_id,
                view_only=view_only,
                is_admin=is_admin,
                settings=self._settings,
                on_complete=self._record_result,
                clock=self._clock,
            )
            self._sessions[match.id] = session
            return session

    def get(self, match_id: str) -> MatchSession | None:
        with self._lock:
            return self._sessions.get(match_id)

    def close(self, match_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(match_id, None)
        if session is None:
            return False
        session.close()
        return True

    def abandon(self, match_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(match_id, None)
        if session is None:
            return False
        session.abandon()
        return True

    def prune_idle(self) -> list[str]:
        """Close sessions idle past the presence TTL. Their device cache stays for a later resume."""
        with self._lock:
            sessions = list(self._sessions.items())
        pruned = [match_id for match_id, session in sessions if session.prune_idle()]
        with self._lock:
            for match_id in pruned:
                self._sessions.pop(match_id, None)
        return pruned

    def live_matches(self) -> list[RemoteMatchRecord]:
        self.prune_idle()
        try:
            return self.remote.live_records()
        except RemoteStoreError as e:
            log.warning("live matches unavailable: %s", e)
            return []

    def result(self, match_id: str) -> MatchResult | None:
        with self._lock:
            return self._results.get(match_id)

    def _record_result(self, result: MatchResult) -> None:
        with self._lock:
            self._results.setdefault(result.match_id, result)

    def shutdown(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
        self.scheduler.shutdown()


_STORE: SessionStore | None = None


def get_store() -> SessionStore:
    global _STORE
    if _STORE is None:
        _STORE = SessionStore()
    return _STORE
