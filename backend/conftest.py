from __future__ import annotations

import pytest

from livedarts.config import Settings
from livedarts.scoring.game import Match, MatchConfig, Player
from livedarts.sync.cache import InMemoryCache
from livedarts.sync.remote import InMemoryRemoteStore


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class _Handle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Scheduler for tests: nothing runs until the test says so.

    Delayed tasks queue in call order next to submitted ones, as if their
    delay had already passed.
    """

    def __init__(self) -> None:
        self.queue: list = []
        self.delays: list[float] = []
        self.periodic: list[tuple[float, object, _Handle]] = []
        self.closed = False

    def submit(self, task) -> None:
        if not self.closed:
            self.queue.append(task)

    def call_later(self, delay_sec: float, task) -> _Handle:
        handle = _Handle()
        self.delays.append(delay_sec)

        def run() -> None:
            if not handle.cancelled:
                task()

        self.submit(run)
        return handle

    def every(self, interval_sec: float, task) -> _Handle:
        handle = _Handle()
        self.periodic.append((interval_sec, task, handle))
        return handle

    def shutdown(self) -> None:
        self.closed = True
        for _, _, handle in self.periodic:
            handle.cancel()

    def run_pending(self) -> int:
        ran = 0
        while self.queue:
            self.queue.pop(0)()
            ran += 1
        return ran

    def tick(self) -> None:
        """Fire every active periodic task once, then drain the queue."""
        for _, task, handle in list(self.periodic):
            if not handle.cancelled:
                task()
        self.run_pending()

    @property
    def active_periodic(self) -> int:
        return sum(1 for _, _, h in self.periodic if not h.cancelled)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def remote(clock: FakeClock) -> InMemoryRemoteStore:
    return InMemoryRemoteStore(clock=clock)


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def settings() -> Settings:
    return Settings(sync_interval_sec=30.0, milestone_delay_sec=0.1, presence_ttl_sec=3600.0)


@pytest.fixture
def match() -> Match:
    return Match(
        id="m1",
        player1=Player(id="p1", name="Ann"),
        player2=Player(id="p2", name="Bob"),
        config=MatchConfig(starting_score=501, legs_to_win=2),
        group_id="g1",
    )
