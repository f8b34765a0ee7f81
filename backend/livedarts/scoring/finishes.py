from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from livedarts.scoring.darts import BULL, Dart

MAX_CHECKOUT = 170


@dataclass(frozen=True)
class Finish:
    """
    A single double-out route (1-3 darts) that reaches exactly zero.
    """

    darts: tuple[Dart, ...]

    @property
    def total(self) -> int:
        return sum(d.score for d in self.darts)

    def as_strings(self) -> list[str]:
        return [d.label for d in self.darts]


def _all_scoring_darts() -> tuple[Dart, ...]:
    darts: list[Dart] = []
    for n in range(1, 21):
        darts.append(Dart(n, 1))
        darts.append(Dart(n, 2))
        darts.append(Dart(n, 3))
    darts.append(Dart(BULL, 1))
    darts.append(Dart(BULL, 2))
    return tuple(darts)


ALL_DARTS: tuple[Dart, ...] = _all_scoring_darts()
FINISHING_DARTS: tuple[Dart, ...] = tuple(d for d in ALL_DARTS if d.is_double)


# Doubles most players aim for, best first.
PREFERRED_DOUBLES = (20, 16, 18, 10, 8, 12, 6, 4, 2)
# Trebles that set up a finish from the top of the board.
SETUP_TREBLES = (20, 19, 18, 17, 16)


def _finish_rank(d: Dart) -> int:
    """Lower is better, for the dart that lands on the double."""
    if d.number == BULL:
        return 25
    if d.number in PREFERRED_DOUBLES:
        return PREFERRED_DOUBLES.index(d.number)
    return len(PREFERRED_DOUBLES) + (20 - d.number)


def _setup_rank(d: Dart) -> int:
    """Lower is better, for darts thrown before the double."""
    if d.number == BULL:
        return 55 if d.multiplier == 1 else 30
    away_from_top = 20 - d.number
    if d.multiplier == 3:
        return away_from_top if d.number in SETUP_TREBLES else 20 + away_from_top
    if d.multiplier == 2:
        return 15 + away_from_top
    return 35 + away_from_top


def _route_weight(route: tuple[Dart, ...]) -> tuple[int, int, int, str]:
    # fewer darts, nicer double, nicer setup, then a stable tie-breaker
    return (
        len(route),
        _finish_rank(route[-1]),
        sum(_setup_rank(d) for d in route[:-1]),
        ",".join(d.label for d in route),
    )


def _routes(remaining: int, max_darts: int) -> list[tuple[Dart, ...]]:
    routes: list[tuple[Dart, ...]] = []
    for last in FINISHING_DARTS:
        if last.score == remaining:
            routes.append((last,))
    if max_darts < 2:
        return routes

    for d1 in ALL_DARTS:
        r1 = remaining - d1.score
        if r1 <= 1:
            continue
        for last in FINISHING_DARTS:
            if last.score == r1:
                routes.append((d1, last))
    if max_darts < 3:
        return routes

    for d1 in ALL_DARTS:
        r1 = remaining - d1.score
        if r1 <= 1:
            continue
        for d2 in ALL_DARTS:
            r2 = r1 - d2.score
            if r2 <= 1:
                continue
            for last in FINISHING_DARTS:
                if last.score == r2:
                    routes.append((d1, d2, last))
    return routes


@lru_cache(maxsize=4096)
def suggest_finishes(remaining: int, *, max_darts: int = 3, limit: int = 6) -> tuple[Finish, ...]:
    """
    Return up to `limit` suggested double-out routes for a remaining score.

    The highest 3-dart finish is 170, so anything above it returns nothing.
    """
    if max_darts not in (1, 2, 3):
        raise ValueError("max_darts must be 1, 2, or 3")
    if remaining <= 1 or remaining > MAX_CHECKOUT or limit <= 0:
        return tuple()

    routes = sorted(_routes(remaining, max_darts), key=_route_weight)

    seen: set[str] = set()
    out: list[Finish] = []
    for route in routes:
        key = ",".join(d.label for d in route)
        if key in seen:
            continue
        seen.add(key)
        out.append(Finish(darts=route))
        if len(out) >= limit:
            break
    return tuple(out)


@lru_cache(maxsize=1024)
def is_finishable(total: int, darts_used: int) -> bool:
    """
    True if `total` can be checked out on a double using exactly `darts_used` darts.

    Setup darts may miss, so a finish available in fewer darts also counts.
    """
    if darts_used not in (1, 2, 3):
        return False
    return bool(suggest_finishes(total, max_darts=darts_used, limit=1))
