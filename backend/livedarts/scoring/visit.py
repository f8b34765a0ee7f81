from __future__ import annotations

from dataclasses import dataclass, replace

from livedarts.scoring.darts import Dart

MAX_DARTS_PER_VISIT = 3
MAX_VISIT_TOTAL = 180


@dataclass(frozen=True)
class Visit:
    """
    One player's turn: up to 3 darts, or a declared total in turn-total mode.

    A turn-total visit has no individual darts. It carries how many darts
    were used and whether the last one was a double, which is only known
    once a checkout has been confirmed.
    """

    turn_start_score: int
    darts: tuple[Dart, ...] = ()
    dart_count: int = 0  # match-lifetime dart index, display only
    declared_total: int | None = None
    declared_darts: int | None = None
    finished_on_double: bool = False

    @property
    def is_turn_total(self) -> bool:
        return self.declared_total is not None

    @property
    def score(self) -> int:
        if self.declared_total is not None:
            return self.declared_total
        return sum(d.score for d in self.darts)

    @property
    def darts_thrown(self) -> int:
        if self.declared_total is not None:
            return self.declared_darts or MAX_DARTS_PER_VISIT
        return len(self.darts)

    @property
    def remaining(self) -> int:
        return self.turn_start_score - self.score

    @property
    def is_full(self) -> bool:
        return self.darts_thrown >= MAX_DARTS_PER_VISIT

    @property
    def is_empty(self) -> bool:
        return self.darts_thrown == 0

    @property
    def ends_on_double(self) -> bool:
        if self.declared_total is not None:
            return self.finished_on_double
        return bool(self.darts) and self.darts[-1].is_double

    @property
    def checkout_label(self) -> str:
        if self.declared_total is not None:
            return str(self.declared_total)
        return " + ".join(d.label for d in self.darts)

    def with_dart(self, dart: Dart) -> Visit:
        if self.is_turn_total:
            raise ValueError("cannot add darts to a turn-total visit")
        if self.is_full:
            raise ValueError("a visit may include at most 3 darts")
        return replace(self, darts=(*self.darts, dart), dart_count=self.dart_count + 1)

    def without_last_dart(self) -> tuple[Visit, Dart]:
        if self.is_turn_total or not self.darts:
            raise ValueError("no dart to remove")
        last = self.darts[-1]
        return replace(self, darts=self.darts[:-1], dart_count=self.dart_count - 1), last


def open_visit(turn_start_score: int, *, dart_count: int = 0) -> Visit:
    return Visit(turn_start_score=turn_start_score, dart_count=dart_count)


def turn_total_visit(
    turn_start_score: int,
    total: int,
    *,
    dart_count: int = 0,
    darts_used: int = MAX_DARTS_PER_VISIT,
    finished_on_double: bool = False,
) -> Visit:
    """
    Build a closed visit from a declared 3-dart total.

    Raises ValueError if the total is outside 0-180 or darts_used is not 1-3.
    """
    if not 0 <= total <= MAX_VISIT_TOTAL:
        raise ValueError("visit total must be between 0 and 180")
    if darts_used not in (1, 2, 3):
        raise ValueError("darts_used must be 1, 2, or 3")
    return Visit(
        turn_start_score=turn_start_score,
        dart_count=dart_count + darts_used,
        declared_total=total,
        declared_darts=darts_used,
        finished_on_double=finished_on_double,
    )
