from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

BULL = 25
BOARD_NUMBERS: tuple[int, ...] = (*range(1, 21), BULL)


class Modifier(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"

    @property
    def multiplier(self) -> int:
        return {Modifier.SINGLE: 1, Modifier.DOUBLE: 2, Modifier.TRIPLE: 3}[self]


@dataclass(frozen=True)
class Dart:
    """
    A single dart hit.

    - number: 1-20 for standard beds, 25 for bull, 0 for a miss
    - multiplier: 0 (miss), 1 (single), 2 (double), 3 (triple)
    """

    number: int
    multiplier: int

    def __post_init__(self) -> None:
        if self.multiplier not in (0, 1, 2, 3):
            raise ValueError("multiplier must be 0, 1, 2, or 3")

        if self.multiplier == 0:
            if self.number != 0:
                raise ValueError("miss must have number=0")
            return

        if self.number not in BOARD_NUMBERS:
            raise ValueError("number must be 1-20, 25 (bull), or 0 (miss)")

        if self.number == BULL and self.multiplier == 3:
            raise ValueError("bull cannot be a triple")

    @property
    def score(self) -> int:
        return self.number * self.multiplier

    @property
    def is_double(self) -> bool:
        return self.multiplier == 2

    @property
    def label(self) -> str:
        if self.multiplier == 0:
            return "Miss"
        if self.number == BULL:
            return "D25" if self.multiplier == 2 else "25"
        prefix = {1: "S", 2: "D", 3: "T"}[self.multiplier]
        return f"{prefix}{self.number}"


MISS = Dart(0, 0)


def make_dart(number: int, modifier: Modifier | str = Modifier.SINGLE) -> Dart:
    """
    Build a dart from a board number and the input modifier.

    Number 0 is always a miss whatever the modifier. Raises ValueError for
    numbers that are not on the board and for a triple bull.
    """
    modifier = Modifier(modifier)
    if number == 0:
        return MISS
    return Dart(number, modifier.multiplier)
