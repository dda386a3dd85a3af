"""Dice formula parser and evaluator.

Grammar (integers only, no whitespace)::

    <N> "d" <S> [ ("+" | "-") <M> ]      N >= 1, S >= 1, M >= 0

Evaluation draws N independent uniform integers in [1, S] from an
injected random source, sums them, and applies the signed modifier.
Results are never clamped: a formula like ``1d2-5`` yields a negative
value and it is up to the validator to flag it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from numenera_chargen.models.errors import FormatError


logger = logging.getLogger(__name__)

_FORMULA_RE = re.compile(r"([0-9]+)d([0-9]+)(?:([+-])([0-9]+))?")


class RandomSource(Protocol):
    """Anything with ``randint(a, b)`` inclusive on both ends.

    ``random.Random`` satisfies this; tests use SequenceRandom.
    """

    def randint(self, a: int, b: int) -> int: ...


class SequenceRandom:
    """Deterministic RandomSource that replays a fixed list of draws.

    Every draw must fall inside the requested range; running out of draws
    or replaying an out-of-range value raises ValueError.
    """

    __slots__ = ("_draws", "_pos")

    def __init__(self, draws: Iterable[int]) -> None:
        self._draws = list(draws)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._draws) - self._pos

    def randint(self, a: int, b: int) -> int:
        if self._pos >= len(self._draws):
            raise ValueError("SequenceRandom exhausted")
        value = self._draws[self._pos]
        if value < a or value > b:
            raise ValueError(f"Scripted draw {value} outside [{a}, {b}]")
        self._pos += 1
        return value


@dataclass(frozen=True, slots=True)
class DiceFormula:
    """A parsed ``NdS(+|-)M`` formula; ``modifier`` carries the sign."""

    count: int
    sides: int
    modifier: int = 0

    @classmethod
    def parse(cls, text: str) -> DiceFormula:
        if not isinstance(text, str):
            raise FormatError(repr(text), "formula must be a string")
        match = _FORMULA_RE.fullmatch(text)
        if match is None:
            raise FormatError(text)
        count = int(match.group(1))
        sides = int(match.group(2))
        if count < 1:
            raise FormatError(text, "dice count must be at least 1")
        if sides < 1:
            raise FormatError(text, "die must have at least 1 side")
        modifier = int(match.group(4) or 0)
        if match.group(3) == "-":
            modifier = -modifier
        return cls(count, sides, modifier)

    @property
    def min_value(self) -> int:
        return self.count + self.modifier

    @property
    def max_value(self) -> int:
        return self.count * self.sides + self.modifier

    def roll(self, rng: RandomSource) -> int:
        draws = [rng.randint(1, self.sides) for _ in range(self.count)]
        result = sum(draws) + self.modifier
        logger.debug("rolled %s: draws=%s result=%d", self, draws, result)
        return result

    def __str__(self) -> str:
        if self.modifier > 0:
            return f"{self.count}d{self.sides}+{self.modifier}"
        if self.modifier < 0:
            return f"{self.count}d{self.sides}-{-self.modifier}"
        return f"{self.count}d{self.sides}"


def is_valid_formula(text: str) -> bool:
    try:
        DiceFormula.parse(text)
    except FormatError:
        return False
    return True


def evaluate(formula: str, rng: RandomSource) -> int:
    """Parse *formula* and roll it once against *rng*."""
    return DiceFormula.parse(formula).roll(rng)
