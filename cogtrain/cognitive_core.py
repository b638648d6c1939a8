from __future__ import annotations

import math
import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

T = TypeVar("T")


class Phase(str, Enum):
    READY = "ready"
    RUNNING = "running"
    STUDY = "study"
    TEST = "test"
    COMPLETE = "complete"


# Phases in which responses are accepted.
ACCEPTING_PHASES = frozenset({Phase.RUNNING, Phase.TEST})

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 10


@dataclass(frozen=True, slots=True)
class Progress:
    current: int
    total: int


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """View model for the UI (pure data)."""

    title: str
    phase: Phase
    prompt: str
    input_hint: str
    progress: Progress
    payload: object | None = None


class SeededRng:
    """Seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def random(self) -> float:
        return self._rng.random()

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)

    def sample(self, seq: Sequence[T], k: int) -> list[T]:
        return self._rng.sample(list(seq), k)

    def shuffle(self, items: Iterable[T]) -> list[T]:
        """Fisher-Yates shuffle into a new list."""

        out = list(items)
        for i in range(len(out) - 1, 0, -1):
            j = self._rng.randint(0, i)
            out[i], out[j] = out[j], out[i]
        return out


def lerp_int(a: int, b: int, t: float) -> int:
    """Linear interpolation in integer space (inclusive bounds)."""

    if t <= 0:
        return a
    if t >= 1:
        return b
    return round_half_up(a + (b - a) * t)


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x <= lo else hi if x >= hi else float(x)


def clamp_int(x: int, lo: int, hi: int) -> int:
    return lo if x <= lo else hi if x >= hi else int(x)


def clamp01(x: float) -> float:
    return 0.0 if x <= 0.0 else 1.0 if x >= 1.0 else float(x)


def clamp_difficulty(d: int) -> int:
    return clamp_int(int(d), MIN_DIFFICULTY, MAX_DIFFICULTY)


def round_half_up(x: float) -> int:
    # Ties go up (2.5 -> 3, -2.5 -> -2) at every call site.
    return int(math.floor(x + 0.5))


def round2(x: float) -> float:
    """Two-decimal rounding for rate-like outputs, ties up."""

    return math.floor(float(x) * 100.0 + 0.5) / 100.0


def ratio(part: int, whole: int) -> float:
    return 0.0 if whole <= 0 else part / whole


def mean_or_zero(values: Iterable[float]) -> float:
    vals = list(values)
    return 0.0 if not vals else sum(vals) / len(vals)


def speed_bonus(avg_rt_ms: float, *, reference_ms: float, per_ms: float) -> int:
    """Positive, decreasing in reaction time, never negative.

    An average of 0 means nothing was timed and earns no bonus.
    """

    if avg_rt_ms <= 0.0:
        return 0
    return max(0, round_half_up((reference_ms - avg_rt_ms) / per_ms))
