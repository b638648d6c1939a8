from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

from .clock import Clock
from .cognitive_core import (
    Phase,
    Progress,
    SeededRng,
    SessionSnapshot,
    clamp_difficulty,
    clamp_int,
    mean_or_zero,
    ratio,
    round2,
    round_half_up,
)
from .difficulty import Dimension, Step, adjust_with
from .session import SessionBase

MIN_GRID_SIZE = 3
MAX_GRID_SIZE = 6

_DIFFICULTY_FOR_SIZE = {3: 2, 4: 4, 5: 6, 6: 8}


@dataclass(frozen=True, slots=True)
class GridSearchConfig:
    difficulty: int = 1
    grid_size: int = 3
    target_time_s: int = 60


@dataclass(frozen=True, slots=True)
class TapRecord:
    number: int
    at_s: float
    correct: bool


@dataclass(frozen=True, slots=True)
class TapResult:
    number: int
    correct: bool
    complete: bool


@dataclass(frozen=True, slots=True)
class GridSearchState:
    phase: Phase
    grid: tuple[tuple[int, ...], ...]
    current_target: int
    taps: tuple[TapRecord, ...]
    started_at_s: float | None


@dataclass(frozen=True, slots=True)
class GridSearchResult:
    score: int
    accuracy: float
    duration_s: float
    grid_size: int
    correct_count: int
    error_count: int
    total_taps: int
    avg_tap_time_ms: int


DIMENSIONS = (
    Dimension("grid_size"),
    Dimension("target_time_s", harder=-1),
)

HARDER_STEPS = (
    Step("grid_size", 1, hard_limit=MAX_GRID_SIZE, easy_limit=MIN_GRID_SIZE),
    Step("target_time_s", -4, hard_limit=24, easy_limit=60),
)


def normalize_grid_search_config(config: GridSearchConfig) -> GridSearchConfig:
    return replace(
        config,
        difficulty=clamp_difficulty(config.difficulty),
        grid_size=clamp_int(int(config.grid_size), MIN_GRID_SIZE, MAX_GRID_SIZE),
        target_time_s=clamp_int(int(config.target_time_s), 10, 300),
    )


def grid_size_for_difficulty(difficulty: int) -> int:
    d = clamp_difficulty(difficulty)
    if d <= 2:
        return 3
    if d <= 4:
        return 4
    if d <= 6:
        return 5
    return 6


def difficulty_for_grid_size(size: int) -> int:
    return _DIFFICULTY_FOR_SIZE[clamp_int(int(size), MIN_GRID_SIZE, MAX_GRID_SIZE)]


def config_for_difficulty(difficulty: int) -> GridSearchConfig:
    d = clamp_difficulty(difficulty)
    return GridSearchConfig(
        difficulty=d,
        grid_size=grid_size_for_difficulty(d),
        target_time_s=60 - (d - 1) * 4,
    )


def adjust(config: GridSearchConfig, accuracy: float) -> GridSearchConfig:
    return adjust_with(
        config,
        accuracy,
        steps=HARDER_STEPS,
        normalize=normalize_grid_search_config,
        dimensions=DIMENSIONS,
    )


def generate_grid(size: int, rng: SeededRng) -> tuple[tuple[int, ...], ...]:
    numbers = rng.shuffle(range(1, size * size + 1))
    return tuple(tuple(numbers[r * size : (r + 1) * size]) for r in range(size))


def validate_grid(grid: Sequence[Sequence[int]], size: int) -> bool:
    if len(grid) != size or any(len(row) != size for row in grid):
        return False
    flat = sorted(n for row in grid for n in row)
    return flat == list(range(1, size * size + 1))


class GridSearchEngine(SessionBase):
    """Schulte table: tap ``1..size^2`` in ascending order."""

    code = "grid_search"
    title = "Grid Search"

    def __init__(self, *, config: GridSearchConfig, clock: Clock, seed: int) -> None:
        super().__init__(clock=clock, seed=seed)
        self._config = normalize_grid_search_config(config)
        self._grid = generate_grid(self._config.grid_size, self._rng)
        self._target = 1
        self._taps: list[TapRecord] = []

    def config(self) -> GridSearchConfig:
        return self._config

    def grid(self) -> list[list[int]]:
        return [list(row) for row in self._grid]

    def current_target(self) -> int:
        return self._target

    def total_numbers(self) -> int:
        return self._config.grid_size * self._config.grid_size

    def start(self) -> bool:
        return self._begin(Phase.RUNNING)

    def tap(self, number: int) -> TapResult | None:
        if self._phase is not Phase.RUNNING:
            return None
        number = int(number)
        if not 1 <= number <= self.total_numbers():
            return None

        correct = number == self._target
        self._taps.append(TapRecord(number=number, at_s=self._clock.now(), correct=correct))
        if correct:
            self._target += 1
            if self._target > self.total_numbers():
                self._finish()
        return TapResult(number=number, correct=correct, complete=self.is_complete())

    def taps(self) -> list[TapRecord]:
        return list(self._taps)

    def progress(self) -> Progress:
        return Progress(current=self._target - 1, total=self.total_numbers())

    def calculate_result(self) -> GridSearchResult:
        correct_taps = [t for t in self._taps if t.correct]
        correct = len(correct_taps)
        errors = len(self._taps) - correct
        duration = self.duration_s()

        # Gaps between consecutive correct taps, the first measured from start().
        marks = ([self._started_at_s] if self._started_at_s is not None else []) + [t.at_s for t in correct_taps]
        gaps = [(b - a) * 1000.0 for a, b in zip(marks, marks[1:])]

        time_bonus = max(0, round_half_up((self._config.target_time_s - duration) * 2))
        score = max(0, self._config.grid_size * 100 + time_bonus - errors * 10)
        return GridSearchResult(
            score=score,
            accuracy=round2(ratio(correct, len(self._taps))),
            duration_s=round2(duration),
            grid_size=self._config.grid_size,
            correct_count=correct,
            error_count=errors,
            total_taps=len(self._taps),
            avg_tap_time_ms=round_half_up(mean_or_zero(gaps)),
        )

    def reset(self) -> None:
        self._grid = generate_grid(self._config.grid_size, self._rng)
        self._target = 1
        self._taps = []
        self._rewind()

    def reconfigure(self, config: GridSearchConfig) -> None:
        self._config = normalize_grid_search_config(config)
        self.reset()

    def state(self) -> GridSearchState:
        return GridSearchState(
            phase=self._phase,
            grid=self._grid,
            current_target=self._target,
            taps=tuple(self._taps),
            started_at_s=self._started_at_s,
        )

    def current_prompt(self) -> str:
        if self._phase is Phase.READY:
            return "Press Enter to begin."
        if self._phase is Phase.COMPLETE:
            r = self.calculate_result()
            return (
                f"Results\nScore: {r.score}\nTime: {r.duration_s:.2f}s\n"
                f"Errors: {r.error_count}\nAccuracy: {int(round(r.accuracy * 100))}%"
            )
        rows = "\n".join(" ".join(f"{n:>2}" for n in row) for row in self._grid)
        return f"{rows}\n\nFind: {self._target}"

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            title=self.title,
            phase=self._phase,
            prompt=self.current_prompt(),
            input_hint="Type the next number then Enter",
            progress=self.progress(),
            payload=self.grid(),
        )

    def submit(self, raw: str) -> bool:
        if self._phase is Phase.READY:
            return self.start()
        text = raw.strip()
        if not text.isdigit():
            return False
        return self.tap(int(text)) is not None


def build_grid_search_engine(
    *,
    clock: Clock,
    seed: int,
    config: GridSearchConfig | None = None,
    difficulty: int | None = None,
) -> GridSearchEngine:
    if config is None:
        config = config_for_difficulty(1 if difficulty is None else difficulty)
    return GridSearchEngine(config=config, clock=clock, seed=seed)
