"""Spatial span recall (Corsi blocks).

Nine blocks are scattered on a board once per session. Each round flashes a
sequence of block ids; the player repeats it (backwards in reverse mode).
Two rounds are played per sequence length, and the session stops early once
both rounds of one length have failed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

from .clock import Clock
from .cognitive_core import (
    SeededRng,
    clamp_difficulty,
    clamp_int,
    mean_or_zero,
    ratio,
    round2,
    round_half_up,
)
from .difficulty import Dimension, Step, adjust_with
from .layout import Point, scatter_points
from .trial_engine import SessionPlan, TrialEngine, TrialTask

BLOCK_COUNT = 9
ROUNDS_PER_LENGTH = 2
MIN_BLOCK_DISTANCE = 0.18
BOARD_LOW = 0.08
BOARD_HIGH = 0.92


@dataclass(frozen=True, slots=True)
class SpatialSpanConfig:
    difficulty: int = 1
    start_length: int = 2
    max_length: int = 9
    is_reverse: bool = False
    display_ms: int = 1000
    interval_ms: int = 500


@dataclass(frozen=True, slots=True)
class Block:
    id: int
    position: Point


@dataclass(frozen=True, slots=True)
class SpanRound:
    index: int
    length: int
    sequence: tuple[int, ...]
    expected: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class SpanResponse:
    index: int
    length: int
    answer: tuple[int, ...]
    expected: tuple[int, ...]
    correct: bool
    rt_ms: float | None


@dataclass(frozen=True, slots=True)
class SpanTap:
    block_id: int
    correct: bool
    # The round's answer was submitted with this tap.
    complete: bool


@dataclass(frozen=True, slots=True)
class SpatialSpanResult:
    score: int
    accuracy: float
    duration_s: float
    span: int
    total_rounds: int
    correct_rounds: int
    error_count: int
    avg_response_time_ms: int
    is_reverse: bool


DIMENSIONS = (
    Dimension("start_length"),
    Dimension("is_reverse"),
    Dimension("display_ms", harder=-1),
    Dimension("interval_ms", harder=-1),
)

HARDER_STEPS = (
    Step("start_length", 1, hard_limit=5, easy_limit=2),
    Step("display_ms", -100, hard_limit=400, easy_limit=1000),
)


def normalize_spatial_span_config(config: SpatialSpanConfig) -> SpatialSpanConfig:
    max_length = clamp_int(int(config.max_length), 2, BLOCK_COUNT)
    return replace(
        config,
        difficulty=clamp_difficulty(config.difficulty),
        start_length=clamp_int(int(config.start_length), 2, max_length),
        max_length=max_length,
        is_reverse=bool(config.is_reverse),
        display_ms=clamp_int(int(config.display_ms), 200, 3000),
        interval_ms=clamp_int(int(config.interval_ms), 100, 2000),
    )


def config_for_difficulty(difficulty: int) -> SpatialSpanConfig:
    d = clamp_difficulty(difficulty)
    if d <= 4:
        start_length = 2
    elif d <= 8:
        start_length = 3
    else:
        start_length = 4
    return SpatialSpanConfig(
        difficulty=d,
        start_length=start_length,
        max_length=BLOCK_COUNT,
        is_reverse=d >= 7,
        display_ms=1000 - (d - 1) * 50,
        interval_ms=500 - (d - 1) * 25,
    )


def adjust(config: SpatialSpanConfig, accuracy: float) -> SpatialSpanConfig:
    return adjust_with(
        config,
        accuracy,
        steps=HARDER_STEPS,
        normalize=normalize_spatial_span_config,
        dimensions=DIMENSIONS,
    )


def generate_board(rng: SeededRng) -> tuple[Block, ...]:
    points = scatter_points(
        BLOCK_COUNT,
        rng,
        min_distance=MIN_BLOCK_DISTANCE,
        low=BOARD_LOW,
        high=BOARD_HIGH,
    )
    return tuple(Block(id=i + 1, position=p) for i, p in enumerate(points))


def generate_block_sequence(length: int, rng: SeededRng, block_count: int = BLOCK_COUNT) -> tuple[int, ...]:
    """Block ids ``1..block_count`` with no two consecutive ids equal."""

    out: list[int] = []
    for _ in range(max(0, int(length))):
        choices = [b for b in range(1, block_count + 1) if not out or b != out[-1]]
        out.append(rng.choice(choices))
    return tuple(out)


def has_repeats(sequence: Sequence[int]) -> bool:
    return any(a == b for a, b in zip(sequence, sequence[1:]))


class SpatialSpanGenerator:
    def generate(self, config: SpatialSpanConfig, rng: SeededRng) -> SessionPlan:
        board = generate_board(rng)
        rounds: list[SpanRound] = []
        for length in range(config.start_length, config.max_length + 1):
            for _ in range(ROUNDS_PER_LENGTH):
                seq = generate_block_sequence(length, rng)
                expected = tuple(reversed(seq)) if config.is_reverse else seq
                rounds.append(SpanRound(index=len(rounds), length=length, sequence=seq, expected=expected))
        return SessionPlan(trials=tuple(rounds), context=board)


class SpatialSpanClassifier:
    def classify(self, *, plan, trial: SpanRound, action, index, history, rt_ms) -> SpanResponse | None:
        if isinstance(action, (str, bytes)) or not isinstance(action, Sequence):
            return None
        try:
            answer = tuple(int(a) for a in action)
        except (TypeError, ValueError):
            return None
        return SpanResponse(
            index=index,
            length=trial.length,
            answer=answer,
            expected=trial.expected,
            correct=answer == trial.expected,
            rt_ms=rt_ms,
        )

    def no_response(self, *, plan, trial: SpanRound, index, history, elapsed_ms) -> SpanResponse:
        return SpanResponse(
            index=index,
            length=trial.length,
            answer=(),
            expected=trial.expected,
            correct=False,
            rt_ms=None,
        )


def both_rounds_failed(plan: SessionPlan, responses: Sequence[SpanResponse]) -> bool:
    if len(responses) < ROUNDS_PER_LENGTH:
        return False
    last = responses[-ROUNDS_PER_LENGTH:]
    same_length = all(r.length == last[0].length for r in last)
    return same_length and not any(r.correct for r in last)


class SpatialSpanScorer:
    def score(
        self,
        *,
        plan,
        responses: Sequence[SpanResponse],
        config: SpatialSpanConfig,
        duration_s: float,
    ) -> SpatialSpanResult:
        correct = [r for r in responses if r.correct]
        span = max((r.length for r in correct), default=0)
        accuracy = ratio(len(correct), len(responses))
        avg_rt = mean_or_zero(r.rt_ms for r in responses if r.rt_ms is not None)
        score = (
            span * 50
            + len(correct) * 20
            + (25 if config.is_reverse else 0)
            + round_half_up(accuracy * 100)
        )
        return SpatialSpanResult(
            score=score,
            accuracy=round2(accuracy),
            duration_s=round2(duration_s),
            span=span,
            total_rounds=len(responses),
            correct_rounds=len(correct),
            error_count=len(responses) - len(correct),
            avg_response_time_ms=round_half_up(avg_rt),
            is_reverse=config.is_reverse,
        )


def _parse_blocks(raw: str) -> tuple[int, ...] | None:
    tokens = raw.replace(",", " ").split()
    if len(tokens) == 1 and tokens[0].isdigit() and len(tokens[0]) > 1:
        tokens = list(tokens[0])
    if not tokens or not all(t.isdigit() for t in tokens):
        return None
    return tuple(int(t) for t in tokens)


def _describe(plan: SessionPlan, trial: SpanRound | None) -> str:
    if trial is None:
        return ""
    shown = " ".join(str(b) for b in trial.sequence)
    order = "backwards" if trial.expected != trial.sequence else "in order"
    return f"Length {trial.length}: watch {shown}\nRepeat the blocks {order}."


SPATIAL_SPAN_TASK = TrialTask(
    code="spatial_span",
    title="Spatial Span",
    generator=SpatialSpanGenerator(),
    classifier=SpatialSpanClassifier(),
    scorer=SpatialSpanScorer(),
    normalize=normalize_spatial_span_config,
    auto_advance=True,
    stop_rule=both_rounds_failed,
    parse_action=_parse_blocks,
    describe=_describe,
    input_hint="Type block numbers (e.g. 3 7 1) then Enter",
)


class SpatialSpanEngine(TrialEngine):
    """Trial engine plus single-tap input."""

    def __init__(self, *, task: TrialTask, config: SpatialSpanConfig, clock: Clock, seed: int) -> None:
        super().__init__(task=task, config=config, clock=clock, seed=seed)
        self._taps: list[int] = []

    def blocks(self) -> list[Block]:
        return list(self.context())

    def tapped(self) -> list[int]:
        return list(self._taps)

    def tap(self, block_id: int) -> SpanTap | None:
        """Buffer one tap; the answer is submitted when full or on a wrong tap."""

        trial = self.current_trial()
        if not self.is_accepting() or trial is None:
            return None
        if not 1 <= int(block_id) <= BLOCK_COUNT:
            return None

        position = len(self._taps)
        self._taps.append(int(block_id))
        correct = trial.expected[position] == int(block_id)
        if correct and len(self._taps) < trial.length:
            return SpanTap(block_id=int(block_id), correct=True, complete=False)

        answer = tuple(self._taps)
        self.respond(answer)
        return SpanTap(block_id=int(block_id), correct=correct, complete=True)

    def advance(self) -> bool:
        self._taps = []
        return super().advance()

    def reset(self) -> None:
        self._taps = []
        super().reset()


def build_spatial_span_engine(
    *,
    clock: Clock,
    seed: int,
    config: SpatialSpanConfig | None = None,
    difficulty: int | None = None,
) -> SpatialSpanEngine:
    if config is None:
        config = config_for_difficulty(1 if difficulty is None else difficulty)
    return SpatialSpanEngine(task=SPATIAL_SPAN_TASK, config=config, clock=clock, seed=seed)
