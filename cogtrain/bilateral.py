from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, replace

from .balancer import balance
from .clock import Clock, elapsed_ms
from .cognitive_core import (
    Phase,
    SeededRng,
    clamp01,
    clamp_difficulty,
    clamp_int,
    mean_or_zero,
    ratio,
    round2,
    round_half_up,
)
from .difficulty import Dimension, Step, adjust_with
from .layout import Point
from .trial_engine import SessionPlan, TrialEngine, TrialTask

TARGET_LOW = 0.1
TARGET_HIGH = 0.9
MIRROR_TOLERANCE = 1e-4


@dataclass(frozen=True, slots=True)
class BilateralConfig:
    difficulty: int = 1
    complexity: int = 1
    time_limit_ms: int = 3000
    pattern_count: int = 5
    mirror_ratio: float = 0.5


@dataclass(frozen=True, slots=True)
class BilateralPattern:
    index: int
    left: Point
    right: Point
    is_mirror: bool


@dataclass(frozen=True, slots=True)
class Touch:
    left: bool
    right: bool


@dataclass(frozen=True, slots=True)
class BilateralResponse:
    index: int
    left_touched: bool
    right_touched: bool
    timing_ms: float
    within_time_limit: bool
    correct: bool
    is_mirror: bool
    responded: bool


@dataclass(frozen=True, slots=True)
class BilateralResult:
    score: int
    accuracy: float
    duration_s: float
    pattern_count: int
    correct_count: int
    error_count: int
    avg_timing_ms: int
    mirror_accuracy: float
    non_mirror_accuracy: float
    timing_precision_ms: int


DIMENSIONS = (
    Dimension("complexity"),
    Dimension("time_limit_ms", harder=-1),
    Dimension("pattern_count"),
)

HARDER_STEPS = (
    Step("time_limit_ms", -200, hard_limit=1000, easy_limit=3000),
    Step("pattern_count", 2, hard_limit=20, easy_limit=5),
)


def normalize_bilateral_config(config: BilateralConfig) -> BilateralConfig:
    return replace(
        config,
        difficulty=clamp_difficulty(config.difficulty),
        complexity=clamp_int(int(config.complexity), 1, 5),
        time_limit_ms=clamp_int(int(config.time_limit_ms), 500, 6000),
        pattern_count=clamp_int(int(config.pattern_count), 1, 40),
        mirror_ratio=clamp01(float(config.mirror_ratio)),
    )


def config_for_difficulty(difficulty: int) -> BilateralConfig:
    d = clamp_difficulty(difficulty)
    return BilateralConfig(
        difficulty=d,
        complexity=min(5, math.ceil(d / 2)),
        time_limit_ms=3000 - (d - 1) * 222,
        pattern_count=5 + math.floor((d - 1) * 1.1),
        mirror_ratio=0.5,
    )


def adjust(config: BilateralConfig, accuracy: float) -> BilateralConfig:
    return adjust_with(
        config,
        accuracy,
        steps=HARDER_STEPS,
        normalize=normalize_bilateral_config,
        dimensions=DIMENSIONS,
    )


def mirror_of(target: Point) -> Point:
    return Point(1.0 - target.x, target.y)


def validate_pattern(pattern: BilateralPattern) -> bool:
    for p in (pattern.left, pattern.right):
        if not (0.0 <= p.x <= 1.0 and 0.0 <= p.y <= 1.0):
            return False
    if not pattern.is_mirror:
        return True
    expected = mirror_of(pattern.right)
    return (
        abs(pattern.left.x - expected.x) < MIRROR_TOLERANCE
        and abs(pattern.left.y - expected.y) < MIRROR_TOLERANCE
    )


def check_response(touch: Touch, timing_ms: float, time_limit_ms: int) -> tuple[bool, bool]:
    """Return (correct, within_time_limit)."""

    within = timing_ms <= time_limit_ms
    return touch.left and touch.right and within, within


def _random_target(rng: SeededRng) -> Point:
    return Point(rng.uniform(TARGET_LOW, TARGET_HIGH), rng.uniform(TARGET_LOW, TARGET_HIGH))


class BilateralGenerator:
    def generate(self, config: BilateralConfig, rng: SeededRng) -> SessionPlan:
        patterns: list[BilateralPattern] = []
        for index, is_mirror in enumerate(balance(config.pattern_count, config.mirror_ratio, rng)):
            right = _random_target(rng)
            left = mirror_of(right) if is_mirror else _random_target(rng)
            patterns.append(BilateralPattern(index=index, left=left, right=right, is_mirror=is_mirror))
        return SessionPlan(trials=tuple(patterns), context=config.time_limit_ms)


class BilateralClassifier:
    def classify(self, *, plan, trial: BilateralPattern, action, index, history, rt_ms) -> BilateralResponse | None:
        if not isinstance(action, Touch):
            return None
        timing = 0.0 if rt_ms is None else rt_ms
        correct, within = check_response(action, timing, int(plan.context))
        return BilateralResponse(
            index=index,
            left_touched=action.left,
            right_touched=action.right,
            timing_ms=timing,
            within_time_limit=within,
            correct=correct,
            is_mirror=trial.is_mirror,
            responded=True,
        )

    def no_response(self, *, plan, trial: BilateralPattern, index, history, elapsed_ms) -> BilateralResponse:
        limit = int(plan.context)
        timing = float(limit + 1) if elapsed_ms is None else elapsed_ms
        return BilateralResponse(
            index=index,
            left_touched=False,
            right_touched=False,
            timing_ms=timing,
            within_time_limit=timing <= limit,
            correct=False,
            is_mirror=trial.is_mirror,
            responded=False,
        )


class BilateralScorer:
    def score(
        self,
        *,
        plan,
        responses: Sequence[BilateralResponse],
        config: BilateralConfig,
        duration_s: float,
    ) -> BilateralResult:
        correct = sum(1 for r in responses if r.correct)
        mirror = [r for r in responses if r.is_mirror]
        plain = [r for r in responses if not r.is_mirror]
        mirror_correct = sum(1 for r in mirror if r.correct)
        avg_timing = mean_or_zero(r.timing_ms for r in responses)
        precision = mean_or_zero(abs(r.timing_ms - config.time_limit_ms / 2) for r in responses)

        speed = max(0, round_half_up((config.time_limit_ms - avg_timing) / 10)) if responses else 0
        score = max(0, correct * 10 * config.complexity + speed + mirror_correct * 5)
        return BilateralResult(
            score=score,
            accuracy=round2(ratio(correct, len(responses))),
            duration_s=round2(duration_s),
            pattern_count=config.pattern_count,
            correct_count=correct,
            error_count=len(responses) - correct,
            avg_timing_ms=round_half_up(avg_timing),
            mirror_accuracy=round2(ratio(mirror_correct, len(mirror))),
            non_mirror_accuracy=round2(ratio(sum(1 for r in plain if r.correct), len(plain))),
            timing_precision_ms=round_half_up(precision),
        )


def _parse_touch(raw: str) -> Touch | None:
    text = raw.strip().lower()
    if text in ("b", "both", "lr", "rl"):
        return Touch(left=True, right=True)
    if text in ("l", "left"):
        return Touch(left=True, right=False)
    if text in ("r", "right"):
        return Touch(left=False, right=True)
    return None


def _describe(plan: SessionPlan, trial: BilateralPattern | None) -> str:
    if trial is None:
        return ""
    kind = "mirror" if trial.is_mirror else "free"
    return (
        f"Left target ({trial.left.x:.2f}, {trial.left.y:.2f})  "
        f"Right target ({trial.right.x:.2f}, {trial.right.y:.2f})  [{kind}]\n"
        f"Touch both within {plan.context} ms."
    )


BILATERAL_TASK = TrialTask(
    code="bilateral",
    title="Bilateral Coordination",
    generator=BilateralGenerator(),
    classifier=BilateralClassifier(),
    scorer=BilateralScorer(),
    normalize=normalize_bilateral_config,
    parse_action=_parse_touch,
    describe=_describe,
    input_hint="Type b (both), l or r then Enter",
)


class BilateralEngine(TrialEngine):
    """Trial engine plus the per-pattern countdown query."""

    def remaining_time_ms(self) -> float:
        limit = float(self.config().time_limit_ms)
        if self._phase is not Phase.RUNNING:
            return limit
        elapsed = elapsed_ms(self._trial_started_at_s, self._clock.now())
        return limit if elapsed is None else max(0.0, limit - elapsed)

    def is_timed_out(self) -> bool:
        return self._phase is Phase.RUNNING and self.remaining_time_ms() <= 0.0

    def update(self) -> None:
        """Record a miss and move on once the current pattern times out."""
        if self.is_timed_out():
            self.advance()


def build_bilateral_engine(
    *,
    clock: Clock,
    seed: int,
    config: BilateralConfig | None = None,
    difficulty: int | None = None,
) -> BilateralEngine:
    if config is None:
        config = config_for_difficulty(1 if difficulty is None else difficulty)
    return BilateralEngine(task=BILATERAL_TASK, config=config, clock=clock, seed=seed)
