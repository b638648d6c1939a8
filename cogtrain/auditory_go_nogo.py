from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, replace

from .balancer import balance
from .clock import Clock
from .cognitive_core import (
    SeededRng,
    clamp01,
    clamp_difficulty,
    clamp_int,
    mean_or_zero,
    ratio,
    round2,
    round_half_up,
    speed_bonus,
)
from .difficulty import Dimension, Step, adjust_with
from .signal_detection import Outcome, classify_outcome, detection_rates, tally
from .trial_engine import SessionPlan, TrialEngine, TrialTask

SOUNDS: tuple[str, ...] = ("one", "two", "three", "four", "five", "six", "seven", "eight", "nine")

MIN_TRIALS = 1
MAX_TRIALS = 60


@dataclass(frozen=True, slots=True)
class AuditoryConfig:
    difficulty: int = 1
    trial_count: int = 15
    target_ratio: float = 0.4
    # None: the session draws its own target sound.
    target_sound: str | None = None
    inter_stimulus_ms: int = 1500
    stimulus_ms: int = 500


@dataclass(frozen=True, slots=True)
class AuditoryTrial:
    index: int
    sound: str
    is_target: bool


@dataclass(frozen=True, slots=True)
class AuditoryResponse:
    index: int
    sound: str
    is_target: bool
    responded: bool
    outcome: Outcome
    rt_ms: float | None

    @property
    def hit(self) -> bool:
        return self.outcome is Outcome.HIT

    @property
    def miss(self) -> bool:
        return self.outcome is Outcome.MISS

    @property
    def false_alarm(self) -> bool:
        return self.outcome is Outcome.FALSE_ALARM

    @property
    def correct_rejection(self) -> bool:
        return self.outcome is Outcome.CORRECT_REJECTION

    @property
    def correct(self) -> bool:
        return self.outcome.is_correct


@dataclass(frozen=True, slots=True)
class AuditoryStats:
    hits: int
    misses: int
    false_alarms: int
    correct_rejections: int
    hit_rate: float
    false_alarm_rate: float
    d_prime: float
    avg_reaction_time_ms: int


@dataclass(frozen=True, slots=True)
class AuditoryResult:
    score: int
    accuracy: float
    duration_s: float
    target_sound: str
    hits: int
    misses: int
    false_alarms: int
    correct_rejections: int
    hit_rate: float
    false_alarm_rate: float
    d_prime: float
    avg_reaction_time_ms: int


DIMENSIONS = (
    Dimension("target_ratio", harder=-1),
    Dimension("trial_count"),
    Dimension("inter_stimulus_ms", harder=-1),
)

HARDER_STEPS = (
    Step("inter_stimulus_ms", -100, hard_limit=600, easy_limit=1500),
    Step("target_ratio", -0.05, hard_limit=0.2, easy_limit=0.4, decimal=True),
    Step("trial_count", 5, hard_limit=40, easy_limit=15),
)


def normalize_auditory_config(config: AuditoryConfig) -> AuditoryConfig:
    target = config.target_sound
    if target is not None and target not in SOUNDS:
        target = None
    return replace(
        config,
        difficulty=clamp_difficulty(config.difficulty),
        trial_count=clamp_int(int(config.trial_count), MIN_TRIALS, MAX_TRIALS),
        target_ratio=clamp01(float(config.target_ratio)),
        target_sound=target,
        inter_stimulus_ms=clamp_int(int(config.inter_stimulus_ms), 300, 5000),
        stimulus_ms=clamp_int(int(config.stimulus_ms), 100, 2000),
    )


def config_for_difficulty(difficulty: int) -> AuditoryConfig:
    d = clamp_difficulty(difficulty)
    return AuditoryConfig(
        difficulty=d,
        trial_count=15 + math.floor((d - 1) * 1.67),
        target_ratio=round2(0.4 - (d - 1) * 0.022),
        inter_stimulus_ms=1500 - math.floor((d - 1) * 78),
        stimulus_ms=500,
    )


def adjust(config: AuditoryConfig, accuracy: float) -> AuditoryConfig:
    return adjust_with(
        config,
        accuracy,
        steps=HARDER_STEPS,
        normalize=normalize_auditory_config,
        dimensions=DIMENSIONS,
    )


def _mean_rt_ms(responses: Sequence[AuditoryResponse]) -> float:
    return mean_or_zero(r.rt_ms for r in responses if r.responded and r.rt_ms is not None)


def calculate_auditory_stats(responses: Sequence[AuditoryResponse]) -> AuditoryStats:
    counts = tally(r.outcome for r in responses)
    rates = detection_rates(counts)
    avg_rt = _mean_rt_ms(responses)
    return AuditoryStats(
        hits=counts.hits,
        misses=counts.misses,
        false_alarms=counts.false_alarms,
        correct_rejections=counts.correct_rejections,
        hit_rate=rates.hit_rate,
        false_alarm_rate=rates.false_alarm_rate,
        d_prime=rates.d_prime,
        avg_reaction_time_ms=round_half_up(avg_rt),
    )


class AuditoryGenerator:
    def generate(self, config: AuditoryConfig, rng: SeededRng) -> SessionPlan:
        target = config.target_sound if config.target_sound is not None else rng.choice(SOUNDS)
        others = [s for s in SOUNDS if s != target]
        trials = tuple(
            AuditoryTrial(index=i, sound=target if is_target else rng.choice(others), is_target=is_target)
            for i, is_target in enumerate(balance(config.trial_count, config.target_ratio, rng))
        )
        return SessionPlan(trials=trials, context=target)


class AuditoryClassifier:
    def classify(self, *, plan, trial: AuditoryTrial, action, index, history, rt_ms) -> AuditoryResponse:
        responded = bool(action)
        return AuditoryResponse(
            index=index,
            sound=trial.sound,
            is_target=trial.is_target,
            responded=responded,
            outcome=classify_outcome(is_target=trial.is_target, responded=responded),
            rt_ms=rt_ms if responded else None,
        )

    def no_response(self, *, plan, trial: AuditoryTrial, index, history, elapsed_ms) -> AuditoryResponse:
        return self.classify(plan=plan, trial=trial, action=False, index=index, history=history, rt_ms=None)


class AuditoryScorer:
    def score(
        self,
        *,
        plan: SessionPlan,
        responses: Sequence[AuditoryResponse],
        config: AuditoryConfig,
        duration_s: float,
    ) -> AuditoryResult:
        stats = calculate_auditory_stats(responses)
        correct = stats.hits + stats.correct_rejections
        score = (
            correct * 10
            + max(0, round_half_up(stats.d_prime * 20))
            + speed_bonus(_mean_rt_ms(responses), reference_ms=1000.0, per_ms=10.0)
        )
        return AuditoryResult(
            score=score,
            accuracy=round2(ratio(correct, len(responses))),
            duration_s=round2(duration_s),
            target_sound=str(plan.context),
            hits=stats.hits,
            misses=stats.misses,
            false_alarms=stats.false_alarms,
            correct_rejections=stats.correct_rejections,
            hit_rate=stats.hit_rate,
            false_alarm_rate=stats.false_alarm_rate,
            d_prime=stats.d_prime,
            avg_reaction_time_ms=stats.avg_reaction_time_ms,
        )


def _parse_press(raw: str) -> bool | None:
    text = raw.strip().lower()
    if text in ("y", "yes", "go", "1"):
        return True
    if text in ("n", "no", "0"):
        return False
    return None


def _describe(plan: SessionPlan, trial: AuditoryTrial | None) -> str:
    if trial is None:
        return ""
    return f"Target: {str(plan.context).upper()}\nHeard: {trial.sound.upper()}\nPress on the target only."


AUDITORY_TASK = TrialTask(
    code="auditory_go_nogo",
    title="Auditory Go/No-Go",
    generator=AuditoryGenerator(),
    classifier=AuditoryClassifier(),
    scorer=AuditoryScorer(),
    normalize=normalize_auditory_config,
    parse_action=_parse_press,
    describe=_describe,
    input_hint="Type y to respond, Enter alone to let it pass",
)


def build_auditory_engine(
    *,
    clock: Clock,
    seed: int,
    config: AuditoryConfig | None = None,
    difficulty: int | None = None,
) -> TrialEngine:
    if config is None:
        config = config_for_difficulty(1 if difficulty is None else difficulty)
    return TrialEngine(task=AUDITORY_TASK, config=config, clock=clock, seed=seed)
