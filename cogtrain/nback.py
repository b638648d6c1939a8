from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import Enum

from loguru import logger

from .balancer import balance, target_count
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
)
from .difficulty import Dimension, Step, adjust_with
from .signal_detection import Outcome, classify_outcome, detection_rates, tally
from .trial_engine import SessionPlan, TrialEngine, TrialTask


class StimulusKind(str, Enum):
    NUMBER = "number"
    LETTER = "letter"
    POSITION = "position"


STIMULI: dict[StimulusKind, tuple[str, ...]] = {
    StimulusKind.NUMBER: ("1", "2", "3", "4", "5", "6", "7", "8", "9"),
    StimulusKind.LETTER: ("A", "B", "C", "D", "E", "F", "G", "H", "J"),
    # Cells of a 3x3 grid, numbered row by row.
    StimulusKind.POSITION: ("1", "2", "3", "4", "5", "6", "7", "8", "9"),
}

MIN_N = 1
MAX_N = 4
MIN_LENGTH = 5
MAX_LENGTH = 60
MAX_STREAM_ATTEMPTS = 300


@dataclass(frozen=True, slots=True)
class NBackConfig:
    difficulty: int = 1
    n_back: int = 1
    sequence_length: int = 10
    stimulus_kind: StimulusKind = StimulusKind.LETTER
    target_ratio: float = 0.3


@dataclass(frozen=True, slots=True)
class NBackTrial:
    index: int
    stimulus: str
    is_target: bool


@dataclass(frozen=True, slots=True)
class NBackResponse:
    index: int
    responded: bool
    is_target: bool
    outcome: Outcome
    rt_ms: float | None

    @property
    def correct(self) -> bool:
        return self.outcome.is_correct


@dataclass(frozen=True, slots=True)
class NBackResult:
    score: int
    accuracy: float
    duration_s: float
    n_back: int
    sequence_length: int
    hit_rate: float
    false_alarm_rate: float
    d_prime: float
    hits: int
    misses: int
    false_alarms: int
    correct_rejections: int
    avg_reaction_time_ms: int


DIMENSIONS = (
    Dimension("n_back"),
    Dimension("sequence_length"),
)

HARDER_STEPS = (
    Step("n_back", 1, hard_limit=MAX_N, easy_limit=MIN_N),
    Step("sequence_length", 5, hard_limit=30, easy_limit=10),
)


def normalize_nback_config(config: NBackConfig) -> NBackConfig:
    try:
        kind = StimulusKind(config.stimulus_kind)
    except ValueError:
        kind = StimulusKind.LETTER
    return replace(
        config,
        difficulty=clamp_difficulty(config.difficulty),
        n_back=clamp_int(int(config.n_back), MIN_N, MAX_N),
        sequence_length=clamp_int(int(config.sequence_length), MIN_LENGTH, MAX_LENGTH),
        stimulus_kind=kind,
        target_ratio=clamp01(float(config.target_ratio)),
    )


def config_for_difficulty(difficulty: int) -> NBackConfig:
    d = clamp_difficulty(difficulty)
    return NBackConfig(
        difficulty=d,
        n_back=min(MAX_N, math.ceil(d / 2.5)),
        sequence_length=10 + math.floor((d - 1) * 1.67),
        stimulus_kind=StimulusKind.LETTER,
    )


def adjust(config: NBackConfig, accuracy: float) -> NBackConfig:
    return adjust_with(
        config,
        accuracy,
        steps=HARDER_STEPS,
        normalize=normalize_nback_config,
        dimensions=DIMENSIONS,
    )


def detect_nback_match(stream: Sequence[str], index: int, n: int) -> bool:
    if index < n or index >= len(stream) or n < 1:
        return False
    return stream[index] == stream[index - n]


def generate_stream(
    *,
    length: int,
    n: int,
    target_ratio: float,
    stimuli: Sequence[str],
    rng: SeededRng,
) -> tuple[list[str], list[bool]]:
    """Symbol stream plus targets recomputed from the realised symbols.

    Targets are planned on the positions that have an item N back. A
    candidate is kept once its realised target count is within one of the
    planned count; after ``MAX_STREAM_ATTEMPTS`` the last candidate is
    returned with its honest target flags.
    """

    eligible = max(0, length - n)
    desired = target_count(eligible, target_ratio)
    stream: list[str] = []
    targets: list[bool] = []
    for _ in range(MAX_STREAM_ATTEMPTS):
        planned = balance(eligible, target_ratio, rng)
        stream = []
        for i in range(length):
            if i < n:
                stream.append(rng.choice(stimuli))
                continue
            back = stream[i - n]
            if planned[i - n]:
                stream.append(back)
            else:
                stream.append(rng.choice([s for s in stimuli if s != back]))
        targets = [detect_nback_match(stream, i, n) for i in range(length)]
        if abs(sum(targets) - desired) <= 1:
            return stream, targets
    logger.warning("n-back stream missed its target count after {} attempts", MAX_STREAM_ATTEMPTS)
    return stream, targets


def validate_sequence(trials: Sequence[NBackTrial], n: int) -> bool:
    stream = [t.stimulus for t in trials]
    for i, trial in enumerate(trials):
        if trial.index != i:
            return False
        if trial.is_target != detect_nback_match(stream, i, n):
            return False
    return True


class NBackGenerator:
    def generate(self, config: NBackConfig, rng: SeededRng) -> SessionPlan:
        stream, targets = generate_stream(
            length=config.sequence_length,
            n=config.n_back,
            target_ratio=config.target_ratio,
            stimuli=STIMULI[config.stimulus_kind],
            rng=rng,
        )
        trials = tuple(
            NBackTrial(index=i, stimulus=s, is_target=t) for i, (s, t) in enumerate(zip(stream, targets))
        )
        return SessionPlan(trials=trials, context=config.n_back)


class NBackClassifier:
    def classify(self, *, plan, trial: NBackTrial, action, index, history, rt_ms) -> NBackResponse:
        responded = bool(action)
        return NBackResponse(
            index=index,
            responded=responded,
            is_target=trial.is_target,
            outcome=classify_outcome(is_target=trial.is_target, responded=responded),
            rt_ms=rt_ms if responded else None,
        )

    def no_response(self, *, plan, trial: NBackTrial, index, history, elapsed_ms) -> NBackResponse:
        return self.classify(plan=plan, trial=trial, action=False, index=index, history=history, rt_ms=None)


class NBackScorer:
    def score(
        self,
        *,
        plan,
        responses: Sequence[NBackResponse],
        config: NBackConfig,
        duration_s: float,
    ) -> NBackResult:
        counts = tally(r.outcome for r in responses)
        rates = detection_rates(counts)
        avg_rt = mean_or_zero(r.rt_ms for r in responses if r.responded and r.rt_ms is not None)
        score = counts.correct * 10 * config.n_back + max(0, round_half_up(rates.d_prime * 20))
        return NBackResult(
            score=score,
            accuracy=round2(ratio(counts.correct, len(responses))),
            duration_s=round2(duration_s),
            n_back=config.n_back,
            sequence_length=config.sequence_length,
            hit_rate=rates.hit_rate,
            false_alarm_rate=rates.false_alarm_rate,
            d_prime=rates.d_prime,
            hits=counts.hits,
            misses=counts.misses,
            false_alarms=counts.false_alarms,
            correct_rejections=counts.correct_rejections,
            avg_reaction_time_ms=round_half_up(avg_rt),
        )


def _parse_match(raw: str) -> bool | None:
    text = raw.strip().lower()
    if text in ("y", "yes", "m", "match", "1"):
        return True
    if text in ("n", "no", "0"):
        return False
    return None


def _describe(plan: SessionPlan, trial: NBackTrial | None) -> str:
    if trial is None:
        return ""
    return f"{trial.stimulus}\nSame as {plan.context} back? (y = match)"


NBACK_TASK = TrialTask(
    code="nback",
    title="N-Back",
    generator=NBackGenerator(),
    classifier=NBackClassifier(),
    scorer=NBackScorer(),
    normalize=normalize_nback_config,
    parse_action=_parse_match,
    describe=_describe,
    input_hint="Type y for a match, Enter alone to move on",
)


def build_nback_engine(
    *,
    clock: Clock,
    seed: int,
    config: NBackConfig | None = None,
    difficulty: int | None = None,
) -> TrialEngine:
    if config is None:
        config = config_for_difficulty(1 if difficulty is None else difficulty)
    return TrialEngine(task=NBACK_TASK, config=config, clock=clock, seed=seed)
