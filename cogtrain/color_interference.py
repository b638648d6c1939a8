from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, replace

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
    speed_bonus,
)
from .difficulty import Dimension, Step, adjust_with
from .trial_engine import SessionPlan, TrialEngine, TrialTask

PALETTE: tuple[str, ...] = ("RED", "BLUE", "GREEN", "YELLOW")

MIN_TRIALS = 1
MAX_TRIALS = 60


@dataclass(frozen=True, slots=True)
class ColorInterferenceConfig:
    difficulty: int = 1
    trial_count: int = 10
    congruent_ratio: float = 0.8


@dataclass(frozen=True, slots=True)
class ColorTrial:
    index: int
    word: str
    ink: str
    is_congruent: bool

    @property
    def correct_answer(self) -> str:
        return self.ink


@dataclass(frozen=True, slots=True)
class ColorResponse:
    index: int
    word: str
    ink: str
    chosen: str | None
    correct: bool
    is_congruent: bool
    rt_ms: float | None


@dataclass(frozen=True, slots=True)
class ColorInterferenceResult:
    score: int
    accuracy: float
    duration_s: float
    correct_count: int
    total_trials: int
    avg_reaction_time_ms: int
    congruent_accuracy: float
    incongruent_accuracy: float


DIMENSIONS = (
    Dimension("congruent_ratio", harder=-1),
    Dimension("trial_count"),
)

HARDER_STEPS = (
    Step("congruent_ratio", -0.1, hard_limit=0.2, easy_limit=0.8, decimal=True),
    Step("trial_count", 5, hard_limit=40, easy_limit=10),
)


def normalize_color_interference_config(config: ColorInterferenceConfig) -> ColorInterferenceConfig:
    return replace(
        config,
        difficulty=clamp_difficulty(config.difficulty),
        trial_count=clamp_int(int(config.trial_count), MIN_TRIALS, MAX_TRIALS),
        congruent_ratio=clamp01(float(config.congruent_ratio)),
    )


def config_for_difficulty(difficulty: int) -> ColorInterferenceConfig:
    d = clamp_difficulty(difficulty)
    return ColorInterferenceConfig(
        difficulty=d,
        trial_count=10 + math.floor((d - 1) * 2.2),
        congruent_ratio=round2(0.8 - (d - 1) * 0.067),
    )


def adjust(config: ColorInterferenceConfig, accuracy: float) -> ColorInterferenceConfig:
    return adjust_with(
        config,
        accuracy,
        steps=HARDER_STEPS,
        normalize=normalize_color_interference_config,
        dimensions=DIMENSIONS,
    )


def parse_color(raw: str) -> str | None:
    """Accept a palette name (any case, prefix ok) or its 1-based number."""

    text = str(raw).strip().upper()
    if text == "":
        return None
    if text.isdigit():
        idx = int(text) - 1
        return PALETTE[idx] if 0 <= idx < len(PALETTE) else None
    for colour in PALETTE:
        if colour.startswith(text):
            return colour
    return None


def validate_trials(trials: Sequence[ColorTrial], config: ColorInterferenceConfig) -> bool:
    if len(trials) != config.trial_count:
        return False
    for trial in trials:
        if trial.word not in PALETTE or trial.ink not in PALETTE:
            return False
        if trial.is_congruent != (trial.word == trial.ink):
            return False
    congruent = sum(1 for t in trials if t.is_congruent)
    return abs(congruent - target_count(config.trial_count, config.congruent_ratio)) <= 1


class ColorInterferenceGenerator:
    def generate(self, config: ColorInterferenceConfig, rng: SeededRng) -> SessionPlan:
        labels = balance(config.trial_count, config.congruent_ratio, rng)
        trials: list[ColorTrial] = []
        for index, congruent in enumerate(labels):
            word = rng.choice(PALETTE)
            if congruent:
                ink = word
            else:
                ink = rng.choice([c for c in PALETTE if c != word])
            trials.append(ColorTrial(index=index, word=word, ink=ink, is_congruent=congruent))
        return SessionPlan(trials=tuple(trials))


class ColorInterferenceClassifier:
    def classify(self, *, plan, trial: ColorTrial, action, index, history, rt_ms) -> ColorResponse | None:
        chosen = parse_color(str(action))
        if chosen is None:
            return None
        return ColorResponse(
            index=index,
            word=trial.word,
            ink=trial.ink,
            chosen=chosen,
            correct=chosen == trial.correct_answer,
            is_congruent=trial.is_congruent,
            rt_ms=rt_ms,
        )

    def no_response(self, *, plan, trial: ColorTrial, index, history, elapsed_ms) -> ColorResponse:
        return ColorResponse(
            index=index,
            word=trial.word,
            ink=trial.ink,
            chosen=None,
            correct=False,
            is_congruent=trial.is_congruent,
            rt_ms=None,
        )


class ColorInterferenceScorer:
    def score(
        self,
        *,
        plan,
        responses: Sequence[ColorResponse],
        config: ColorInterferenceConfig,
        duration_s: float,
    ) -> ColorInterferenceResult:
        correct = sum(1 for r in responses if r.correct)
        congruent = [r for r in responses if r.is_congruent]
        incongruent = [r for r in responses if not r.is_congruent]
        incongruent_correct = sum(1 for r in incongruent if r.correct)
        avg_rt = mean_or_zero(r.rt_ms for r in responses if r.chosen is not None and r.rt_ms is not None)

        score = correct * 10 + speed_bonus(avg_rt, reference_ms=1000.0, per_ms=10.0) + incongruent_correct * 5
        return ColorInterferenceResult(
            score=score,
            accuracy=round2(ratio(correct, len(responses))),
            duration_s=round2(duration_s),
            correct_count=correct,
            total_trials=len(responses),
            avg_reaction_time_ms=round_half_up(avg_rt),
            congruent_accuracy=round2(ratio(sum(1 for r in congruent if r.correct), len(congruent))),
            incongruent_accuracy=round2(ratio(incongruent_correct, len(incongruent))),
        )


def _describe(plan: SessionPlan, trial: ColorTrial | None) -> str:
    if trial is None:
        return ""
    options = "  ".join(f"{i + 1}={c}" for i, c in enumerate(PALETTE))
    return f"{trial.word} (ink: {trial.ink})\nName the INK colour.\n{options}"


COLOR_INTERFERENCE_TASK = TrialTask(
    code="color_interference",
    title="Colour-Word Interference",
    generator=ColorInterferenceGenerator(),
    classifier=ColorInterferenceClassifier(),
    scorer=ColorInterferenceScorer(),
    normalize=normalize_color_interference_config,
    auto_advance=True,
    parse_action=parse_color,
    describe=_describe,
    input_hint="Type colour name or 1-4 then Enter",
)


def build_color_interference_engine(
    *,
    clock: Clock,
    seed: int,
    config: ColorInterferenceConfig | None = None,
    difficulty: int | None = None,
) -> TrialEngine:
    if config is None:
        config = config_for_difficulty(1 if difficulty is None else difficulty)
    return TrialEngine(task=COLOR_INTERFERENCE_TASK, config=config, clock=clock, seed=seed)
