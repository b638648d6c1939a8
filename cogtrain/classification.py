from __future__ import annotations

import math
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
from .trial_engine import SessionPlan, TrialEngine, TrialTask

SHAPES: tuple[str, ...] = ("circle", "square", "triangle")
COLORS: tuple[str, ...] = ("red", "blue", "green", "yellow")
SIZES: tuple[str, ...] = ("small", "medium", "large")

ATTRIBUTES: dict[str, tuple[str, ...]] = {
    "shape": SHAPES,
    "color": COLORS,
    "size": SIZES,
}

MAX_RULE_ATTEMPTS = 20


@dataclass(frozen=True, slots=True)
class ClassificationConfig:
    difficulty: int = 1
    attribute_count: int = 1
    item_count: int = 15
    consecutive_to_switch: int = 3


@dataclass(frozen=True, slots=True)
class ClassificationItem:
    index: int
    shape: str
    color: str
    size: str

    def attribute(self, name: str) -> str:
        return str(getattr(self, name))


@dataclass(frozen=True, slots=True)
class ClassificationRule:
    """Conjunction of attribute equalities; plain data, so always deterministic."""

    conditions: tuple[tuple[str, str], ...]

    @property
    def id(self) -> str:
        return "-".join(f"{attr}-{value}" for attr, value in self.conditions)

    @property
    def attribute_count(self) -> int:
        return len(self.conditions)

    @property
    def description(self) -> str:
        return " and ".join(f"{attr} is {value}" for attr, value in self.conditions)

    def matches(self, item: ClassificationItem) -> bool:
        return all(item.attribute(attr) == value for attr, value in self.conditions)


@dataclass(frozen=True, slots=True)
class RuleSchedule:
    rules: tuple[ClassificationRule, ...]
    consecutive_to_switch: int


@dataclass(frozen=True, slots=True)
class ClassificationResponse:
    index: int
    rule_index: int
    rule_id: str
    answer: bool | None
    expected: bool
    correct: bool
    # Consecutive-correct count after this response; 0 once the rule switched.
    streak: int
    switched: bool
    rt_ms: float | None


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    score: int
    accuracy: float
    duration_s: float
    rules_discovered: int
    total_items: int
    correct_count: int
    error_count: int
    avg_consecutive_correct: float


DIMENSIONS = (
    Dimension("attribute_count"),
    Dimension("item_count"),
    Dimension("consecutive_to_switch"),
)

HARDER_STEPS = (
    Step("attribute_count", 1, hard_limit=3, easy_limit=1),
    Step("item_count", 4, hard_limit=35, easy_limit=15),
)


def normalize_classification_config(config: ClassificationConfig) -> ClassificationConfig:
    return replace(
        config,
        difficulty=clamp_difficulty(config.difficulty),
        attribute_count=clamp_int(int(config.attribute_count), 1, 3),
        item_count=clamp_int(int(config.item_count), 1, 80),
        consecutive_to_switch=clamp_int(int(config.consecutive_to_switch), 1, 10),
    )


def attribute_count_for_difficulty(difficulty: int) -> int:
    d = clamp_difficulty(difficulty)
    if d <= 3:
        return 1
    if d <= 6:
        return 2
    return 3


def config_for_difficulty(difficulty: int) -> ClassificationConfig:
    d = clamp_difficulty(difficulty)
    return ClassificationConfig(
        difficulty=d,
        attribute_count=attribute_count_for_difficulty(d),
        item_count=15 + (d - 1) * 2,
        consecutive_to_switch=3 + math.floor((d - 1) / 3),
    )


def adjust(config: ClassificationConfig, accuracy: float) -> ClassificationConfig:
    return adjust_with(
        config,
        accuracy,
        steps=HARDER_STEPS,
        normalize=normalize_classification_config,
        dimensions=DIMENSIONS,
    )


def validate_item(item: ClassificationItem) -> bool:
    return item.shape in SHAPES and item.color in COLORS and item.size in SIZES


def generate_item(index: int, rng: SeededRng) -> ClassificationItem:
    return ClassificationItem(
        index=index,
        shape=rng.choice(SHAPES),
        color=rng.choice(COLORS),
        size=rng.choice(SIZES),
    )


def generate_rule(attribute_count: int, rng: SeededRng) -> ClassificationRule:
    k = clamp_int(int(attribute_count), 1, len(ATTRIBUTES))
    names = list(ATTRIBUTES)
    chosen = set(rng.sample(names, k))
    conditions = tuple((name, rng.choice(ATTRIBUTES[name])) for name in names if name in chosen)
    return ClassificationRule(conditions=conditions)


def generate_different_rule(
    current: ClassificationRule,
    attribute_count: int,
    rng: SeededRng,
) -> ClassificationRule:
    rule = generate_rule(attribute_count, rng)
    attempts = 1
    while rule.id == current.id and attempts < MAX_RULE_ATTEMPTS:
        rule = generate_rule(attribute_count, rng)
        attempts += 1
    return rule


class ClassificationGenerator:
    def generate(self, config: ClassificationConfig, rng: SeededRng) -> SessionPlan:
        items = tuple(generate_item(i, rng) for i in range(config.item_count))
        # Enough rules for a switch after every streak.
        n_rules = config.item_count // config.consecutive_to_switch + 1
        rules = [generate_rule(config.attribute_count, rng)]
        while len(rules) < n_rules:
            rules.append(generate_different_rule(rules[-1], config.attribute_count, rng))
        return SessionPlan(
            trials=items,
            context=RuleSchedule(rules=tuple(rules), consecutive_to_switch=config.consecutive_to_switch),
        )


def active_rule_index(history: Sequence[ClassificationResponse]) -> int:
    if not history:
        return 0
    last = history[-1]
    return last.rule_index + (1 if last.switched else 0)


class ClassificationClassifier:
    def classify(self, *, plan, trial: ClassificationItem, action, index, history, rt_ms) -> ClassificationResponse:
        schedule: RuleSchedule = plan.context
        rule_index = min(active_rule_index(history), len(schedule.rules) - 1)
        rule = schedule.rules[rule_index]
        expected = rule.matches(trial)
        answer = None if action is None else bool(action)
        correct = answer is not None and answer == expected

        streak_before = history[-1].streak if history else 0
        streak = streak_before + 1 if correct else 0
        switched = False
        if streak >= schedule.consecutive_to_switch and rule_index + 1 < len(schedule.rules):
            switched = True
            streak = 0

        return ClassificationResponse(
            index=index,
            rule_index=rule_index,
            rule_id=rule.id,
            answer=answer,
            expected=expected,
            correct=correct,
            streak=streak,
            switched=switched,
            rt_ms=rt_ms if answer is not None else None,
        )

    def no_response(self, *, plan, trial: ClassificationItem, index, history, elapsed_ms) -> ClassificationResponse:
        return self.classify(plan=plan, trial=trial, action=None, index=index, history=history, rt_ms=None)


def average_streak(correct_flags: Sequence[bool]) -> float:
    """Mean length of the runs of consecutive correct answers."""

    runs: list[int] = []
    current = 0
    for ok in correct_flags:
        if ok:
            current += 1
        elif current > 0:
            runs.append(current)
            current = 0
    if current > 0:
        runs.append(current)
    return mean_or_zero(runs)


class ClassificationScorer:
    def score(
        self,
        *,
        plan,
        responses: Sequence[ClassificationResponse],
        config: ClassificationConfig,
        duration_s: float,
    ) -> ClassificationResult:
        correct = sum(1 for r in responses if r.correct)
        rules_discovered = 1 + sum(1 for r in responses if r.switched)
        accuracy = ratio(correct, len(responses))
        score = max(0, correct * 10 + rules_discovered * 50 + round_half_up(accuracy * 100))
        return ClassificationResult(
            score=score,
            accuracy=round2(accuracy),
            duration_s=round2(duration_s),
            rules_discovered=rules_discovered,
            total_items=len(responses),
            correct_count=correct,
            error_count=len(responses) - correct,
            avg_consecutive_correct=round2(average_streak([r.correct for r in responses])),
        )


def _parse_yes_no(raw: str) -> bool | None:
    text = raw.strip().lower()
    if text in ("y", "yes", "1"):
        return True
    if text in ("n", "no", "0"):
        return False
    return None


def _describe(plan: SessionPlan, trial: ClassificationItem | None) -> str:
    if trial is None:
        return ""
    return f"{trial.size} {trial.color} {trial.shape}\nDoes it belong? (y/n)"


CLASSIFICATION_TASK = TrialTask(
    code="classification",
    title="Rule Classification",
    generator=ClassificationGenerator(),
    classifier=ClassificationClassifier(),
    scorer=ClassificationScorer(),
    normalize=normalize_classification_config,
    auto_advance=True,
    parse_action=_parse_yes_no,
    describe=_describe,
    input_hint="Type y or n then Enter",
)


def build_classification_engine(
    *,
    clock: Clock,
    seed: int,
    config: ClassificationConfig | None = None,
    difficulty: int | None = None,
) -> TrialEngine:
    if config is None:
        config = config_for_difficulty(1 if difficulty is None else difficulty)
    return TrialEngine(task=CLASSIFICATION_TASK, config=config, clock=clock, seed=seed)
