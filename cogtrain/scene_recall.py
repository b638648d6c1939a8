from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import Enum

from .balancer import assign_categories
from .clock import Clock
from .cognitive_core import (
    Phase,
    SeededRng,
    clamp_difficulty,
    clamp_int,
    ratio,
    round2,
    round_half_up,
)
from .difficulty import Dimension, Step, adjust_with
from .layout import REGION_NAMES, Point, region_name, scatter_points
from .trial_engine import SessionPlan, TrialEngine, TrialTask

ELEMENT_TYPES: tuple[str, ...] = (
    "apple",
    "banana",
    "book",
    "cup",
    "key",
    "phone",
    "clock",
    "lamp",
    "chair",
    "ball",
    "hat",
    "shoe",
    "pen",
    "flower",
    "star",
    "heart",
)

MIN_ELEMENT_DISTANCE = 0.15
MAX_PLACEMENT_ATTEMPTS = 50
OPTION_COUNT = 4


class TestType(str, Enum):
    ITEM = "item"
    SPATIAL = "spatial"
    BOTH = "both"


class QuestionKind(str, Enum):
    ITEM = "item"
    SPATIAL = "spatial"


_TEST_TYPE_RANK = {TestType.ITEM: 0, TestType.SPATIAL: 1, TestType.BOTH: 2}


@dataclass(frozen=True, slots=True)
class SceneConfig:
    difficulty: int = 1
    element_count: int = 3
    study_time_s: int = 15
    test_type: TestType = TestType.ITEM
    # None: one question per element.
    question_count: int | None = None


@dataclass(frozen=True, slots=True)
class SceneElement:
    index: int
    kind: str
    position: Point

    @property
    def region(self) -> str:
        return region_name(self.position)


@dataclass(frozen=True, slots=True)
class SceneQuestion:
    index: int
    kind: QuestionKind
    prompt: str
    options: tuple[str, ...]
    correct_answer: str
    element_index: int


@dataclass(frozen=True, slots=True)
class SceneResponse:
    index: int
    kind: QuestionKind
    answer: str | None
    correct_answer: str
    correct: bool
    rt_ms: float | None


@dataclass(frozen=True, slots=True)
class SceneResult:
    score: int
    accuracy: float
    duration_s: float
    element_count: int
    question_count: int
    correct_count: int
    error_count: int
    item_accuracy: float
    spatial_accuracy: float
    study_time_s: int


DIMENSIONS = (
    Dimension("element_count"),
    Dimension("study_time_s", harder=-1),
    Dimension("test_type", key=lambda t: float(_TEST_TYPE_RANK[TestType(t)])),
)

HARDER_STEPS = (
    Step("study_time_s", -1, hard_limit=5, easy_limit=15),
    Step("element_count", 1, hard_limit=10, easy_limit=3),
)
EASIER_STEPS = (HARDER_STEPS[1], HARDER_STEPS[0])


def normalize_scene_config(config: SceneConfig) -> SceneConfig:
    try:
        test_type = TestType(config.test_type)
    except ValueError:
        test_type = TestType.ITEM
    question_count = config.question_count
    if question_count is not None:
        question_count = clamp_int(int(question_count), 1, 32)
    return replace(
        config,
        difficulty=clamp_difficulty(config.difficulty),
        element_count=clamp_int(int(config.element_count), 1, len(ELEMENT_TYPES)),
        study_time_s=clamp_int(int(config.study_time_s), 1, 120),
        test_type=test_type,
        question_count=question_count,
    )


def config_for_difficulty(difficulty: int) -> SceneConfig:
    d = clamp_difficulty(difficulty)
    if d <= 3:
        test_type = TestType.ITEM
    elif d <= 6:
        test_type = TestType.SPATIAL
    else:
        test_type = TestType.BOTH
    return SceneConfig(
        difficulty=d,
        element_count=3 + math.floor((d - 1) * 0.78),
        study_time_s=max(5, 15 - math.floor((d - 1) * 1.1)),
        test_type=test_type,
    )


def adjust(config: SceneConfig, accuracy: float) -> SceneConfig:
    return adjust_with(
        config,
        accuracy,
        steps=HARDER_STEPS,
        easier_steps=EASIER_STEPS,
        normalize=normalize_scene_config,
        dimensions=DIMENSIONS,
    )


def generate_scene(element_count: int, rng: SeededRng) -> tuple[SceneElement, ...]:
    count = clamp_int(int(element_count), 1, len(ELEMENT_TYPES))
    kinds = rng.sample(ELEMENT_TYPES, count)
    points = scatter_points(
        count,
        rng,
        min_distance=MIN_ELEMENT_DISTANCE,
        max_attempts=MAX_PLACEMENT_ATTEMPTS,
    )
    return tuple(SceneElement(index=i, kind=k, position=p) for i, (k, p) in enumerate(zip(kinds, points)))


def _options(correct: str, pool: Sequence[str], rng: SeededRng) -> tuple[str, ...]:
    distractors = rng.sample([p for p in pool if p != correct], OPTION_COUNT - 1)
    return tuple(rng.shuffle([correct, *distractors]))


def _question(
    index: int,
    kind: QuestionKind,
    element: SceneElement,
    scene: Sequence[SceneElement],
    rng: SeededRng,
) -> SceneQuestion:
    if kind is QuestionKind.ITEM:
        # Other elements in the same region would also be right answers.
        neighbours = {e.kind for e in scene if e.region == element.region and e.index != element.index}
        return SceneQuestion(
            index=index,
            kind=kind,
            prompt=f"What was at the {element.region} of the scene?",
            options=_options(element.kind, [t for t in ELEMENT_TYPES if t not in neighbours], rng),
            correct_answer=element.kind,
            element_index=element.index,
        )
    return SceneQuestion(
        index=index,
        kind=kind,
        prompt=f"Where was the {element.kind}?",
        options=_options(element.region, REGION_NAMES, rng),
        correct_answer=element.region,
        element_index=element.index,
    )


def question_kinds(test_type: TestType, count: int, rng: SeededRng) -> list[QuestionKind]:
    if test_type is TestType.ITEM:
        return [QuestionKind.ITEM] * count
    if test_type is TestType.SPATIAL:
        return [QuestionKind.SPATIAL] * count
    # Item questions take the odd one out.
    return assign_categories(count, (QuestionKind.SPATIAL, QuestionKind.ITEM), (0.5, 0.5), rng)


class SceneGenerator:
    def generate(self, config: SceneConfig, rng: SeededRng) -> SessionPlan:
        elements = generate_scene(config.element_count, rng)
        count = config.question_count if config.question_count is not None else len(elements)
        order = rng.shuffle(elements)
        questions = tuple(
            _question(i, kind, order[i % len(order)], elements, rng)
            for i, kind in enumerate(question_kinds(config.test_type, count, rng))
        )
        return SessionPlan(trials=questions, context=elements)


def _resolve_option(question: SceneQuestion, action: object) -> str | None:
    text = str(action).strip().lower()
    if text.isdigit():
        idx = int(text) - 1
        return question.options[idx] if 0 <= idx < len(question.options) else None
    for option in question.options:
        if option.lower() == text:
            return option
    return None


class SceneClassifier:
    def classify(self, *, plan, trial: SceneQuestion, action, index, history, rt_ms) -> SceneResponse | None:
        answer = _resolve_option(trial, action)
        if answer is None:
            return None
        return SceneResponse(
            index=index,
            kind=trial.kind,
            answer=answer,
            correct_answer=trial.correct_answer,
            correct=answer == trial.correct_answer,
            rt_ms=rt_ms,
        )

    def no_response(self, *, plan, trial: SceneQuestion, index, history, elapsed_ms) -> SceneResponse:
        return SceneResponse(
            index=index,
            kind=trial.kind,
            answer=None,
            correct_answer=trial.correct_answer,
            correct=False,
            rt_ms=None,
        )


class SceneScorer:
    def score(
        self,
        *,
        plan: SessionPlan,
        responses: Sequence[SceneResponse],
        config: SceneConfig,
        duration_s: float,
    ) -> SceneResult:
        correct = sum(1 for r in responses if r.correct)
        items = [r for r in responses if r.kind is QuestionKind.ITEM]
        spatial = [r for r in responses if r.kind is QuestionKind.SPATIAL]
        accuracy = ratio(correct, len(responses))
        element_count = len(plan.context)
        score = (
            round_half_up(correct * 10 * (1 + (config.difficulty - 1) * 0.1))
            + element_count * 5
            + round_half_up(accuracy * 100)
        )
        return SceneResult(
            score=score,
            accuracy=round2(accuracy),
            duration_s=round2(duration_s),
            element_count=element_count,
            question_count=len(plan.trials),
            correct_count=correct,
            error_count=len(responses) - correct,
            item_accuracy=round2(ratio(sum(1 for r in items if r.correct), len(items))),
            spatial_accuracy=round2(ratio(sum(1 for r in spatial if r.correct), len(spatial))),
            study_time_s=config.study_time_s,
        )


def _describe(plan: SessionPlan, trial: SceneQuestion | None) -> str:
    if trial is None:
        shown = ", ".join(f"{e.kind} ({e.region})" for e in plan.context)
        return f"Memorise the scene:\n{shown}"
    options = "  ".join(f"{i + 1}={o}" for i, o in enumerate(trial.options))
    return f"{trial.prompt}\n{options}"


SCENE_TASK = TrialTask(
    code="scene_recall",
    title="Scene Recall",
    generator=SceneGenerator(),
    classifier=SceneClassifier(),
    scorer=SceneScorer(),
    normalize=normalize_scene_config,
    auto_advance=True,
    study_phase=True,
    describe=_describe,
    input_hint="Type option 1-4 then Enter",
)


class SceneRecallEngine(TrialEngine):
    """Trial engine plus the study countdown."""

    def study_remaining_s(self) -> float | None:
        if self._phase is not Phase.STUDY or self._started_at_s is None:
            return None
        elapsed = self._clock.now() - self._started_at_s
        return max(0.0, self.config().study_time_s - elapsed)

    def update(self) -> None:
        remaining = self.study_remaining_s()
        if remaining is not None and remaining <= 0.0:
            self.begin_test()

    def elements(self) -> list[SceneElement]:
        return list(self.context())


def build_scene_recall_engine(
    *,
    clock: Clock,
    seed: int,
    config: SceneConfig | None = None,
    difficulty: int | None = None,
) -> SceneRecallEngine:
    if config is None:
        config = config_for_difficulty(1 if difficulty is None else difficulty)
    return SceneRecallEngine(task=SCENE_TASK, config=config, clock=clock, seed=seed)
