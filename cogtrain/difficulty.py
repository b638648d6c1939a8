"""Adaptive difficulty controller.

Every task describes its hardness ordering as a tuple of ``Dimension``s and
its adjustment policy as ordered ``Step``s. ``step_config`` applies the first
step that survives normalization, so an adjusted config is strictly harder (or
easier) along the task's own ordering, or unchanged at the bounds.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any, TypeVar

from loguru import logger

from .cognitive_core import clamp_difficulty, round2, round_half_up

C = TypeVar("C")

HARDER_ABOVE = 0.8
EASIER_BELOW = 0.5


@dataclass(frozen=True, slots=True)
class Dimension:
    """One config field with its direction of increasing hardness."""

    name: str
    harder: int = 1  # +1: larger is harder, -1: smaller is harder
    key: Callable[[Any], float] | None = None

    def hardness(self, config: object) -> float:
        value = getattr(config, self.name)
        raw = self.key(value) if self.key is not None else float(value)
        return raw * self.harder


def is_harder(dimensions: Sequence[Dimension], candidate: object, baseline: object) -> bool:
    """True when ``candidate`` is no easier anywhere and harder somewhere."""

    strictly = False
    for dim in dimensions:
        a = dim.hardness(candidate)
        b = dim.hardness(baseline)
        if a < b - 1e-9:
            return False
        if a > b + 1e-9:
            strictly = True
    return strictly


def is_easier(dimensions: Sequence[Dimension], candidate: object, baseline: object) -> bool:
    return is_harder(dimensions, baseline, candidate)


@dataclass(frozen=True, slots=True)
class Step:
    name: str
    delta: float  # signed change of one move towards harder
    hard_limit: float
    easy_limit: float
    decimal: bool = False


def accuracy_direction(accuracy: float) -> int:
    """+1 to make harder, -1 to make easier, 0 to keep."""

    if accuracy > HARDER_ABOVE:
        return 1
    if accuracy < EASIER_BELOW:
        return -1
    return 0


def _move(value: Any, step: Step, *, harder: bool) -> Any:
    as_bool = isinstance(value, bool)
    current = float(value)
    delta = step.delta if harder else -step.delta
    bound = step.hard_limit if harder else step.easy_limit

    if delta > 0:
        if current >= bound:
            return value
        moved = min(current + delta, bound)
    else:
        if current <= bound:
            return value
        moved = max(current + delta, bound)

    if as_bool:
        return moved >= 0.5
    if step.decimal:
        return round2(moved)
    return round_half_up(moved)


def _moved_towards(
    candidate: C,
    baseline: C,
    *,
    harder: bool,
    dimensions: Sequence[Dimension] | None,
) -> bool:
    if dimensions is None:
        return candidate != baseline
    if harder:
        return is_harder(dimensions, candidate, baseline)
    return is_easier(dimensions, candidate, baseline)


def step_config(
    config: C,
    *,
    harder: bool,
    steps: Sequence[Step],
    easier_steps: Sequence[Step] | None = None,
    normalize: Callable[[C], C] | None = None,
    dimensions: Sequence[Dimension] | None = None,
) -> C:
    """Apply the first step that still changes the normalized config.

    A step whose move is clamped away by ``normalize``, or that would trade
    one dimension against another, is skipped. ``difficulty`` only moves
    together with a real change.
    """

    base = normalize(config) if normalize is not None else config
    order = steps if harder or easier_steps is None else easier_steps
    for step in order:
        current = getattr(base, step.name)
        moved = _move(current, step, harder=harder)
        if moved == current:
            continue
        candidate = replace(base, **{step.name: moved})  # type: ignore[type-var]
        if normalize is not None:
            candidate = normalize(candidate)
        if not _moved_towards(candidate, base, harder=harder, dimensions=dimensions):
            continue
        difficulty = clamp_difficulty(getattr(base, "difficulty") + (1 if harder else -1))
        logger.debug(
            "difficulty step {} {}: {} -> {} (difficulty {})",
            "harder" if harder else "easier",
            step.name,
            current,
            getattr(candidate, step.name),
            difficulty,
        )
        return replace(candidate, difficulty=difficulty)  # type: ignore[type-var]
    return base


def adjust_with(
    config: C,
    accuracy: float,
    *,
    steps: Sequence[Step],
    easier_steps: Sequence[Step] | None = None,
    normalize: Callable[[C], C] | None = None,
    dimensions: Sequence[Dimension] | None = None,
) -> C:
    direction = accuracy_direction(accuracy)
    if direction == 0:
        return config
    return step_config(
        config,
        harder=direction > 0,
        steps=steps,
        easier_steps=easier_steps,
        normalize=normalize,
        dimensions=dimensions,
    )
