"""Random Sequence Balancer.

Produces shuffled label assignments whose counts follow a ratio. Only the
counts are deterministic; the order comes from the caller's RNG.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from .cognitive_core import SeededRng, clamp01, clamp_int, round_half_up

T = TypeVar("T")


def target_count(total: int, ratio: float) -> int:
    """Number of ``True`` labels for ``total`` slots at ``ratio``."""

    total = max(0, int(total))
    return clamp_int(round_half_up(total * clamp01(ratio)), 0, total)


def balance(total: int, ratio: float, rng: SeededRng) -> list[bool]:
    total = max(0, int(total))
    if total == 0:
        return []
    n_true = target_count(total, ratio)
    labels = [True] * n_true + [False] * (total - n_true)
    return rng.shuffle(labels)


def assign_categories(
    total: int,
    categories: Sequence[T],
    weights: Sequence[float],
    rng: SeededRng,
) -> list[T]:
    """Shuffled category labels whose counts follow ``weights``.

    Every category except the heaviest gets ``round(total * share)`` slots;
    the heaviest absorbs the rounding remainder.
    """

    total = max(0, int(total))
    if total == 0 or not categories:
        return []
    if len(weights) != len(categories):
        weights = [1.0] * len(categories)

    clean = [max(0.0, float(w)) for w in weights]
    weight_sum = sum(clean)
    if weight_sum <= 0.0:
        clean = [1.0] * len(categories)
        weight_sum = float(len(categories))

    majority = max(range(len(categories)), key=lambda i: clean[i])
    counts = [0] * len(categories)
    remaining = total
    for i, w in enumerate(clean):
        if i == majority:
            continue
        n = min(remaining, round_half_up(total * w / weight_sum))
        counts[i] = n
        remaining -= n
    counts[majority] = remaining

    labels: list[T] = []
    for category, n in zip(categories, counts):
        labels.extend([category] * n)
    return rng.shuffle(labels)
