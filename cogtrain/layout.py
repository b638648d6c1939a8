from __future__ import annotations

import math
from dataclasses import dataclass

from .cognitive_core import SeededRng


@dataclass(frozen=True, slots=True)
class Point:
    """Normalised board coordinate; (0, 0) is the top-left corner."""

    x: float
    y: float


def distance(a: Point, b: Point) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def scatter_points(
    count: int,
    rng: SeededRng,
    *,
    min_distance: float,
    low: float = 0.1,
    high: float = 0.9,
    max_attempts: int = 50,
) -> list[Point]:
    """Sample ``count`` points keeping a minimum pairwise distance.

    Each point gets at most ``max_attempts`` candidates; when none fits the
    last candidate is accepted so generation always terminates.
    """

    points: list[Point] = []
    attempts = max(1, int(max_attempts))
    for _ in range(max(0, int(count))):
        candidate = Point(rng.uniform(low, high), rng.uniform(low, high))
        for _ in range(attempts - 1):
            if all(distance(candidate, p) >= min_distance for p in points):
                break
            candidate = Point(rng.uniform(low, high), rng.uniform(low, high))
        points.append(candidate)
    return points


def _band(v: float, low: str, mid: str, high: str) -> str:
    return low if v < 0.33 else high if v > 0.66 else mid


def region_name(point: Point) -> str:
    """3x3 region label, e.g. ``top-left`` or ``center``."""

    col = _band(point.x, "left", "center", "right")
    row = _band(point.y, "top", "middle", "bottom")
    if row == "middle":
        return "center" if col == "center" else col
    if col == "center":
        return row
    return f"{row}-{col}"


REGION_NAMES: tuple[str, ...] = (
    "top-left",
    "top",
    "top-right",
    "left",
    "center",
    "right",
    "bottom-left",
    "bottom",
    "bottom-right",
)
