from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum

from .cognitive_core import mean_or_zero, round2, round_half_up
from .persistence import TrainingRecord

TREND_WINDOW = 3
TREND_THRESHOLD = 0.1


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


@dataclass(frozen=True, slots=True)
class TaskStats:
    task_code: str
    sessions: int
    average_score: int
    average_accuracy: float
    best_score: int
    trend: Trend


@dataclass(frozen=True, slots=True)
class TrainingStats:
    total_sessions: int
    total_duration_s: float
    streak_days: int
    tasks: dict[str, TaskStats] = field(default_factory=dict)


def record_date(record: TrainingRecord) -> date | None:
    try:
        return date.fromisoformat(record.created_at_utc[:10])
    except ValueError:
        return None


def score_trend(scores_newest_first: Sequence[float]) -> Trend:
    """Latest window against the one before it; a 10% move counts."""

    recent = scores_newest_first[:TREND_WINDOW]
    previous = scores_newest_first[TREND_WINDOW : 2 * TREND_WINDOW]
    if not recent or not previous:
        return Trend.STABLE
    recent_avg = mean_or_zero(recent)
    previous_avg = mean_or_zero(previous)
    if previous_avg <= 0:
        return Trend.IMPROVING if recent_avg > 0 else Trend.STABLE
    change = (recent_avg - previous_avg) / previous_avg
    if change > TREND_THRESHOLD:
        return Trend.IMPROVING
    if change < -TREND_THRESHOLD:
        return Trend.DECLINING
    return Trend.STABLE


def streak_days(days: set[date], *, today: date) -> int:
    """Consecutive training days ending today, or yesterday if today is empty."""

    cursor = today if today in days else today - timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def calculate_stats(records: Sequence[TrainingRecord], *, today: date) -> TrainingStats:
    ordered = sorted(records, key=lambda r: r.created_at_utc, reverse=True)

    by_task: dict[str, list[TrainingRecord]] = {}
    for record in ordered:
        by_task.setdefault(record.result.task_code, []).append(record)

    tasks: dict[str, TaskStats] = {}
    for code, task_records in by_task.items():
        scores = [r.result.score for r in task_records]
        tasks[code] = TaskStats(
            task_code=code,
            sessions=len(task_records),
            average_score=round_half_up(mean_or_zero(scores)),
            average_accuracy=round2(mean_or_zero(r.result.accuracy for r in task_records)),
            best_score=max(scores),
            trend=score_trend(scores),
        )

    days = {d for d in (record_date(r) for r in ordered) if d is not None}
    return TrainingStats(
        total_sessions=len(ordered),
        total_duration_s=round2(sum(r.result.duration_s for r in ordered)),
        streak_days=streak_days(days, today=today),
        tasks=tasks,
    )
