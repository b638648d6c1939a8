from __future__ import annotations

from datetime import date

import pytest

from cogtrain.persistence import TrainingRecord
from cogtrain.results import TrainingResult
from cogtrain.stats import Trend, calculate_stats, score_trend, streak_days


def _record(day: str, code: str, score: int, *, accuracy: float = 0.5, duration_s: float = 60.0) -> TrainingRecord:
    result = TrainingResult(
        task_code=code, difficulty=1, seed=1, score=score, accuracy=accuracy, duration_s=duration_s
    )
    return TrainingRecord(id=f"{code}-{day}-{score}", created_at_utc=f"{day}T09:00:00Z", result=result)


def test_score_trend() -> None:
    assert score_trend([120, 110, 130, 90, 100, 95]) is Trend.IMPROVING
    assert score_trend([90, 100, 95, 120, 110, 130]) is Trend.DECLINING
    assert score_trend([100, 101, 99, 100, 100, 100]) is Trend.STABLE
    assert score_trend([100, 50, 25]) is Trend.STABLE
    assert score_trend([10, 0, 0, 0]) is Trend.IMPROVING


def test_streak_days() -> None:
    today = date(2026, 5, 10)
    assert streak_days({date(2026, 5, 10), date(2026, 5, 9), date(2026, 5, 7)}, today=today) == 2
    # Not yet trained today: the streak still counts up to yesterday.
    assert streak_days({date(2026, 5, 9), date(2026, 5, 8)}, today=today) == 2
    assert streak_days({date(2026, 5, 7)}, today=today) == 0
    assert streak_days(set(), today=today) == 0


def test_calculate_stats_groups_by_task() -> None:
    records = [
        _record("2026-05-08", "nback", 100, accuracy=0.6),
        _record("2026-05-09", "nback", 151, accuracy=0.9),
        _record("2026-05-10", "grid_search", 300, duration_s=30.5),
    ]
    stats = calculate_stats(records, today=date(2026, 5, 10))
    assert stats.total_sessions == 3
    assert stats.total_duration_s == pytest.approx(150.5)
    assert stats.streak_days == 3

    nback = stats.tasks["nback"]
    assert nback.sessions == 2
    assert nback.average_score == 126
    assert nback.average_accuracy == pytest.approx(0.75)
    assert nback.best_score == 151
    assert nback.trend is Trend.STABLE
    assert stats.tasks["grid_search"].best_score == 300


def test_empty_history() -> None:
    stats = calculate_stats([], today=date(2026, 5, 10))
    assert stats.total_sessions == 0
    assert stats.streak_days == 0
    assert stats.tasks == {}
