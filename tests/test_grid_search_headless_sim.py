from __future__ import annotations

from dataclasses import dataclass

import pytest

from cogtrain.cognitive_core import Phase, SeededRng
from cogtrain.grid_search import GridSearchConfig, build_grid_search_engine, generate_grid


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_four_by_four_run_in_order_is_perfect() -> None:
    seed = 321
    clock = FakeClock()
    engine = build_grid_search_engine(
        clock=clock, seed=seed, config=GridSearchConfig(difficulty=4, grid_size=4, target_time_s=60)
    )
    assert engine.grid() == [list(row) for row in generate_grid(4, SeededRng(seed))]

    assert engine.start() is True
    for n in range(1, 17):
        clock.advance(0.5)
        res = engine.tap(n)
        assert res is not None and res.correct is True

    assert engine.is_complete()
    assert engine.phase is Phase.COMPLETE
    assert engine.tap(1) is None

    result = engine.calculate_result()
    assert result.correct_count == 16
    assert result.error_count == 0
    assert result.accuracy == pytest.approx(1.0)
    assert result.duration_s == pytest.approx(8.0)
    assert result.avg_tap_time_ms == 500
    assert result.score == 400 + 104


def test_scripted_run_with_errors_through_submit() -> None:
    clock = FakeClock()
    engine = build_grid_search_engine(clock=clock, seed=8, config=GridSearchConfig(grid_size=3, target_time_s=30))
    engine.submit("")
    for n in range(1, 10):
        clock.advance(1.0)
        if n == 4:
            assert engine.submit("7") is True
        assert engine.submit(str(n)) is True

    result = engine.calculate_result()
    assert engine.is_complete()
    assert result.correct_count == 9
    assert result.error_count == 1
    assert result.total_taps == 10
    assert result.accuracy == pytest.approx(0.9)
    assert result.duration_s == pytest.approx(9.0)
    # 3*100 + round((30 - 9) * 2) - 10
    assert result.score == 332
