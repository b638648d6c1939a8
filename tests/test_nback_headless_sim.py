from __future__ import annotations

from dataclasses import dataclass

import pytest

from cogtrain.cognitive_core import SeededRng
from cogtrain.nback import NBackConfig, NBackGenerator, build_nback_engine


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_perfect_two_back_run() -> None:
    seed = 4242
    cfg = NBackConfig(difficulty=4, n_back=2, sequence_length=12, target_ratio=0.3)
    clock = FakeClock()
    engine = build_nback_engine(clock=clock, seed=seed, config=cfg)
    mirror = NBackGenerator().generate(cfg, SeededRng(seed)).trials
    assert engine.trials() == list(mirror)

    engine.start()
    for trial in mirror:
        clock.advance(0.6)
        assert engine.submit("y" if trial.is_target else "") is True

    assert engine.is_complete()
    result = engine.calculate_result()
    assert result.hits == 3
    assert result.correct_rejections == 9
    assert result.misses == 0 and result.false_alarms == 0
    assert result.accuracy == pytest.approx(1.0)
    assert result.hit_rate == pytest.approx(1.0)
    assert result.d_prime == pytest.approx(4.65)
    assert result.avg_reaction_time_ms == 600
    # 12 correct * 10 * n + round(4.65 * 20)
    assert result.score == 240 + 93


def test_always_pressing_gives_zero_sensitivity() -> None:
    seed = 11
    cfg = NBackConfig(n_back=1, sequence_length=10, target_ratio=0.3)
    clock = FakeClock()
    engine = build_nback_engine(clock=clock, seed=seed, config=cfg)

    engine.start()
    for _ in range(10):
        clock.advance(0.5)
        engine.submit("y")

    result = engine.calculate_result()
    assert result.hits == 3
    assert result.false_alarms == 7
    assert result.d_prime == pytest.approx(0.0)
    assert result.accuracy == pytest.approx(0.3)
    assert result.score == 30
