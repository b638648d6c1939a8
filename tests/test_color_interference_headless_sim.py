from __future__ import annotations

from dataclasses import dataclass

import pytest

from cogtrain.cognitive_core import SeededRng
from cogtrain.color_interference import (
    ColorInterferenceConfig,
    ColorInterferenceGenerator,
    build_color_interference_engine,
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_headless_scripted_run_all_correct() -> None:
    seed = 2024
    cfg = ColorInterferenceConfig(difficulty=3, trial_count=10, congruent_ratio=0.5)
    clock = FakeClock()
    engine = build_color_interference_engine(clock=clock, seed=seed, config=cfg)
    mirror = ColorInterferenceGenerator().generate(cfg, SeededRng(seed))
    assert engine.trials() == list(mirror.trials)

    engine.start()
    for trial in mirror.trials:
        clock.advance(0.4)
        assert engine.submit(trial.ink.lower()) is True

    assert engine.is_complete()
    result = engine.calculate_result()
    assert result.total_trials == 10
    assert result.correct_count == 10
    assert result.accuracy == pytest.approx(1.0)
    assert result.avg_reaction_time_ms == 400
    assert result.congruent_accuracy == pytest.approx(1.0)
    assert result.incongruent_accuracy == pytest.approx(1.0)
    # 10*10 + (1000 - 400) / 10 + 5 incongruent * 5
    assert result.score == 185
    assert result.duration_s == pytest.approx(4.0)


def test_headless_scripted_run_with_word_reading_errors() -> None:
    seed = 77
    cfg = ColorInterferenceConfig(trial_count=10, congruent_ratio=0.5)
    clock = FakeClock()
    engine = build_color_interference_engine(clock=clock, seed=seed, config=cfg)
    mirror = ColorInterferenceGenerator().generate(cfg, SeededRng(seed))

    engine.start()
    for trial in mirror.trials:
        clock.advance(0.5)
        # Reading the word instead of naming the ink fails every incongruent trial.
        engine.submit(trial.word)

    result = engine.calculate_result()
    assert result.correct_count == 5
    assert result.accuracy == pytest.approx(0.5)
    assert result.congruent_accuracy == pytest.approx(1.0)
    assert result.incongruent_accuracy == pytest.approx(0.0)
    assert result.score == 5 * 10 + 50
