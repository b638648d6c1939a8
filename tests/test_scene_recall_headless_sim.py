from __future__ import annotations

from dataclasses import dataclass

import pytest

from cogtrain.cognitive_core import Phase, SeededRng
from cogtrain.scene_recall import SceneConfig, SceneGenerator, TestType, build_scene_recall_engine


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_study_then_answer_everything_right() -> None:
    seed = 31337
    cfg = SceneConfig(difficulty=5, element_count=4, study_time_s=10, test_type=TestType.SPATIAL)
    clock = FakeClock()
    engine = build_scene_recall_engine(clock=clock, seed=seed, config=cfg)
    mirror = SceneGenerator().generate(cfg, SeededRng(seed))
    assert engine.elements() == list(mirror.context)
    assert engine.trials() == list(mirror.trials)

    assert engine.submit("") is True
    assert engine.phase is Phase.STUDY
    clock.advance(10.0)
    engine.update()
    assert engine.phase is Phase.TEST

    for q in mirror.trials:
        clock.advance(1.5)
        assert engine.submit(str(q.options.index(q.correct_answer) + 1)) is True

    assert engine.is_complete()
    result = engine.calculate_result()
    assert result.correct_count == 4
    assert result.accuracy == pytest.approx(1.0)
    assert result.spatial_accuracy == pytest.approx(1.0)
    assert result.item_accuracy == pytest.approx(0.0)
    # round(4 * 10 * 1.4) + 4*5 + 100
    assert result.score == 176
    assert result.duration_s == pytest.approx(16.0)


def test_answers_by_name_and_a_miss() -> None:
    seed = 2
    cfg = SceneConfig(difficulty=1, element_count=3, test_type=TestType.ITEM)
    clock = FakeClock()
    engine = build_scene_recall_engine(clock=clock, seed=seed, config=cfg)
    mirror = SceneGenerator().generate(cfg, SeededRng(seed))

    engine.submit("")
    assert engine.submit("") is True
    assert engine.phase is Phase.TEST

    first, second, _ = mirror.trials
    assert engine.submit(first.correct_answer.upper()) is True
    wrong = next(o for o in second.options if o != second.correct_answer)
    assert engine.submit(wrong) is True
    assert engine.submit("") is True

    result = engine.calculate_result()
    assert engine.is_complete()
    assert result.correct_count == 1
    assert result.error_count == 2
    # round(1*10*1.0) + 3*5 + round(33.33)
    assert result.score == 10 + 15 + 33
