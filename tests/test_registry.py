from __future__ import annotations

from dataclasses import dataclass

import pytest

from cogtrain.cognitive_core import Phase
from cogtrain.difficulty import is_easier, is_harder
from cogtrain.registry import TASKS, get_task, task_codes


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t


def test_every_task_is_registered_once() -> None:
    codes = task_codes()
    assert len(codes) == 11
    assert len(set(codes)) == 11
    assert get_task("nback") is not None
    assert get_task("nback").title == "N-Back"
    assert get_task("crossword") is None


def _built_config(task, difficulty: int):
    return task.build(clock=FakeClock(), seed=7, difficulty=difficulty).config()


@pytest.mark.parametrize("task", TASKS, ids=lambda t: t.code)
def test_difficulty_levels_get_strictly_harder(task) -> None:
    configs = [_built_config(task, d) for d in range(1, 11)]
    for d, (lower, upper) in enumerate(zip(configs, configs[1:]), start=1):
        assert is_harder(task.dimensions, upper, lower), d


@pytest.mark.parametrize("task", TASKS, ids=lambda t: t.code)
def test_adjust_moves_one_way_only(task) -> None:
    cfg = _built_config(task, 5)
    assert is_harder(task.dimensions, task.adjust(cfg, 0.95), cfg)
    assert is_easier(task.dimensions, task.adjust(cfg, 0.3), cfg)
    assert task.adjust(cfg, 0.65) == cfg


@pytest.mark.parametrize("task", TASKS, ids=lambda t: t.code)
def test_adjust_never_moves_difficulty_without_a_real_change(task) -> None:
    for d in range(1, 11):
        cfg = _built_config(task, d)
        up = task.adjust(cfg, 0.95)
        assert up == cfg or is_harder(task.dimensions, up, cfg), d
        down = task.adjust(cfg, 0.3)
        assert down == cfg or is_easier(task.dimensions, down, cfg), d


@pytest.mark.parametrize("task", TASKS, ids=lambda t: t.code)
def test_every_engine_builds_and_starts(task) -> None:
    engine = task.build(clock=FakeClock(), seed=123, difficulty=3)
    assert engine.config().difficulty == 3
    snap = engine.snapshot()
    assert snap.phase is Phase.READY
    assert snap.title
    assert engine.submit("") is True
    assert engine.snapshot().phase is not Phase.READY
    assert not engine.is_complete()
