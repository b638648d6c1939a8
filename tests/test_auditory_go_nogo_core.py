from __future__ import annotations

from dataclasses import dataclass

import pytest

from cogtrain.auditory_go_nogo import (
    SOUNDS,
    AuditoryConfig,
    AuditoryGenerator,
    AuditoryResponse,
    AuditoryScorer,
    adjust,
    build_auditory_engine,
    config_for_difficulty,
    normalize_auditory_config,
)
from cogtrain.cognitive_core import SeededRng, round_half_up
from cogtrain.signal_detection import Outcome
from cogtrain.trial_engine import SessionPlan


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_targets_follow_ratio_and_use_one_sound() -> None:
    cfg = AuditoryConfig(trial_count=20, target_ratio=0.4)
    plan = AuditoryGenerator().generate(cfg, SeededRng(8))
    target = plan.context
    assert target in SOUNDS
    assert sum(1 for t in plan.trials if t.is_target) == 8
    for t in plan.trials:
        assert (t.sound == target) is t.is_target


def test_explicit_target_sound_is_honoured() -> None:
    cfg = AuditoryConfig(trial_count=10, target_sound="seven")
    plan = AuditoryGenerator().generate(cfg, SeededRng(1))
    assert plan.context == "seven"


def test_unknown_target_sound_is_dropped() -> None:
    assert normalize_auditory_config(AuditoryConfig(target_sound="ten")).target_sound is None


def test_difficulty_map_and_adjust() -> None:
    low = config_for_difficulty(1)
    high = config_for_difficulty(10)
    assert (low.trial_count, low.inter_stimulus_ms) == (15, 1500)
    assert high.trial_count == 30
    assert high.inter_stimulus_ms == 1500 - 702
    assert high.target_ratio == pytest.approx(0.2)

    cfg = AuditoryConfig(difficulty=2, inter_stimulus_ms=1000)
    assert adjust(cfg, 0.9).inter_stimulus_ms == 900
    assert adjust(cfg, 0.3).inter_stimulus_ms == 1100


def test_go_response_on_non_target_is_false_alarm() -> None:
    clock = FakeClock()
    engine = build_auditory_engine(clock=clock, seed=12, config=AuditoryConfig(trial_count=10, target_ratio=0.4))
    engine.start()
    trials = engine.trials()
    index = next(i for i, t in enumerate(trials) if not t.is_target)
    for _ in range(index):
        engine.advance()
    clock.advance(0.25)
    response = engine.respond(True)
    assert response is not None and response.false_alarm
    assert response.rt_ms == pytest.approx(250.0)


def test_speed_bonus_uses_unrounded_mean_reaction_time() -> None:
    responses = [
        AuditoryResponse(index=0, sound="five", is_target=True, responded=True, outcome=Outcome.HIT, rt_ms=995.0),
        AuditoryResponse(index=1, sound="five", is_target=True, responded=True, outcome=Outcome.HIT, rt_ms=995.8),
        AuditoryResponse(
            index=2, sound="two", is_target=False, responded=False, outcome=Outcome.CORRECT_REJECTION, rt_ms=None
        ),
    ]
    result = AuditoryScorer().score(
        plan=SessionPlan(trials=(), context="five"),
        responses=responses,
        config=AuditoryConfig(),
        duration_s=3.0,
    )
    assert result.avg_reaction_time_ms == 995
    # (1000 - 995.4) / 10 rounds to 0; the rounded 995 would have given 1.
    assert result.score == 30 + max(0, round_half_up(result.d_prime * 20))
