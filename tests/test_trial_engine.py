from __future__ import annotations

from dataclasses import dataclass

from cogtrain.auditory_go_nogo import AuditoryConfig, build_auditory_engine
from cogtrain.cognitive_core import Phase, Progress
from cogtrain.nback import NBackConfig, build_nback_engine


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _engine(clock: FakeClock, trials: int = 4):
    return build_auditory_engine(clock=clock, seed=31, config=AuditoryConfig(trial_count=trials, target_ratio=0.5))


def test_nothing_is_accepted_before_start() -> None:
    engine = _engine(FakeClock())
    assert engine.phase is Phase.READY
    assert engine.respond(True) is None
    assert engine.advance() is False
    assert engine.responses() == []
    assert engine.progress() == Progress(current=0, total=4)


def test_lifecycle_runs_forward_to_complete() -> None:
    clock = FakeClock()
    engine = _engine(clock)
    assert engine.start() is True
    assert engine.start() is False
    assert engine.phase is Phase.RUNNING
    assert engine.progress() == Progress(current=1, total=4)

    assert engine.advance() is True
    assert engine.advance() is True
    assert engine.advance() is True
    assert engine.advance() is False
    assert engine.phase is Phase.COMPLETE
    assert engine.current_trial() is None
    assert engine.progress() == Progress(current=4, total=4)

    assert engine.respond(True) is None
    assert engine.advance() is False
    assert len(engine.responses()) == 4


def test_duration_is_frozen_at_completion() -> None:
    clock = FakeClock(t=10.0)
    engine = _engine(clock, trials=1)
    engine.start()
    clock.advance(2.5)
    engine.advance()
    clock.advance(100.0)
    assert engine.duration_s() == 2.5
    assert engine.calculate_result().duration_s == 2.5


def test_reset_returns_to_ready_with_fresh_plan() -> None:
    clock = FakeClock()
    engine = build_nback_engine(clock=clock, seed=6, config=NBackConfig(n_back=1, sequence_length=30))
    first = engine.trials()
    engine.start()
    engine.respond(True)
    engine.reset()

    assert engine.phase is Phase.READY
    assert engine.responses() == []
    assert engine.current_index() == 0
    assert len(engine.trials()) == 30
    # The RNG stream carries on, so the next plan differs.
    assert engine.trials() != first
    assert engine.start() is True


def test_reconfigure_applies_normalised_config() -> None:
    engine = _engine(FakeClock())
    engine.reconfigure(AuditoryConfig(trial_count=500, target_ratio=0.5))
    assert engine.config().trial_count == 60
    assert len(engine.trials()) == 60
    assert engine.phase is Phase.READY


def test_state_and_snapshot_reflect_engine() -> None:
    clock = FakeClock()
    engine = _engine(clock)
    snap = engine.snapshot()
    assert snap.phase is Phase.READY
    assert snap.prompt == "Press Enter to begin."

    assert engine.submit("") is True
    state = engine.state()
    assert state.phase is Phase.RUNNING
    assert state.cursor == 0
    assert state.started_at_s == 0.0
    assert engine.snapshot().payload == engine.trials()[0]

    assert engine.submit("banana") is False
    assert engine.submit("y") is True
    assert engine.state().cursor == 1

    while engine.submit(""):
        pass
    assert engine.snapshot().prompt.startswith("Results")
