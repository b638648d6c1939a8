from __future__ import annotations

from dataclasses import dataclass

from cogtrain.cognitive_core import Phase
from cogtrain.sequence_repeat import (
    TONES,
    SequenceRepeatConfig,
    Stage,
    build_sequence_repeat_engine,
    config_for_difficulty,
    normalize_sequence_repeat_config,
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _repeating(engine):
    engine.start()
    engine.finish_watching()
    return engine


def _wrong_sound(engine, expected: str) -> str:
    return next(s for s in engine.active_sounds() if s != expected)


def test_difficulty_map_edges() -> None:
    easy = config_for_difficulty(1)
    assert (easy.start_length, easy.max_length, easy.sound_count, easy.play_speed_ms, easy.lives) == (2, 13, 3, 800, 3)
    hard = config_for_difficulty(10)
    assert (hard.start_length, hard.max_length, hard.sound_count, hard.play_speed_ms, hard.lives) == (4, 22, 6, 440, 1)


def test_normalize_keeps_start_within_max() -> None:
    cfg = normalize_sequence_repeat_config(SequenceRepeatConfig(start_length=9, max_length=5, sound_count=99, lives=0))
    assert cfg.start_length == 5
    assert cfg.sound_count == len(TONES)
    assert cfg.lives == 1


def test_setup_picks_distinct_active_sounds() -> None:
    engine = build_sequence_repeat_engine(clock=FakeClock(), seed=3, config=SequenceRepeatConfig(sound_count=4))
    sounds = engine.active_sounds()
    assert len(sounds) == 4 == len(set(sounds))
    assert len(engine.sequence()) == 2
    assert set(engine.sequence()) <= set(sounds)
    assert engine.stage is Stage.WATCH


def test_input_only_while_repeating() -> None:
    engine = build_sequence_repeat_engine(clock=FakeClock(), seed=3)
    first = engine.sequence()[0]
    assert engine.input(first) is None
    engine.start()
    assert engine.input(first) is None
    engine.finish_watching()
    assert engine.finish_watching() is False
    assert engine.input("trumpet") is None
    result = engine.input(first)
    assert result is not None and result.correct and not result.round_complete


def test_correct_round_then_next_round_grows_by_one() -> None:
    engine = _repeating(build_sequence_repeat_engine(clock=FakeClock(), seed=12))
    seq = engine.sequence()
    for s in seq:
        result = engine.input(s)
    assert result.round_complete and result.correct
    assert engine.stage is Stage.FEEDBACK
    assert engine.last_round_correct() is True
    assert engine.highest_length() == 2

    engine2 = _repeating(build_sequence_repeat_engine(clock=FakeClock(), seed=12))
    for s in engine2.sequence():
        engine2.input(s)
    assert engine2.next_round() is True
    assert engine2.sequence()[:2] == seq
    assert len(engine2.sequence()) == 3
    assert engine2.current_round() == 2
    assert engine2.stage is Stage.WATCH
    assert engine2.last_round_correct() is None


def test_mistake_costs_a_life_and_retry_keeps_length() -> None:
    engine = _repeating(
        build_sequence_repeat_engine(clock=FakeClock(), seed=21, config=SequenceRepeatConfig(start_length=3, lives=2))
    )
    expected = engine.sequence()[0]
    result = engine.input(_wrong_sound(engine, expected))
    assert result is not None and not result.correct and result.round_complete and not result.complete
    assert engine.lives() == 1
    rounds = engine.rounds()
    assert len(rounds) == 1 and rounds[0].correct is False and rounds[0].length == 3


def test_retry_round_keeps_length_and_round_number() -> None:
    engine = _repeating(
        build_sequence_repeat_engine(clock=FakeClock(), seed=21, config=SequenceRepeatConfig(start_length=3, lives=2))
    )
    engine.input(_wrong_sound(engine, engine.sequence()[0]))
    assert engine.retry_round() is True
    assert len(engine.sequence()) == 3
    assert engine.current_round() == 1
    assert engine.stage is Stage.WATCH


def test_last_life_ends_session() -> None:
    engine = _repeating(
        build_sequence_repeat_engine(clock=FakeClock(), seed=8, config=SequenceRepeatConfig(lives=1))
    )
    result = engine.input(_wrong_sound(engine, engine.sequence()[0]))
    assert result is not None and result.complete
    assert engine.phase is Phase.COMPLETE
    assert engine.retry_round() is False
