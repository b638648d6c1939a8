from __future__ import annotations

from dataclasses import dataclass

from cogtrain.cognitive_core import Phase, SeededRng
from cogtrain.spatial_span import (
    BLOCK_COUNT,
    SpatialSpanConfig,
    SpatialSpanGenerator,
    adjust,
    build_spatial_span_engine,
    config_for_difficulty,
    generate_block_sequence,
    generate_board,
    has_repeats,
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_board_has_nine_blocks_inside_margins() -> None:
    board = generate_board(SeededRng(3))
    assert [b.id for b in board] == list(range(1, BLOCK_COUNT + 1))
    for block in board:
        assert 0.08 <= block.position.x <= 0.92
        assert 0.08 <= block.position.y <= 0.92


def test_block_sequences_never_repeat_consecutively() -> None:
    rng = SeededRng(17)
    for length in range(1, 10):
        for _ in range(20):
            seq = generate_block_sequence(length, rng)
            assert len(seq) == length
            assert all(1 <= b <= BLOCK_COUNT for b in seq)
            assert not has_repeats(seq)


def test_plan_has_two_rounds_per_length() -> None:
    cfg = SpatialSpanConfig(start_length=3, max_length=5)
    rounds = SpatialSpanGenerator().generate(cfg, SeededRng(1)).trials
    assert [r.length for r in rounds] == [3, 3, 4, 4, 5, 5]
    assert all(r.expected == r.sequence for r in rounds)


def test_reverse_mode_expects_backwards_order() -> None:
    cfg = SpatialSpanConfig(start_length=4, max_length=4, is_reverse=True)
    rounds = SpatialSpanGenerator().generate(cfg, SeededRng(1)).trials
    for r in rounds:
        assert r.expected == tuple(reversed(r.sequence))


def test_difficulty_map() -> None:
    assert config_for_difficulty(1) == SpatialSpanConfig(difficulty=1)
    d7 = config_for_difficulty(7)
    assert d7.is_reverse is True
    assert d7.start_length == 3
    d10 = config_for_difficulty(10)
    assert (d10.start_length, d10.display_ms, d10.interval_ms) == (4, 550, 275)


def test_adjust_lengthens_then_speeds_up() -> None:
    cfg = SpatialSpanConfig(difficulty=3, start_length=2, display_ms=900)
    assert adjust(cfg, 0.9).start_length == 3
    maxed = SpatialSpanConfig(difficulty=8, start_length=5, display_ms=900)
    assert adjust(maxed, 0.9).display_ms == 800
    assert adjust(cfg, 0.2).display_ms == 1000


def test_adjust_speeds_up_when_max_length_caps_the_start_length() -> None:
    capped = SpatialSpanConfig(difficulty=5, start_length=3, max_length=3, display_ms=900)
    harder = adjust(capped, 0.9)
    assert (harder.start_length, harder.display_ms, harder.difficulty) == (3, 800, 6)

    stuck = SpatialSpanConfig(difficulty=5, start_length=3, max_length=3, display_ms=400)
    assert adjust(stuck, 0.9) == stuck


def test_text_answers_accept_several_formats() -> None:
    clock = FakeClock()
    engine = build_spatial_span_engine(clock=clock, seed=2, config=SpatialSpanConfig(start_length=3, max_length=3))
    engine.start()
    expected = engine.current_trial().expected
    joined = "".join(str(b) for b in expected)
    assert engine.submit("x y z") is False
    assert engine.submit(joined) is True
    assert engine.responses()[0].correct is True

    expected = engine.current_trial().expected
    assert engine.submit(", ".join(str(b) for b in expected)) is True
    assert engine.is_complete()


def test_taps_outside_board_or_before_start_are_ignored() -> None:
    engine = build_spatial_span_engine(clock=FakeClock(), seed=2)
    assert engine.tap(1) is None
    engine.start()
    assert engine.tap(0) is None
    assert engine.tap(10) is None
    assert engine.tapped() == []


def test_wrong_tap_submits_partial_answer_immediately() -> None:
    engine = build_spatial_span_engine(clock=FakeClock(), seed=5, config=SpatialSpanConfig(start_length=4))
    engine.start()
    expected = engine.current_trial().expected
    wrong = 1 if expected[0] != 1 else 2
    tap = engine.tap(wrong)
    assert tap is not None
    assert tap.correct is False and tap.complete is True
    (response,) = engine.responses()
    assert response.answer == (wrong,)
    assert response.correct is False
    assert engine.current_index() == 1
    assert engine.tapped() == []


def test_reset_clears_tap_buffer() -> None:
    engine = build_spatial_span_engine(clock=FakeClock(), seed=5, config=SpatialSpanConfig(start_length=4))
    engine.start()
    engine.tap(engine.current_trial().expected[0])
    assert len(engine.tapped()) == 1
    engine.reset()
    assert engine.tapped() == []
    assert engine.phase is Phase.READY
