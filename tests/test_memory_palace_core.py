from __future__ import annotations

from dataclasses import dataclass, replace

import pytest

from cogtrain.cognitive_core import Phase, SeededRng
from cogtrain.memory_palace import (
    ITEMS,
    PalaceConfig,
    adjust,
    build_memory_palace_engine,
    config_for_difficulty,
    generate_layout,
    normalize_palace_config,
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _in_test(clock: FakeClock, **overrides):
    cfg = PalaceConfig(room_count=2, items_per_room=3, distractor_count=2, **overrides)
    engine = build_memory_palace_engine(clock=clock, seed=77, config=cfg)
    engine.start()
    engine.begin_test()
    return engine


def test_layout_uses_distinct_items_and_anchors() -> None:
    cfg = PalaceConfig(room_count=3, items_per_room=4, distractor_count=3)
    rooms, placements, offered = generate_layout(cfg, SeededRng(5))
    assert len(rooms) == 3
    assert len({r.id for r in rooms}) == 3
    assert len(placements) == 12
    assert len({p.item for p in placements}) == 12
    for room in rooms:
        anchors = [p.anchor_id for p in placements if p.room_id == room.id]
        assert len(anchors) == 4
        assert len(set(anchors)) == 4
        assert set(anchors) <= set(room.anchor_ids())
    assert len(offered) == 15
    assert {p.item for p in placements} <= set(offered)
    assert set(offered) <= set(ITEMS)


def test_normalize_keeps_layout_within_catalogue() -> None:
    cfg = normalize_palace_config(PalaceConfig(room_count=4, items_per_room=5, distractor_count=4))
    assert cfg.items_per_room == 4
    assert cfg.distractor_count == 0
    cfg = normalize_palace_config(PalaceConfig(room_count=9, items_per_room=0, study_time_per_room_s=0))
    assert (cfg.room_count, cfg.items_per_room, cfg.study_time_per_room_s) == (4, 1, 1)


def test_difficulty_map_and_adjust() -> None:
    assert config_for_difficulty(1) == PalaceConfig(difficulty=1)
    top = config_for_difficulty(10)
    assert (top.room_count, top.items_per_room, top.study_time_per_room_s, top.distractor_count) == (3, 4, 4, 4)
    for d in range(1, 11):
        cfg = config_for_difficulty(d)
        assert cfg == normalize_palace_config(cfg)
        assert cfg.room_count * cfg.items_per_room + cfg.distractor_count <= len(ITEMS)

    cfg = PalaceConfig(difficulty=2, room_count=1, items_per_room=2)
    assert adjust(cfg, 0.9).items_per_room == 3
    full = PalaceConfig(difficulty=5, room_count=2, items_per_room=5)
    assert adjust(full, 0.9).room_count == 3
    assert adjust(cfg, 0.2) == cfg


def test_adjust_skips_steps_the_catalogue_clamps_away() -> None:
    cfg = config_for_difficulty(8)
    harder = adjust(cfg, 0.9)
    # More items or rooms would squeeze out distractors, so study time moves.
    assert harder == replace(cfg, study_time_per_room_s=5, difficulty=9)

    crowded = PalaceConfig(difficulty=8, room_count=4, items_per_room=5, study_time_per_room_s=6, distractor_count=3)
    out = adjust(crowded, 0.9)
    assert (out.room_count, out.items_per_room, out.study_time_per_room_s) == (4, 4, 5)
    assert out.difficulty == 9


def test_study_walks_rooms_on_timer_then_starts_test() -> None:
    clock = FakeClock()
    engine = build_memory_palace_engine(
        clock=clock, seed=3, config=PalaceConfig(room_count=2, study_time_per_room_s=5)
    )
    assert engine.current_room() is None
    engine.start()
    assert engine.phase is Phase.STUDY
    first = engine.current_room()
    assert engine.study_placements() == [p for p in engine.correct_placements() if p.room_id == first.id]

    clock.advance(5.0)
    engine.update()
    assert engine.current_room_index() == 1
    assert engine.phase is Phase.STUDY

    clock.advance(2.0)
    engine.update()
    assert engine.current_room_index() == 1

    clock.advance(3.0)
    engine.update()
    assert engine.phase is Phase.TEST
    assert engine.current_room_index() == 0
    assert engine.study_placements() == []


def test_place_item_enforces_one_item_per_anchor_and_one_anchor_per_item() -> None:
    engine = _in_test(FakeClock())
    room = engine.current_room()
    a, b = room.anchor_ids()[:2]
    x, y = engine.available_items()[:2]

    assert engine.place_item(room.id, a, x) is True
    assert engine.place_item(room.id, a, y) is True
    assert engine.item_at(room.id, a) == y
    assert engine.place_item(room.id, b, y) is True
    assert engine.item_at(room.id, a) is None
    assert engine.item_at(room.id, b) == y
    assert len(engine.user_placements()) == 1
    assert x in engine.unplaced_items() and y not in engine.unplaced_items()


def test_invalid_placements_are_refused() -> None:
    engine = _in_test(FakeClock())
    room = engine.current_room()
    anchor = room.anchor_ids()[0]
    item = engine.available_items()[0]
    assert engine.place_item("attic", anchor, item) is False
    assert engine.place_item(room.id, "ceiling", item) is False
    assert engine.place_item(room.id, anchor, "spaceship") is False
    assert engine.remove_item(room.id, anchor) is None


def test_remove_item_returns_what_was_there() -> None:
    engine = _in_test(FakeClock())
    room = engine.current_room()
    anchor = room.anchor_ids()[0]
    item = engine.available_items()[0]
    engine.place_item(room.id, anchor, item)
    assert engine.remove_item(room.id, anchor) == item
    assert engine.user_placements() == []


def test_placing_before_test_is_refused() -> None:
    engine = build_memory_palace_engine(clock=FakeClock(), seed=1)
    engine.start()
    room = engine.current_room()
    assert engine.place_item(room.id, room.anchor_ids()[0], engine.available_items()[0]) is False
    assert engine.complete() is False


def test_empty_test_scores_misses_only() -> None:
    clock = FakeClock()
    engine = _in_test(clock, difficulty=2)
    clock.advance(3.0)
    assert engine.complete() is True
    assert engine.complete() is False
    result = engine.calculate_result()
    assert result.correct_count == 0
    assert result.missed_count == 6
    assert result.wrong_count == 0
    assert result.duration_s == pytest.approx(3.0)
    # 2*10 + 2 rooms * 15
    assert result.score == 50
