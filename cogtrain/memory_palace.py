"""Memory palace placement.

Study: the player walks through the session's rooms, each showing items on
named anchors. Test: the player puts the items back (plus any distractors
offered) onto the anchors, room by room, then completes the session.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .clock import Clock
from .cognitive_core import (
    Phase,
    Progress,
    SeededRng,
    SessionSnapshot,
    clamp_difficulty,
    clamp_int,
    ratio,
    round2,
    round_half_up,
)
from .difficulty import Dimension, Step, adjust_with
from .layout import Point, scatter_points
from .session import SessionBase

ROOM_LAYOUTS: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("living_room", "Living room", ("sofa", "tv_stand", "coffee_table", "windowsill", "shelf", "doorway")),
    ("kitchen", "Kitchen", ("stove", "fridge", "sink", "counter", "cupboard", "dining_table")),
    ("study", "Study", ("desk", "bookcase", "chair", "plant", "floor_lamp", "rug")),
    ("bedroom", "Bedroom", ("bed", "nightstand", "wardrobe", "mirror", "window", "carpet")),
)

ITEMS: tuple[str, ...] = (
    "apple",
    "key",
    "book",
    "cup",
    "clock",
    "flower",
    "lamp",
    "phone",
    "glasses",
    "wallet",
    "umbrella",
    "camera",
    "hat",
    "shoe",
    "ball",
    "candle",
)

ANCHORS_PER_ROOM = 6
MIN_ANCHOR_DISTANCE = 0.2


@dataclass(frozen=True, slots=True)
class PalaceConfig:
    difficulty: int = 1
    room_count: int = 1
    items_per_room: int = 2
    study_time_per_room_s: int = 13
    distractor_count: int = 0


@dataclass(frozen=True, slots=True)
class Anchor:
    id: str
    position: Point


@dataclass(frozen=True, slots=True)
class Room:
    id: str
    name: str
    anchors: tuple[Anchor, ...]

    def anchor_ids(self) -> tuple[str, ...]:
        return tuple(a.id for a in self.anchors)


@dataclass(frozen=True, slots=True)
class Placement:
    room_id: str
    anchor_id: str
    item: str


@dataclass(frozen=True, slots=True)
class RoomResult:
    room_id: str
    room_name: str
    correct_count: int
    total_count: int


@dataclass(frozen=True, slots=True)
class PalaceState:
    phase: Phase
    rooms: tuple[Room, ...]
    correct_placements: tuple[Placement, ...]
    user_placements: tuple[Placement, ...]
    available_items: tuple[str, ...]
    current_room_index: int


@dataclass(frozen=True, slots=True)
class PalaceResult:
    score: int
    accuracy: float
    duration_s: float
    room_count: int
    total_items: int
    correct_count: int
    wrong_count: int
    missed_count: int
    room_results: tuple[RoomResult, ...]


DIMENSIONS = (
    Dimension("room_count"),
    Dimension("items_per_room"),
    Dimension("study_time_per_room_s", harder=-1),
    Dimension("distractor_count"),
)

HARDER_STEPS = (
    Step("items_per_room", 1, hard_limit=5, easy_limit=2),
    Step("room_count", 1, hard_limit=len(ROOM_LAYOUTS), easy_limit=1),
    Step("study_time_per_room_s", -1, hard_limit=4, easy_limit=13),
)


def normalize_palace_config(config: PalaceConfig) -> PalaceConfig:
    room_count = clamp_int(int(config.room_count), 1, len(ROOM_LAYOUTS))
    # Never more placed items than the catalogue holds.
    items_per_room = clamp_int(int(config.items_per_room), 1, min(ANCHORS_PER_ROOM, len(ITEMS) // room_count))
    spare = len(ITEMS) - room_count * items_per_room
    return replace(
        config,
        difficulty=clamp_difficulty(config.difficulty),
        room_count=room_count,
        items_per_room=items_per_room,
        study_time_per_room_s=clamp_int(int(config.study_time_per_room_s), 1, 120),
        distractor_count=clamp_int(int(config.distractor_count), 0, spare),
    )


def config_for_difficulty(difficulty: int) -> PalaceConfig:
    d = clamp_difficulty(difficulty)
    if d <= 2:
        rooms = 1
    elif d <= 5:
        rooms = 2
    else:
        rooms = 3
    # rooms*items + distractors stays within the catalogue at every level.
    return normalize_palace_config(
        PalaceConfig(
            difficulty=d,
            room_count=rooms,
            items_per_room=min(4, 2 + (d - 1) // 3),
            study_time_per_room_s=14 - d,
            distractor_count=min(4, (d - 1) // 2),
        )
    )


def adjust(config: PalaceConfig, accuracy: float) -> PalaceConfig:
    return adjust_with(
        config,
        accuracy,
        steps=HARDER_STEPS,
        normalize=normalize_palace_config,
        dimensions=DIMENSIONS,
    )


def generate_rooms(count: int, rng: SeededRng) -> tuple[Room, ...]:
    rooms: list[Room] = []
    for room_id, name, anchor_ids in rng.sample(ROOM_LAYOUTS, count):
        points = scatter_points(len(anchor_ids), rng, min_distance=MIN_ANCHOR_DISTANCE)
        anchors = tuple(Anchor(id=a, position=p) for a, p in zip(anchor_ids, points))
        rooms.append(Room(id=room_id, name=name, anchors=anchors))
    return tuple(rooms)


def generate_layout(
    config: PalaceConfig, rng: SeededRng
) -> tuple[tuple[Room, ...], tuple[Placement, ...], tuple[str, ...]]:
    """Rooms, the placements to remember and the items offered in the test."""

    rooms = generate_rooms(config.room_count, rng)
    pool = rng.shuffle(ITEMS)
    placements: list[Placement] = []
    for room in rooms:
        for anchor_id in rng.sample(room.anchor_ids(), config.items_per_room):
            placements.append(Placement(room_id=room.id, anchor_id=anchor_id, item=pool[len(placements)]))
    used = len(placements)
    distractors = pool[used : used + config.distractor_count]
    offered = rng.shuffle([p.item for p in placements] + distractors)
    return rooms, tuple(placements), tuple(offered)


class MemoryPalaceEngine(SessionBase):
    code = "memory_palace"
    title = "Memory Palace"

    def __init__(self, *, config: PalaceConfig, clock: Clock, seed: int) -> None:
        super().__init__(clock=clock, seed=seed)
        self._config = normalize_palace_config(config)
        self._generate()

    def _generate(self) -> None:
        self._rooms, self._answers, self._available = generate_layout(self._config, self._rng)
        self._placed: list[Placement] = []
        self._room_index = 0
        self._room_started_at_s: float | None = None
        self._test_started_at_s: float | None = None

    def config(self) -> PalaceConfig:
        return self._config

    def rooms(self) -> list[Room]:
        return list(self._rooms)

    def current_room(self) -> Room | None:
        if self._phase not in (Phase.STUDY, Phase.TEST):
            return None
        return self._rooms[self._room_index]

    def current_room_index(self) -> int:
        return self._room_index

    def correct_placements(self) -> list[Placement]:
        return list(self._answers)

    def study_placements(self) -> list[Placement]:
        """The current room's answers; empty outside the study phase."""

        room = self.current_room()
        if self._phase is not Phase.STUDY or room is None:
            return []
        return [p for p in self._answers if p.room_id == room.id]

    def available_items(self) -> list[str]:
        return list(self._available)

    def user_placements(self) -> list[Placement]:
        return list(self._placed)

    def unplaced_items(self) -> list[str]:
        placed = {p.item for p in self._placed}
        return [i for i in self._available if i not in placed]

    def item_at(self, room_id: str, anchor_id: str) -> str | None:
        for p in self._placed:
            if p.room_id == room_id and p.anchor_id == anchor_id:
                return p.item
        return None

    def start(self) -> bool:
        if not self._begin(Phase.STUDY):
            return False
        self._room_index = 0
        self._room_started_at_s = self._clock.now()
        return True

    def next_study_room(self) -> bool:
        if self._phase is not Phase.STUDY or self._room_index >= len(self._rooms) - 1:
            return False
        self._room_index += 1
        self._room_started_at_s = self._clock.now()
        return True

    def study_remaining_s(self) -> float | None:
        if self._phase is not Phase.STUDY or self._room_started_at_s is None:
            return None
        elapsed = self._clock.now() - self._room_started_at_s
        return max(0.0, self._config.study_time_per_room_s - elapsed)

    def update(self) -> None:
        """Move through the study rooms on their timers, then into the test."""

        remaining = self.study_remaining_s()
        if remaining is None or remaining > 0.0:
            return
        if not self.next_study_room():
            self.begin_test()

    def begin_test(self) -> bool:
        if self._phase is not Phase.STUDY:
            return False
        self._enter(Phase.TEST)
        self._room_index = 0
        self._room_started_at_s = None
        self._test_started_at_s = self._clock.now()
        return True

    def next_test_room(self) -> bool:
        if self._phase is not Phase.TEST or self._room_index >= len(self._rooms) - 1:
            return False
        self._room_index += 1
        return True

    def _find_room(self, room_id: str) -> Room | None:
        for room in self._rooms:
            if room.id == room_id:
                return room
        return None

    def place_item(self, room_id: str, anchor_id: str, item: str) -> bool:
        if self._phase is not Phase.TEST:
            return False
        room = self._find_room(room_id)
        if room is None or anchor_id not in room.anchor_ids() or item not in self._available:
            return False
        # One item per anchor and one anchor per item.
        self._placed = [
            p
            for p in self._placed
            if not (p.room_id == room_id and p.anchor_id == anchor_id) and p.item != item
        ]
        self._placed.append(Placement(room_id=room_id, anchor_id=anchor_id, item=item))
        return True

    def remove_item(self, room_id: str, anchor_id: str) -> str | None:
        if self._phase is not Phase.TEST:
            return None
        item = self.item_at(room_id, anchor_id)
        if item is None:
            return None
        self._placed = [p for p in self._placed if not (p.room_id == room_id and p.anchor_id == anchor_id)]
        return item

    def complete(self) -> bool:
        if self._phase is not Phase.TEST:
            return False
        self._finish()
        return True

    def progress(self) -> Progress:
        if self._phase in (Phase.STUDY, Phase.TEST):
            return Progress(current=self._room_index + 1, total=len(self._rooms))
        return Progress(current=0, total=len(self._rooms))

    def calculate_result(self) -> PalaceResult:
        correct = 0
        wrong = 0
        room_results: list[RoomResult] = []
        for room in self._rooms:
            answers = {p.anchor_id: p.item for p in self._answers if p.room_id == room.id}
            placed = [p for p in self._placed if p.room_id == room.id]
            room_correct = sum(1 for p in placed if answers.get(p.anchor_id) == p.item)
            correct += room_correct
            wrong += len(placed) - room_correct
            room_results.append(
                RoomResult(room_id=room.id, room_name=room.name, correct_count=room_correct, total_count=len(answers))
            )

        total = len(self._answers)
        accuracy = ratio(correct, total)
        score = max(
            0,
            correct * 20
            + self._config.difficulty * 10
            + round_half_up(accuracy * 100)
            + self._config.room_count * 15
            - wrong * 5,
        )
        if self._test_started_at_s is None:
            duration = 0.0
        else:
            end = self._completed_at_s if self._completed_at_s is not None else self._clock.now()
            duration = max(0.0, end - self._test_started_at_s)
        return PalaceResult(
            score=score,
            accuracy=round2(accuracy),
            duration_s=round2(duration),
            room_count=len(self._rooms),
            total_items=total,
            correct_count=correct,
            wrong_count=wrong,
            missed_count=total - correct,
            room_results=tuple(room_results),
        )

    def reset(self) -> None:
        self._generate()
        self._rewind()

    def reconfigure(self, config: PalaceConfig) -> None:
        self._config = normalize_palace_config(config)
        self.reset()

    def state(self) -> PalaceState:
        return PalaceState(
            phase=self._phase,
            rooms=self._rooms,
            correct_placements=self._answers,
            user_placements=tuple(self._placed),
            available_items=self._available,
            current_room_index=self._room_index,
        )

    def current_prompt(self) -> str:
        if self._phase is Phase.READY:
            return "Press Enter to enter the palace."
        if self._phase is Phase.COMPLETE:
            r = self.calculate_result()
            return (
                f"Results\nScore: {r.score}\nCorrect: {r.correct_count}/{r.total_items}\n"
                f"Wrong: {r.wrong_count}\nAccuracy: {int(round(r.accuracy * 100))}%"
            )
        room = self.current_room()
        if room is None:
            return ""
        if self._phase is Phase.STUDY:
            shown = "\n".join(f"{p.anchor_id}: {p.item}" for p in self.study_placements())
            return f"{room.name}\n{shown}"
        spots = "\n".join(f"{a}: {self.item_at(room.id, a) or '-'}" for a in room.anchor_ids())
        return f"{room.name}\n{spots}\nItems: {', '.join(self.unplaced_items())}"

    def snapshot(self) -> SessionSnapshot:
        if self._phase is Phase.STUDY:
            hint = "Press Enter for the next room"
        else:
            hint = "Type '<anchor> <item>', '-<anchor>' to clear, Enter for next room / finish"
        return SessionSnapshot(
            title=self.title,
            phase=self._phase,
            prompt=self.current_prompt(),
            input_hint=hint,
            progress=self.progress(),
            payload=self.current_room(),
        )

    def submit(self, raw: str) -> bool:
        if self._phase is Phase.READY:
            return self.start()
        if self._phase is Phase.STUDY:
            return self.next_study_room() or self.begin_test()
        if self._phase is not Phase.TEST:
            return False

        room = self.current_room()
        text = raw.strip().lower()
        if text == "":
            return self.next_test_room() or self.complete()
        if text == "done":
            return self.complete()
        if room is None:
            return False
        if text.startswith("-"):
            return self.remove_item(room.id, text[1:].strip()) is not None
        parts = text.split()
        if len(parts) != 2:
            return False
        return self.place_item(room.id, parts[0], parts[1])


def build_memory_palace_engine(
    *,
    clock: Clock,
    seed: int,
    config: PalaceConfig | None = None,
    difficulty: int | None = None,
) -> MemoryPalaceEngine:
    if config is None:
        config = config_for_difficulty(1 if difficulty is None else difficulty)
    return MemoryPalaceEngine(config=config, clock=clock, seed=seed)
