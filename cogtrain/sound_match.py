from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum

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
from .session import SessionBase

# (sound id, what the card says when played)
SOUND_ITEMS: tuple[tuple[str, str], ...] = (
    ("dog", "woof"),
    ("cat", "meow"),
    ("bird", "tweet"),
    ("cow", "moo"),
    ("frog", "ribbit"),
    ("sheep", "baa"),
    ("duck", "quack"),
    ("horse", "neigh"),
    ("pig", "oink"),
    ("owl", "hoot"),
    ("lion", "roar"),
    ("goat", "meh"),
    ("rooster", "cock-a-doodle-doo"),
    ("bee", "buzz"),
    ("wolf", "howl"),
    ("donkey", "hee-haw"),
    ("snake", "hiss"),
    ("crow", "caw"),
)

SOUNDS: dict[str, str] = dict(SOUND_ITEMS)

MIN_PAIRS = 2
MAX_PAIRS = len(SOUND_ITEMS)


class CardState(str, Enum):
    HIDDEN = "hidden"
    REVEALED = "revealed"
    MATCHED = "matched"


@dataclass(frozen=True, slots=True)
class SoundMatchConfig:
    difficulty: int = 1
    pair_count: int = 4
    # 0 means no time limit.
    time_limit_s: int = 0


@dataclass(frozen=True, slots=True)
class Card:
    position: int
    sound_id: str
    state: CardState = CardState.HIDDEN


@dataclass(frozen=True, slots=True)
class CardSelection:
    position: int
    sound_id: str
    sound: str
    # None for the first card of an attempt.
    is_match: bool | None


@dataclass(frozen=True, slots=True)
class SoundMatchState:
    phase: Phase
    cards: tuple[Card, ...]
    selected: tuple[int, ...]
    matched_pairs: int
    attempts: int
    perfect_matches: int


@dataclass(frozen=True, slots=True)
class SoundMatchResult:
    score: int
    accuracy: float
    duration_s: float
    pair_count: int
    matched_pairs: int
    attempts: int
    perfect_matches: int


def _time_limit_key(limit: int) -> float:
    return math.inf if limit <= 0 else float(limit)


DIMENSIONS = (
    Dimension("pair_count"),
    Dimension("time_limit_s", harder=-1, key=_time_limit_key),
)

HARDER_STEPS = (
    Step("pair_count", 1, hard_limit=10, easy_limit=4),
    Step("time_limit_s", -15, hard_limit=60, easy_limit=180),
)


def normalize_sound_match_config(config: SoundMatchConfig) -> SoundMatchConfig:
    limit = int(config.time_limit_s)
    return replace(
        config,
        difficulty=clamp_difficulty(config.difficulty),
        pair_count=clamp_int(int(config.pair_count), MIN_PAIRS, MAX_PAIRS),
        time_limit_s=0 if limit <= 0 else clamp_int(limit, 10, 600),
    )


def config_for_difficulty(difficulty: int) -> SoundMatchConfig:
    d = clamp_difficulty(difficulty)
    return SoundMatchConfig(
        difficulty=d,
        pair_count=min(10, 3 + math.ceil(d * 0.7)),
        time_limit_s=0 if d <= 3 else 180 - (d - 4) * 15,
    )


def adjust(config: SoundMatchConfig, accuracy: float) -> SoundMatchConfig:
    return adjust_with(
        config,
        accuracy,
        steps=HARDER_STEPS,
        normalize=normalize_sound_match_config,
        dimensions=DIMENSIONS,
    )


def deal_cards(pair_count: int, rng: SeededRng) -> tuple[Card, ...]:
    sounds = [sound_id for sound_id, _ in rng.sample(SOUND_ITEMS, pair_count)]
    faces = rng.shuffle(sounds + sounds)
    return tuple(Card(position=i, sound_id=s) for i, s in enumerate(faces))


class SoundMatchEngine(SessionBase):
    """Pairs memory game played by ear: cards are heard, not seen."""

    code = "sound_match"
    title = "Sound Match"

    def __init__(self, *, config: SoundMatchConfig, clock: Clock, seed: int) -> None:
        super().__init__(clock=clock, seed=seed)
        self._config = normalize_sound_match_config(config)
        self._deal()

    def _deal(self) -> None:
        self._cards = list(deal_cards(self._config.pair_count, self._rng))
        self._selected: list[int] = []
        self._matched_pairs = 0
        self._attempts = 0
        self._perfect = 0
        self._pair_attempts = 0

    def config(self) -> SoundMatchConfig:
        return self._config

    def cards(self) -> list[Card]:
        return list(self._cards)

    def selected(self) -> list[int]:
        return list(self._selected)

    def matched_pairs(self) -> int:
        return self._matched_pairs

    def attempts(self) -> int:
        return self._attempts

    def start(self) -> bool:
        return self._begin(Phase.RUNNING)

    def select_card(self, position: int) -> CardSelection | None:
        if self._phase is not Phase.RUNNING:
            return None
        position = int(position)
        if not 0 <= position < len(self._cards):
            return None
        card = self._cards[position]
        if card.state is not CardState.HIDDEN or len(self._selected) >= 2:
            return None

        self._cards[position] = replace(card, state=CardState.REVEALED)
        self._selected.append(position)
        if len(self._selected) < 2:
            return CardSelection(position=position, sound_id=card.sound_id, sound=SOUNDS[card.sound_id], is_match=None)

        self._attempts += 1
        self._pair_attempts += 1
        first, second = self._selected
        is_match = self._cards[first].sound_id == self._cards[second].sound_id
        if is_match:
            for p in (first, second):
                self._cards[p] = replace(self._cards[p], state=CardState.MATCHED)
            self._selected = []
            self._matched_pairs += 1
            if self._pair_attempts == 1:
                self._perfect += 1
            self._pair_attempts = 0
            if self._matched_pairs >= self._config.pair_count:
                self._finish()
        return CardSelection(position=position, sound_id=card.sound_id, sound=SOUNDS[card.sound_id], is_match=is_match)

    def reset_selection(self) -> bool:
        """Hide a failed pair again."""

        if self._phase is not Phase.RUNNING or not self._selected:
            return False
        for p in self._selected:
            if self._cards[p].state is CardState.REVEALED:
                self._cards[p] = replace(self._cards[p], state=CardState.HIDDEN)
        self._selected = []
        return True

    def time_remaining_s(self) -> float | None:
        if self._config.time_limit_s <= 0 or self._phase is not Phase.RUNNING:
            return None
        return max(0.0, self._config.time_limit_s - self.duration_s())

    def update(self) -> None:
        remaining = self.time_remaining_s()
        if remaining is not None and remaining <= 0.0:
            self._finish()

    def progress(self) -> Progress:
        return Progress(current=self._matched_pairs, total=self._config.pair_count)

    def calculate_result(self) -> SoundMatchResult:
        duration = self.duration_s()
        score = (
            self._matched_pairs * 50
            + self._perfect * 30
            + max(0, 100 - self._attempts * 2)
            + max(0, round_half_up((300 - duration) / 3))
            + self._config.difficulty * 20
        )
        return SoundMatchResult(
            score=max(0, score),
            accuracy=round2(ratio(self._matched_pairs, self._attempts)),
            duration_s=round2(duration),
            pair_count=self._config.pair_count,
            matched_pairs=self._matched_pairs,
            attempts=self._attempts,
            perfect_matches=self._perfect,
        )

    def reset(self) -> None:
        self._deal()
        self._rewind()

    def reconfigure(self, config: SoundMatchConfig) -> None:
        self._config = normalize_sound_match_config(config)
        self.reset()

    def state(self) -> SoundMatchState:
        return SoundMatchState(
            phase=self._phase,
            cards=tuple(self._cards),
            selected=tuple(self._selected),
            matched_pairs=self._matched_pairs,
            attempts=self._attempts,
            perfect_matches=self._perfect,
        )

    def current_prompt(self) -> str:
        if self._phase is Phase.READY:
            return "Press Enter to deal the cards."
        if self._phase is Phase.COMPLETE:
            r = self.calculate_result()
            return (
                f"Results\nScore: {r.score}\nPairs: {r.matched_pairs}/{r.pair_count}\n"
                f"Attempts: {r.attempts}\nPerfect: {r.perfect_matches}"
            )
        faces = []
        for card in self._cards:
            label = "??" if card.state is CardState.HIDDEN else SOUNDS[card.sound_id]
            faces.append(f"{card.position + 1}:{label}")
        lines = [" ".join(faces[i : i + 4]) for i in range(0, len(faces), 4)]
        remaining = self.time_remaining_s()
        if remaining is not None:
            lines.append(f"Time left: {remaining:.0f}s")
        return "\n".join(lines)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            title=self.title,
            phase=self._phase,
            prompt=self.current_prompt(),
            input_hint="Type a card number then Enter",
            progress=self.progress(),
            payload=tuple(self._cards),
        )

    def submit(self, raw: str) -> bool:
        if self._phase is Phase.READY:
            return self.start()
        if self._phase is not Phase.RUNNING:
            return False
        if len(self._selected) >= 2:
            self.reset_selection()
        text = raw.strip()
        if not text.isdigit():
            return False
        return self.select_card(int(text) - 1) is not None


def build_sound_match_engine(
    *,
    clock: Clock,
    seed: int,
    config: SoundMatchConfig | None = None,
    difficulty: int | None = None,
) -> SoundMatchEngine:
    if config is None:
        config = config_for_difficulty(1 if difficulty is None else difficulty)
    return SoundMatchEngine(config=config, clock=clock, seed=seed)
