"""Sequence repetition (Simon).

The session stays ``running`` while rounds cycle through three stages:
``watch`` (the sequence is played), ``repeat`` (the player echoes it) and
``feedback``. A correct round grows the sequence by one tone; a wrong one
costs a life and is retried at the same length.
"""

from __future__ import annotations

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
    mean_or_zero,
    ratio,
    round2,
    round_half_up,
)
from .difficulty import Dimension, Step, adjust_with
from .session import SessionBase

# (tone id, frequency in Hz)
TONES: tuple[tuple[str, int], ...] = (
    ("dog", 200),
    ("cat", 400),
    ("bird", 600),
    ("cow", 150),
    ("frog", 300),
    ("lion", 120),
)

FREQUENCIES: dict[str, int] = dict(TONES)


class Stage(str, Enum):
    WATCH = "watch"
    REPEAT = "repeat"
    FEEDBACK = "feedback"


@dataclass(frozen=True, slots=True)
class SequenceRepeatConfig:
    difficulty: int = 1
    start_length: int = 2
    max_length: int = 13
    sound_count: int = 3
    play_speed_ms: int = 800
    lives: int = 3


@dataclass(frozen=True, slots=True)
class RoundRecord:
    round: int
    length: int
    correct: bool
    entered: tuple[str, ...]
    expected: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class InputResult:
    correct: bool
    round_complete: bool
    complete: bool


@dataclass(frozen=True, slots=True)
class SequenceRepeatState:
    phase: Phase
    stage: Stage
    active_sounds: tuple[str, ...]
    sequence: tuple[str, ...]
    entered: tuple[str, ...]
    round: int
    lives: int
    rounds: tuple[RoundRecord, ...]
    highest_length: int


@dataclass(frozen=True, slots=True)
class SequenceRepeatResult:
    score: int
    accuracy: float
    duration_s: float
    total_rounds: int
    correct_rounds: int
    highest_length: int
    avg_sequence_length: float


DIMENSIONS = (
    Dimension("start_length"),
    Dimension("max_length"),
    Dimension("sound_count"),
    Dimension("play_speed_ms", harder=-1),
    Dimension("lives", harder=-1),
)

HARDER_STEPS = (
    Step("sound_count", 1, hard_limit=len(TONES), easy_limit=3),
    Step("play_speed_ms", -40, hard_limit=400, easy_limit=800),
    Step("lives", -1, hard_limit=1, easy_limit=3),
)


def normalize_sequence_repeat_config(config: SequenceRepeatConfig) -> SequenceRepeatConfig:
    max_length = clamp_int(int(config.max_length), 2, 40)
    return replace(
        config,
        difficulty=clamp_difficulty(config.difficulty),
        start_length=clamp_int(int(config.start_length), 1, max_length),
        max_length=max_length,
        sound_count=clamp_int(int(config.sound_count), 2, len(TONES)),
        play_speed_ms=clamp_int(int(config.play_speed_ms), 100, 2000),
        lives=clamp_int(int(config.lives), 1, 9),
    )


def config_for_difficulty(difficulty: int) -> SequenceRepeatConfig:
    d = clamp_difficulty(difficulty)
    if d <= 2:
        sound_count = 3
    elif d <= 5:
        sound_count = 4
    elif d <= 8:
        sound_count = 5
    else:
        sound_count = 6
    return SequenceRepeatConfig(
        difficulty=d,
        start_length=2 if d <= 3 else 3 if d <= 6 else 4,
        max_length=12 + d,
        sound_count=sound_count,
        play_speed_ms=max(400, 800 - (d - 1) * 40),
        lives=3 if d <= 3 else 2 if d <= 6 else 1,
    )


def adjust(config: SequenceRepeatConfig, accuracy: float) -> SequenceRepeatConfig:
    return adjust_with(
        config,
        accuracy,
        steps=HARDER_STEPS,
        normalize=normalize_sequence_repeat_config,
        dimensions=DIMENSIONS,
    )


def generate_sequence(sounds: tuple[str, ...], length: int, rng: SeededRng) -> list[str]:
    return [rng.choice(sounds) for _ in range(max(0, int(length)))]


class SequenceRepeatEngine(SessionBase):
    code = "sequence_repeat"
    title = "Sequence Repeat"

    def __init__(self, *, config: SequenceRepeatConfig, clock: Clock, seed: int) -> None:
        super().__init__(clock=clock, seed=seed)
        self._config = normalize_sequence_repeat_config(config)
        self._setup()

    def _setup(self) -> None:
        self._sounds = tuple(tone for tone, _ in self._rng.sample(TONES, self._config.sound_count))
        self._sequence = generate_sequence(self._sounds, self._config.start_length, self._rng)
        self._entered: list[str] = []
        self._stage = Stage.WATCH
        self._round = 1
        self._lives = self._config.lives
        self._rounds: list[RoundRecord] = []
        self._highest = 0
        self._last_correct: bool | None = None

    def config(self) -> SequenceRepeatConfig:
        return self._config

    @property
    def stage(self) -> Stage:
        return self._stage

    def active_sounds(self) -> list[str]:
        return list(self._sounds)

    def sequence(self) -> list[str]:
        return list(self._sequence)

    def entered(self) -> list[str]:
        return list(self._entered)

    def lives(self) -> int:
        return self._lives

    def current_round(self) -> int:
        return self._round

    def highest_length(self) -> int:
        return self._highest

    def last_round_correct(self) -> bool | None:
        return self._last_correct

    def start(self) -> bool:
        if not self._begin(Phase.RUNNING):
            return False
        self._stage = Stage.WATCH
        return True

    def finish_watching(self) -> bool:
        if self._phase is not Phase.RUNNING or self._stage is not Stage.WATCH:
            return False
        self._stage = Stage.REPEAT
        self._entered = []
        return True

    def input(self, sound_id: str) -> InputResult | None:
        if self._phase is not Phase.RUNNING or self._stage is not Stage.REPEAT:
            return None
        if sound_id not in self._sounds:
            return None

        expected = self._sequence[len(self._entered)]
        self._entered.append(sound_id)
        if sound_id != expected:
            self._lives -= 1
            self._close_round(correct=False)
            if self._lives <= 0:
                self._finish()
            return InputResult(correct=False, round_complete=True, complete=self.is_complete())

        if len(self._entered) < len(self._sequence):
            return InputResult(correct=True, round_complete=False, complete=False)

        self._highest = max(self._highest, len(self._sequence))
        self._close_round(correct=True)
        if len(self._sequence) >= self._config.max_length:
            self._finish()
        return InputResult(correct=True, round_complete=True, complete=self.is_complete())

    def _close_round(self, *, correct: bool) -> None:
        self._rounds.append(
            RoundRecord(
                round=self._round,
                length=len(self._sequence),
                correct=correct,
                entered=tuple(self._entered),
                expected=tuple(self._sequence),
            )
        )
        self._last_correct = correct
        self._stage = Stage.FEEDBACK

    def next_round(self) -> bool:
        """Replay the sequence with one more tone appended."""

        if self._phase is not Phase.RUNNING or self._stage is not Stage.FEEDBACK:
            return False
        self._round += 1
        self._sequence.append(self._rng.choice(self._sounds))
        self._open_round()
        return True

    def retry_round(self) -> bool:
        """Fresh sequence of the same length after a mistake."""

        if self._phase is not Phase.RUNNING or self._stage is not Stage.FEEDBACK:
            return False
        self._sequence = generate_sequence(self._sounds, len(self._sequence), self._rng)
        self._open_round()
        return True

    def _open_round(self) -> None:
        self._entered = []
        self._last_correct = None
        self._stage = Stage.WATCH

    def rounds(self) -> list[RoundRecord]:
        return list(self._rounds)

    def progress(self) -> Progress:
        return Progress(current=len(self._sequence), total=self._config.max_length)

    def calculate_result(self) -> SequenceRepeatResult:
        correct = sum(1 for r in self._rounds if r.correct)
        accuracy = ratio(correct, len(self._rounds))
        avg_length = mean_or_zero(r.length for r in self._rounds)
        score = (
            self._highest * 50
            + correct * 20
            + self._config.difficulty * 15
            + round_half_up(accuracy * 100)
        )
        return SequenceRepeatResult(
            score=score,
            accuracy=round2(accuracy),
            duration_s=round2(self.duration_s()),
            total_rounds=len(self._rounds),
            correct_rounds=correct,
            highest_length=self._highest,
            avg_sequence_length=round_half_up(avg_length * 10) / 10,
        )

    def reset(self) -> None:
        self._setup()
        self._rewind()

    def reconfigure(self, config: SequenceRepeatConfig) -> None:
        self._config = normalize_sequence_repeat_config(config)
        self.reset()

    def state(self) -> SequenceRepeatState:
        return SequenceRepeatState(
            phase=self._phase,
            stage=self._stage,
            active_sounds=self._sounds,
            sequence=tuple(self._sequence),
            entered=tuple(self._entered),
            round=self._round,
            lives=self._lives,
            rounds=tuple(self._rounds),
            highest_length=self._highest,
        )

    def current_prompt(self) -> str:
        if self._phase is Phase.READY:
            return "Press Enter to begin."
        if self._phase is Phase.COMPLETE:
            r = self.calculate_result()
            return (
                f"Results\nScore: {r.score}\nLongest: {r.highest_length}\n"
                f"Rounds: {r.correct_rounds}/{r.total_rounds}"
            )
        status = f"Round {self._round}  Lives {self._lives}"
        if self._stage is Stage.WATCH:
            return f"{status}\nListen: {' '.join(self._sequence)}"
        if self._stage is Stage.REPEAT:
            options = "  ".join(f"{i + 1}={s}" for i, s in enumerate(self._sounds))
            return f"{status}\n{options}\nSo far: {' '.join(self._entered)}"
        verdict = "Correct!" if self._last_correct else "Wrong."
        return f"{status}\n{verdict}"

    def snapshot(self) -> SessionSnapshot:
        hints = {
            Stage.WATCH: "Press Enter when ready to repeat",
            Stage.REPEAT: "Type sounds (names or numbers) then Enter",
            Stage.FEEDBACK: "Press Enter to continue",
        }
        return SessionSnapshot(
            title=self.title,
            phase=self._phase,
            prompt=self.current_prompt(),
            input_hint=hints[self._stage],
            progress=self.progress(),
            payload=self._stage,
        )

    def _resolve_sound(self, token: str) -> str | None:
        if token.isdigit():
            idx = int(token) - 1
            return self._sounds[idx] if 0 <= idx < len(self._sounds) else None
        return token if token in self._sounds else None

    def submit(self, raw: str) -> bool:
        if self._phase is Phase.READY:
            return self.start()
        if self._phase is not Phase.RUNNING:
            return False
        if self._stage is Stage.WATCH:
            return self.finish_watching()
        if self._stage is Stage.FEEDBACK:
            return self.next_round() if self._last_correct else self.retry_round()

        accepted = False
        for token in raw.strip().lower().replace(",", " ").split():
            sound = self._resolve_sound(token)
            if sound is None:
                break
            result = self.input(sound)
            if result is None:
                break
            accepted = True
            if result.round_complete:
                break
        return accepted


def build_sequence_repeat_engine(
    *,
    clock: Clock,
    seed: int,
    config: SequenceRepeatConfig | None = None,
    difficulty: int | None = None,
) -> SequenceRepeatEngine:
    if config is None:
        config = config_for_difficulty(1 if difficulty is None else difficulty)
    return SequenceRepeatEngine(config=config, clock=clock, seed=seed)
