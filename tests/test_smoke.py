"""Smoke tests for the pygame shell.

These run the main loop and the task screen headlessly with SDL's dummy
drivers, and point the record store at a temporary directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

# Use the dummy drivers before importing pygame or the application
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pytest

from cogtrain.persistence import LocalCache, RecordStore, TrainingRecorder


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


@pytest.fixture
def recorder(tmp_path) -> TrainingRecorder:
    return TrainingRecorder(
        store=RecordStore(tmp_path / "records.sqlite3"),
        cache=LocalCache(tmp_path / "cache.json"),
    )


def test_app_runs_headless(recorder: TrainingRecorder) -> None:
    from cogtrain.app import run

    assert run(max_frames=3, recorder=recorder) == 0


def test_navigate_into_a_task_and_back(recorder: TrainingRecorder) -> None:
    import pygame

    from cogtrain.app import run

    def key(k: int, ch: str = "") -> None:
        pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": k, "unicode": ch}))

    # Main Menu -> Tasks -> first task -> Level 1 -> start -> back out -> Statistics
    script = {
        1: pygame.K_RETURN,
        2: pygame.K_RETURN,
        3: pygame.K_RETURN,
        4: pygame.K_RETURN,
        6: pygame.K_ESCAPE,
        7: pygame.K_ESCAPE,
        8: pygame.K_ESCAPE,
        9: pygame.K_DOWN,
        10: pygame.K_RETURN,
    }

    def inject(frame: int) -> None:
        if frame in script:
            key(script[frame])

    assert run(max_frames=14, event_injector=inject, recorder=recorder) == 0


def test_task_screen_saves_finished_session_once(recorder: TrainingRecorder) -> None:
    import pygame

    from cogtrain.app import App, TaskScreen
    from cogtrain.registry import get_task
    from cogtrain.sound_match import SoundMatchConfig, build_sound_match_engine

    pygame.init()
    try:
        surface = pygame.display.set_mode((640, 360))
        app = App(surface=surface, font=pygame.font.Font(None, 36))
        task = get_task("sound_match")
        assert task is not None
        screen = TaskScreen(
            app,
            task=task,
            engine_factory=lambda: build_sound_match_engine(
                clock=FakeClock(), seed=6, config=SoundMatchConfig(difficulty=2, pair_count=2)
            ),
            recorder=recorder,
        )
        app.push(screen)

        def press(k: int, ch: str = "") -> None:
            screen.handle_event(pygame.event.Event(pygame.KEYDOWN, {"key": k, "unicode": ch}))

        press(pygame.K_RETURN)
        positions: dict[str, list[int]] = {}
        for card in screen.engine.cards():
            positions.setdefault(card.sound_id, []).append(card.position)
        for pair in positions.values():
            for p in pair:
                press(pygame.K_0, str(p + 1))
                press(pygame.K_RETURN)
        assert screen.engine.is_complete()

        app.render()
        app.render()
        records = recorder.get_records()
        assert len(records) == 1
        assert records[0].result.task_code == "sound_match"
        assert records[0].result.difficulty == 2
        assert records[0].result.seed == 6
        assert records[0].result.details["matched_pairs"] == 2
    finally:
        pygame.quit()
