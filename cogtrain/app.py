"""Pygame shell for the cognitive trainer.

Every task is driven through its engine's ``snapshot()`` / ``submit(raw)``
pair: the screen prints the prompt and forwards typed commands. Timing,
scoring, RNG and state all live in the core modules.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

import pygame
from loguru import logger

from .clock import RealClock
from .cognitive_core import MAX_DIFFICULTY, MIN_DIFFICULTY, Phase, SessionSnapshot
from .persistence import TrainingRecorder
from .registry import TASKS, TaskInfo
from .results import training_result_from
from .stats import calculate_stats


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


class TrainingEngine(Protocol):
    def snapshot(self) -> SessionSnapshot: ...
    def submit(self, raw: str) -> bool: ...
    def is_complete(self) -> bool: ...
    def calculate_result(self) -> Any: ...
    def config(self) -> Any: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (12, 16, 28)
PANEL = (22, 30, 48)
BORDER = (92, 112, 150)
TEXT = (232, 238, 248)
MUTED = (150, 162, 184)
ACCENT = (96, 196, 160)


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # The root screen stays; it quits on back instead.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _draw_lines(
    surface: pygame.Surface,
    font: pygame.font.Font,
    lines: list[str],
    *,
    x: int,
    y: int,
    color: tuple[int, int, int] = TEXT,
    max_lines: int = 14,
) -> int:
    step = font.get_linesize() + 4
    for line in lines[:max_lines]:
        surface.blit(font.render(line, True, color), (x, y))
        y += step
    return y


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 30)
        self._hint_font = pygame.font.Font(None, 22)

    @property
    def selected(self) -> int:
        return self._selected

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        title = self._title_font.render(self._title, True, TEXT)
        surface.blit(title, (40, 28))

        # Scroll so the selection stays visible on long task lists.
        row_h = 34
        visible = max(1, (h - 140) // row_h)
        first = min(max(0, self._selected - visible + 1), max(0, len(self._items) - visible))

        y = 84
        for idx in range(first, min(len(self._items), first + visible)):
            row = pygame.Rect(32, y, w - 64, row_h - 6)
            selected = idx == self._selected
            pygame.draw.rect(surface, PANEL, row)
            pygame.draw.rect(surface, ACCENT if selected else BORDER, row, 2 if selected else 1)
            text = self._item_font.render(self._items[idx].label, True, TEXT if selected else MUTED)
            surface.blit(text, (row.x + 12, row.y + (row.h - text.get_height()) // 2))
            y += row_h

        foot = self._hint_font.render("Up/Down: Move  |  Enter: Select  |  Esc: Back", True, MUTED)
        surface.blit(foot, (40, h - 36))


class TaskScreen:
    """Runs one engine: prints its snapshot, forwards typed commands."""

    def __init__(
        self,
        app: App,
        *,
        task: TaskInfo,
        engine_factory: Callable[[], TrainingEngine],
        recorder: TrainingRecorder | None,
    ) -> None:
        self._app = app
        self._task = task
        self._engine = engine_factory()
        self._recorder = recorder
        self._input = ""
        self._saved = False
        self._small_font = pygame.font.Font(None, 26)
        self._hint_font = pygame.font.Font(None, 22)

    @property
    def engine(self) -> TrainingEngine:
        return self._engine

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        if key == pygame.K_ESCAPE:
            self._app.pop()
            return
        if key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            if not self._engine.submit(self._input):
                logger.debug("{} rejected input {!r}", self._task.code, self._input)
            self._input = ""
            self._save_if_complete()
            return
        if key == pygame.K_BACKSPACE:
            self._input = self._input[:-1]
            return

        ch = event.unicode
        if ch and ch.isprintable() and len(self._input) < 40:
            self._input += ch

    def _save_if_complete(self) -> None:
        if self._saved or self._recorder is None or not self._engine.is_complete():
            return
        self._saved = True
        config = self._engine.config()
        result = training_result_from(
            self._engine.calculate_result(),
            task_code=self._task.code,
            difficulty=int(getattr(config, "difficulty", MIN_DIFFICULTY)),
            seed=int(getattr(self._engine, "seed", 0)),
        )
        self._recorder.save_record(result)

    def render(self, surface: pygame.Surface) -> None:
        update = getattr(self._engine, "update", None)
        if callable(update):
            update()
        self._save_if_complete()
        snap = self._engine.snapshot()

        w, h = surface.get_size()
        surface.fill(BG)
        surface.blit(self._app.font.render(snap.title, True, TEXT), (40, 28))

        status = f"{snap.phase.value}  {snap.progress.current}/{snap.progress.total}"
        surface.blit(self._hint_font.render(status, True, MUTED), (40, 64))

        _draw_lines(surface, self._small_font, str(snap.prompt).split("\n"), x=40, y=100)

        if snap.phase is Phase.COMPLETE:
            done = self._hint_font.render("Esc: back to menu", True, MUTED)
            surface.blit(done, (40, h - 48))
            return

        box = pygame.Rect(40, h - 110, min(520, w - 80), 40)
        pygame.draw.rect(surface, PANEL, box)
        pygame.draw.rect(surface, BORDER, box, 2)
        caret = "|" if (pygame.time.get_ticks() // 500) % 2 == 0 else ""
        entry = self._app.font.render(self._input + caret, True, TEXT)
        surface.blit(entry, (box.x + 10, box.y + 6))
        hint = self._hint_font.render(snap.input_hint, True, MUTED)
        surface.blit(hint, (40, h - 56))


class StatsScreen:
    def __init__(self, app: App, *, recorder: TrainingRecorder | None) -> None:
        self._app = app
        self._small_font = pygame.font.Font(None, 26)
        self._lines = self._build_lines(recorder)

    @staticmethod
    def _build_lines(recorder: TrainingRecorder | None) -> list[str]:
        if recorder is None:
            return ["No record store configured."]
        stats = calculate_stats(recorder.get_records(), today=date.today())
        lines = [
            f"Sessions: {stats.total_sessions}",
            f"Total time: {int(stats.total_duration_s // 60)} min",
            f"Streak: {stats.streak_days} day(s)",
            "",
        ]
        for code, task_stats in sorted(stats.tasks.items()):
            lines.append(
                f"{code}: {task_stats.sessions} x  avg {task_stats.average_score}  "
                f"best {task_stats.best_score}  {task_stats.trend.value}"
            )
        return lines

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN and event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        surface.fill(BG)
        surface.blit(self._app.font.render("Statistics", True, TEXT), (40, 28))
        _draw_lines(surface, self._small_font, self._lines, x=40, y=84)


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    recorder: TrainingRecorder | None = None,
) -> int:
    pygame.init()

    pygame.display.set_caption("Cognitive Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    real_clock = RealClock()
    if recorder is None:
        recorder = TrainingRecorder.default()

    def open_task(task: TaskInfo, difficulty: int) -> None:
        seed = _new_seed()
        logger.info("opening {} at difficulty {} (seed={})", task.code, difficulty, seed)
        app.push(
            TaskScreen(
                app,
                task=task,
                engine_factory=lambda: task.build(clock=real_clock, seed=seed, difficulty=difficulty),
                recorder=recorder,
            )
        )

    def open_difficulty_menu(task: TaskInfo) -> None:
        items = [
            MenuItem(f"Level {d}", lambda d=d: open_task(task, d))
            for d in range(MIN_DIFFICULTY, MAX_DIFFICULTY + 1)
        ]
        items.append(MenuItem("Back", app.pop))
        app.push(MenuScreen(app, task.title, items))

    tasks_menu = MenuScreen(
        app,
        "Tasks",
        [MenuItem(t.title, lambda t=t: open_difficulty_menu(t)) for t in TASKS] + [MenuItem("Back", app.pop)],
    )

    main_items = [
        MenuItem("Tasks", lambda: app.push(tasks_menu)),
        MenuItem("Statistics", lambda: app.push(StatsScreen(app, recorder=recorder))),
        MenuItem("Quit", app.quit),
    ]
    app.push(MenuScreen(app, "Main Menu", main_items, is_root=True))

    recorder.sync_pending()

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
