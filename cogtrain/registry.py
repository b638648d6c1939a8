from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from . import (
    auditory_go_nogo,
    bilateral,
    classification,
    color_interference,
    grid_search,
    memory_palace,
    nback,
    scene_recall,
    sequence_repeat,
    sound_match,
    spatial_span,
)
from .difficulty import Dimension


@dataclass(frozen=True, slots=True)
class TaskInfo:
    code: str
    title: str
    build: Callable[..., Any]
    config_for_difficulty: Callable[[int], Any]
    adjust: Callable[[Any, float], Any]
    dimensions: Sequence[Dimension]


def _info(code: str, title: str, module: Any, build: Callable[..., Any]) -> TaskInfo:
    return TaskInfo(
        code=code,
        title=title,
        build=build,
        config_for_difficulty=module.config_for_difficulty,
        adjust=module.adjust,
        dimensions=module.DIMENSIONS,
    )


TASKS: tuple[TaskInfo, ...] = (
    _info("grid_search", "Grid Search", grid_search, grid_search.build_grid_search_engine),
    _info(
        "color_interference",
        "Colour-Word Interference",
        color_interference,
        color_interference.build_color_interference_engine,
    ),
    _info("nback", "N-Back", nback, nback.build_nback_engine),
    _info("spatial_span", "Spatial Span", spatial_span, spatial_span.build_spatial_span_engine),
    _info("auditory_go_nogo", "Auditory Go/No-Go", auditory_go_nogo, auditory_go_nogo.build_auditory_engine),
    _info("bilateral", "Bilateral Coordination", bilateral, bilateral.build_bilateral_engine),
    _info("classification", "Rule Classification", classification, classification.build_classification_engine),
    _info("scene_recall", "Scene Recall", scene_recall, scene_recall.build_scene_recall_engine),
    _info("memory_palace", "Memory Palace", memory_palace, memory_palace.build_memory_palace_engine),
    _info("sound_match", "Sound Match", sound_match, sound_match.build_sound_match_engine),
    _info("sequence_repeat", "Sequence Repeat", sequence_repeat, sequence_repeat.build_sequence_repeat_engine),
)

_BY_CODE = {t.code: t for t in TASKS}


def task_codes() -> list[str]:
    return [t.code for t in TASKS]


def get_task(code: str) -> TaskInfo | None:
    return _BY_CODE.get(code)
