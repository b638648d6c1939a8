from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any

# Headline fields every task result carries; everything else goes in details.
_HEADLINE = ("score", "accuracy", "duration_s")


@dataclass(frozen=True, slots=True)
class TrainingResult:
    """Persistable summary of one finished session, independent of task."""

    task_code: str
    difficulty: int
    seed: int
    score: int
    accuracy: float
    duration_s: float
    details: dict[str, Any] = field(default_factory=dict)


def training_result_from(result: Any, *, task_code: str, difficulty: int, seed: int) -> TrainingResult:
    """Build a TrainingResult from any task's result dataclass."""

    if not is_dataclass(result):
        raise TypeError(f"expected a result dataclass, got {type(result).__name__}")
    data = asdict(result)
    details = {k: v for k, v in data.items() if k not in _HEADLINE}
    return TrainingResult(
        task_code=str(task_code),
        difficulty=int(difficulty),
        seed=int(seed),
        score=int(data.get("score", 0)),
        accuracy=float(data.get("accuracy", 0.0)),
        duration_s=float(data.get("duration_s", 0.0)),
        details=details,
    )
