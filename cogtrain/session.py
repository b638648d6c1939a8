from __future__ import annotations

from loguru import logger

from .clock import Clock
from .cognitive_core import ACCEPTING_PHASES, Phase, SeededRng


class SessionBase:
    """Phase bookkeeping shared by every engine.

    - Phases only move forward and ``complete`` is terminal.
    - Time is entirely via the injected Clock; randomness via one SeededRng
      that keeps its stream across ``reset()``.
    """

    code = "session"
    title = "Session"

    def __init__(self, *, clock: Clock, seed: int) -> None:
        self._clock = clock
        self._seed = int(seed)
        self._rng = SeededRng(self._seed)
        self._phase: Phase = Phase.READY
        self._started_at_s: float | None = None
        self._completed_at_s: float | None = None

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def phase(self) -> Phase:
        return self._phase

    def is_complete(self) -> bool:
        return self._phase is Phase.COMPLETE

    def is_accepting(self) -> bool:
        return self._phase in ACCEPTING_PHASES

    def duration_s(self) -> float:
        if self._started_at_s is None:
            return 0.0
        end = self._completed_at_s if self._completed_at_s is not None else self._clock.now()
        return max(0.0, end - self._started_at_s)

    def _begin(self, phase: Phase = Phase.RUNNING) -> bool:
        if self._phase is not Phase.READY:
            return False
        self._started_at_s = self._clock.now()
        self._phase = phase
        logger.debug("{} session started (seed={}, phase={})", self.code, self._seed, phase.value)
        return True

    def _enter(self, phase: Phase) -> None:
        self._phase = phase

    def _finish(self) -> None:
        if self._phase is Phase.COMPLETE:
            return
        self._phase = Phase.COMPLETE
        self._completed_at_s = self._clock.now()
        logger.debug("{} session complete after {:.2f}s", self.code, self.duration_s())

    def _rewind(self) -> None:
        self._phase = Phase.READY
        self._started_at_s = None
        self._completed_at_s = None
        logger.debug("{} session reset", self.code)
