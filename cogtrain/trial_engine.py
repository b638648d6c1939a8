"""Generic trial engine.

A task is a strategy triple bundled in a ``TrialTask``:

- a generator that eagerly builds the whole ``SessionPlan``,
- a classifier turning ``(trial, action)`` into a response record, and
  synthesising the record for a trial that got no response,
- a scorer folding the response log into the task's result.

The engine owns the state machine (``ready -> running -> complete`` or
``ready -> study -> test -> complete``), the cursor and the append-only
response log. Invalid operations return ``None``/``False``.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

from .clock import Clock, elapsed_ms
from .cognitive_core import Phase, Progress, SeededRng, SessionSnapshot
from .session import SessionBase

ConfigT = TypeVar("ConfigT")
TrialT = TypeVar("TrialT")
ResponseT = TypeVar("ResponseT")
ResultT = TypeVar("ResultT")


@dataclass(frozen=True, slots=True)
class SessionPlan:
    trials: tuple[Any, ...]
    context: Any = None


class TrialGenerator(Protocol):
    def generate(self, config: Any, rng: SeededRng) -> SessionPlan:
        ...


class ResponseClassifier(Protocol):
    def classify(
        self,
        *,
        plan: SessionPlan,
        trial: Any,
        action: Any,
        index: int,
        history: Sequence[Any],
        rt_ms: float | None,
    ) -> Any:
        """Return the response record, or None to reject the action."""
        ...

    def no_response(
        self,
        *,
        plan: SessionPlan,
        trial: Any,
        index: int,
        history: Sequence[Any],
        elapsed_ms: float | None,
    ) -> Any:
        ...


class SessionScorer(Protocol):
    def score(
        self,
        *,
        plan: SessionPlan,
        responses: Sequence[Any],
        config: Any,
        duration_s: float,
    ) -> Any:
        ...


@dataclass(frozen=True, slots=True)
class TrialTask:
    code: str
    title: str
    generator: TrialGenerator
    classifier: ResponseClassifier
    scorer: SessionScorer
    normalize: Callable[[Any], Any]
    auto_advance: bool = False
    study_phase: bool = False
    stop_rule: Callable[[SessionPlan, Sequence[Any]], bool] | None = None
    parse_action: Callable[[str], Any] | None = None
    describe: Callable[[SessionPlan, Any], str] | None = None
    input_hint: str = "Type answer then Enter (empty Enter = no response)"


@dataclass(frozen=True, slots=True)
class EngineState:
    phase: Phase
    cursor: int
    trials: tuple[Any, ...]
    responses: tuple[Any, ...]
    started_at_s: float | None
    trial_started_at_s: float | None


class TrialEngine(SessionBase, Generic[ConfigT, TrialT, ResponseT, ResultT]):
    def __init__(self, *, task: TrialTask, config: ConfigT, clock: Clock, seed: int) -> None:
        super().__init__(clock=clock, seed=seed)
        self._task = task
        self.code = task.code
        self.title = task.title
        self._config: ConfigT = task.normalize(config)
        self._plan = task.generator.generate(self._config, self._rng)
        self._cursor = 0
        self._responses: list[ResponseT] = []
        self._trial_started_at_s: float | None = None

    @property
    def task(self) -> TrialTask:
        return self._task

    def config(self) -> ConfigT:
        return self._config

    def context(self) -> Any:
        return self._plan.context

    def trials(self) -> list[TrialT]:
        return list(self._plan.trials)

    def responses(self) -> list[ResponseT]:
        return list(self._responses)

    def start(self) -> bool:
        if not self._begin(Phase.STUDY if self._task.study_phase else Phase.RUNNING):
            return False
        if not self._task.study_phase:
            self._open_trials()
        return True

    def begin_test(self) -> bool:
        if self._phase is not Phase.STUDY:
            return False
        self._enter(Phase.TEST)
        self._open_trials()
        return True

    def current_index(self) -> int:
        return self._cursor

    def current_trial(self) -> TrialT | None:
        if self.is_complete() or self._cursor >= len(self._plan.trials):
            return None
        return self._plan.trials[self._cursor]

    def has_responded(self) -> bool:
        return len(self._responses) > self._cursor

    def respond(self, action: Any) -> ResponseT | None:
        if not self.is_accepting() or self.has_responded():
            return None
        trial = self.current_trial()
        if trial is None:
            return None

        response = self._task.classifier.classify(
            plan=self._plan,
            trial=trial,
            action=action,
            index=self._cursor,
            history=tuple(self._responses),
            rt_ms=elapsed_ms(self._trial_started_at_s, self._clock.now()),
        )
        if response is None:
            return None
        self._responses.append(response)

        if self._task.auto_advance:
            self.advance()
        return response

    def advance(self) -> bool:
        """Move to the next trial. Returns whether the session continues."""

        if not self.is_accepting():
            return False
        trial = self.current_trial()
        if trial is None:
            return False

        now = self._clock.now()
        if not self.has_responded():
            self._responses.append(
                self._task.classifier.no_response(
                    plan=self._plan,
                    trial=trial,
                    index=self._cursor,
                    history=tuple(self._responses),
                    elapsed_ms=elapsed_ms(self._trial_started_at_s, now),
                )
            )

        self._cursor += 1
        stop_rule = self._task.stop_rule
        stopped = stop_rule is not None and stop_rule(self._plan, tuple(self._responses))
        if self._cursor >= len(self._plan.trials) or stopped:
            self._trial_started_at_s = None
            self._finish()
            return False

        self._trial_started_at_s = now
        return True

    def progress(self) -> Progress:
        total = len(self._plan.trials)
        if self.is_accepting():
            return Progress(current=min(self._cursor + 1, total), total=total)
        return Progress(current=self._cursor, total=total)

    def calculate_result(self) -> ResultT:
        return self._task.scorer.score(
            plan=self._plan,
            responses=tuple(self._responses),
            config=self._config,
            duration_s=self.duration_s(),
        )

    def reset(self) -> None:
        self._plan = self._task.generator.generate(self._config, self._rng)
        self._cursor = 0
        self._responses = []
        self._trial_started_at_s = None
        self._rewind()

    def reconfigure(self, config: ConfigT) -> None:
        self._config = self._task.normalize(config)
        self.reset()

    def state(self) -> EngineState:
        return EngineState(
            phase=self._phase,
            cursor=self._cursor,
            trials=tuple(self._plan.trials),
            responses=tuple(self._responses),
            started_at_s=self._started_at_s,
            trial_started_at_s=self._trial_started_at_s,
        )

    def current_prompt(self) -> str:
        if self._phase is Phase.READY:
            return "Press Enter to begin."
        if self._phase is Phase.COMPLETE:
            result = self.calculate_result()
            acc_pct = int(round(float(getattr(result, "accuracy", 0.0)) * 100))
            return f"Results\nScore: {getattr(result, 'score', 0)}\nAccuracy: {acc_pct}%"
        describe = self._task.describe
        trial = self.current_trial() if self._phase is not Phase.STUDY else None
        if describe is None:
            return "" if trial is None else str(trial)
        return describe(self._plan, trial)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            title=self.title,
            phase=self._phase,
            prompt=self.current_prompt(),
            input_hint=(
                "Press Enter to start the test" if self._phase is Phase.STUDY else self._task.input_hint
            ),
            progress=self.progress(),
            payload=self.current_trial(),
        )

    def submit(self, raw: str) -> bool:
        """Text command from the shell. Returns True if accepted."""

        if self._phase is Phase.READY:
            return self.start()
        if self._phase is Phase.STUDY:
            return self.begin_test()
        if not self.is_accepting():
            return False

        text = raw.strip()
        if text == "":
            before = self._cursor
            self.advance()
            return self._cursor != before

        parse = self._task.parse_action
        action = parse(text) if parse is not None else text
        if action is None:
            return False
        if self.respond(action) is None:
            return False
        if not self._task.auto_advance:
            self.advance()
        return True

    def _open_trials(self) -> None:
        if not self._plan.trials:
            self._finish()
            return
        self._trial_started_at_s = self._clock.now()
