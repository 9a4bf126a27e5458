from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Callable, Literal, Protocol, Sequence

from .models import REASON_NAVIGATION_TIMEOUT, EventRecord, ReplayStep, StepResult
from .settings import ReplayTimings

ReplayPhase = Literal["idle", "running", "step_pending", "awaiting_navigation", "awaiting_content"]
ReplayOutcome = Literal["finished", "aborted"]

StepDispatcher = Callable[[ReplayStep], None]
StepResultCallback = Callable[[StepResult], None]
FinishedCallback = Callable[[int], None]
AbortedCallback = Callable[[str], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class DispatchError(RuntimeError):
    """The page side could not receive a step (e.g. it is mid-navigation)."""


@dataclass(slots=True)
class ReplayState:
    running: bool = False
    queue: list[EventRecord] = field(default_factory=list)
    index: int = 0
    pending: bool = False
    awaiting_navigation: bool = False
    awaiting_content: bool = False
    navigation_guard: TimerHandle | None = None
    scheduled: TimerHandle | None = None


class ReplayStepper:
    """Sequences recorded steps one at a time with navigation-aware pacing.

    The stepper never executes a step itself: ``dispatch`` hands the step to
    the page side, which reports back through :meth:`step_result`. Timers come
    from the injected scheduler and every timer callback is tied to the run
    that armed it.
    """

    def __init__(
        self,
        dispatch: StepDispatcher,
        scheduler: Scheduler,
        *,
        timings: ReplayTimings | None = None,
        on_step_result: StepResultCallback | None = None,
        on_finished: FinishedCallback | None = None,
        on_aborted: AbortedCallback | None = None,
    ) -> None:
        self._dispatch = dispatch
        self._scheduler = scheduler
        self.timings = timings or ReplayTimings()
        self._on_step_result = on_step_result or (lambda _result: None)
        self._on_finished = on_finished or (lambda _total: None)
        self._on_aborted = on_aborted or (lambda _reason: None)
        self.logger = logging.getLogger("locatorkit.replay")

        self.state = ReplayState()
        self.outcome: ReplayOutcome | None = None
        self.abort_reason: str | None = None
        self._generation = 0

    @property
    def phase(self) -> ReplayPhase:
        state = self.state
        if not state.running:
            return "idle"
        if state.pending:
            return "step_pending"
        if state.awaiting_navigation:
            return "awaiting_navigation"
        if state.awaiting_content:
            return "awaiting_content"
        return "running"

    def start(self, queue: Sequence[EventRecord]) -> bool:
        if self.state.running:
            self.logger.warning("Replay already running; start ignored")
            return False
        self.reset()
        self.state.running = True
        self.state.queue = list(queue)
        self.logger.info("Replay started with %s step(s)", len(self.state.queue))
        self._send_step()
        return True

    def step_result(self, result: StepResult) -> None:
        state = self.state
        if not state.running or not state.pending or result.index != state.index:
            self.logger.debug("Ignoring stale result for step %s", result.index + 1)
            return

        state.pending = False
        self._on_step_result(result)
        if not result.ok:
            self.abort(result.reason or "step_failed")
            return

        state.index += 1
        if state.index >= len(state.queue):
            self._finish()
            return

        if result.navigation:
            state.awaiting_navigation = True
            state.awaiting_content = True
            self._arm_navigation_guard()
            return
        self._schedule_next(self.timings.step_delay)

    def content_ready(self) -> None:
        state = self.state
        if not state.running or state.pending:
            return
        if state.awaiting_navigation:
            self._cancel_navigation_guard()
            state.awaiting_navigation = False
            self._schedule_next(self.timings.navigation_recovery_delay)
            return
        if state.awaiting_content and state.scheduled is None:
            self._schedule_next(self.timings.content_ready_delay)

    def abort(self, reason: str) -> None:
        if not self.state.running:
            return
        self.logger.info("Replay aborted at step %s: %s", self.state.index + 1, reason)
        self._teardown()
        self.outcome = "aborted"
        self.abort_reason = reason
        self._on_aborted(reason)

    def reset(self) -> None:
        self._teardown()
        self.outcome = None
        self.abort_reason = None

    def _finish(self) -> None:
        total = len(self.state.queue)
        self.logger.info("Replay finished after %s step(s)", total)
        self._teardown()
        self.outcome = "finished"
        self._on_finished(total)

    def _teardown(self) -> None:
        self._generation += 1
        self._cancel_scheduled()
        self._cancel_navigation_guard()
        self.state = ReplayState()

    def _send_step(self) -> None:
        state = self.state
        if not state.running or state.pending:
            return
        self._cancel_scheduled()
        if state.index >= len(state.queue):
            self._finish()
            return

        self._cancel_navigation_guard()
        state.awaiting_navigation = False
        state.awaiting_content = False
        state.pending = True
        step = ReplayStep(state.queue[state.index], state.index, len(state.queue))
        try:
            self._dispatch(step)
        except DispatchError as exc:
            if self.state is not state:
                return
            self.logger.info("Step %s not delivered (%s); waiting for content", step.index + 1, exc)
            state.pending = False
            state.awaiting_content = True
            self._arm_navigation_guard()

    def _bind(self, callback: Callable[[], None]) -> Callable[[], None]:
        generation = self._generation

        def fire() -> None:
            if generation != self._generation:
                return
            callback()

        return fire

    def _schedule_next(self, delay: float) -> None:
        self._cancel_scheduled()

        def run() -> None:
            self.state.scheduled = None
            self._send_step()

        self.state.scheduled = self._scheduler.call_later(delay, self._bind(run))

    def _arm_navigation_guard(self) -> None:
        self._cancel_navigation_guard()

        def expire() -> None:
            self.state.navigation_guard = None
            self.abort(REASON_NAVIGATION_TIMEOUT)

        self.state.navigation_guard = self._scheduler.call_later(self.timings.max_navigation_wait, self._bind(expire))

    def _cancel_scheduled(self) -> None:
        if self.state.scheduled is not None:
            self.state.scheduled.cancel()
            self.state.scheduled = None

    def _cancel_navigation_guard(self) -> None:
        if self.state.navigation_guard is not None:
            self.state.navigation_guard.cancel()
            self.state.navigation_guard = None
