from typing import Callable

from locatorkit.dom import HtmlDocument
from locatorkit.executor import HtmlActionExecutor
from locatorkit.models import EventRecord, ReplayStep, SelectorInfo, StepResult
from locatorkit.replay import DispatchError, ReplayStepper
from locatorkit.session import SessionContext
from locatorkit.settings import ReplayTimings
from locatorkit.steps import execute_step


class ManualTimer:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def live(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if not timer.cancelled and not timer.fired]

    def fire(self, delay: float) -> None:
        for timer in self.live():
            if timer.delay == delay:
                timer.fired = True
                timer.callback()
                return
        raise AssertionError(f"no live timer with delay {delay}")


def _event(selector: str) -> EventRecord:
    return EventRecord(action="click", primary=SelectorInfo(selector, "css"))


def _stepper(dispatched: list[ReplayStep], scheduler: ManualScheduler, **callbacks) -> ReplayStepper:
    return ReplayStepper(dispatched.append, scheduler, timings=ReplayTimings(), **callbacks)


def test_navigation_step_waits_for_content_before_next_step() -> None:
    dispatched: list[ReplayStep] = []
    finished: list[int] = []
    scheduler = ManualScheduler()
    stepper = _stepper(dispatched, scheduler, on_finished=finished.append)

    stepper.start([_event("#a"), _event("#b"), _event("#c")])
    assert [step.index for step in dispatched] == [0]

    stepper.step_result(StepResult(0, True))
    scheduler.fire(0.15)
    stepper.step_result(StepResult(1, True, navigation=True))

    assert stepper.phase == "awaiting_navigation"
    assert len(dispatched) == 2
    assert [timer.delay for timer in scheduler.live()] == [15.0]

    stepper.content_ready()
    assert [timer.delay for timer in scheduler.live()] == [0.8]
    scheduler.fire(0.8)
    assert [step.index for step in dispatched] == [0, 1, 2]

    stepper.step_result(StepResult(2, True))
    assert finished == [3]
    assert stepper.outcome == "finished"
    assert stepper.phase == "idle"


def test_navigation_watchdog_aborts_run() -> None:
    dispatched: list[ReplayStep] = []
    aborted: list[str] = []
    scheduler = ManualScheduler()
    stepper = _stepper(dispatched, scheduler, on_aborted=aborted.append)

    stepper.start([_event("#a"), _event("#b")])
    stepper.step_result(StepResult(0, True, navigation=True))
    scheduler.fire(15.0)

    assert aborted == ["navigation_timeout"]
    assert stepper.abort_reason == "navigation_timeout"
    assert len(dispatched) == 1
    assert scheduler.live() == []


def test_failed_step_aborts_with_its_reason() -> None:
    dispatched: list[ReplayStep] = []
    aborted: list[str] = []
    results: list[StepResult] = []
    stepper = _stepper(dispatched, ManualScheduler(), on_aborted=aborted.append, on_step_result=results.append)

    stepper.start([_event("#a"), _event("#b")])
    stepper.step_result(StepResult(0, False, "not_found"))

    assert aborted == ["not_found"]
    assert [result.index for result in results] == [0]
    assert len(dispatched) == 1


def test_stale_results_and_timers_are_ignored() -> None:
    dispatched: list[ReplayStep] = []
    scheduler = ManualScheduler()
    stepper = _stepper(dispatched, scheduler)

    stepper.start([_event("#a"), _event("#b")])
    stepper.step_result(StepResult(3, True))
    assert stepper.phase == "step_pending"

    stepper.step_result(StepResult(0, True))
    stepper.step_result(StepResult(0, True))
    pending_timer = scheduler.live()[0]
    stepper.abort("aborted_by_user")
    pending_timer.callback()

    assert len(dispatched) == 1
    assert stepper.outcome == "aborted"
    assert stepper.phase == "idle"


def test_start_while_running_is_rejected() -> None:
    dispatched: list[ReplayStep] = []
    stepper = _stepper(dispatched, ManualScheduler())

    assert stepper.start([_event("#a")])
    assert not stepper.start([_event("#b")])
    assert len(dispatched) == 1


def test_dispatch_error_waits_for_content_ready() -> None:
    attempts: list[int] = []
    scheduler = ManualScheduler()

    def dispatch(step: ReplayStep) -> None:
        attempts.append(step.index)
        if len(attempts) == 1:
            raise DispatchError("page is navigating")

    stepper = ReplayStepper(dispatch, scheduler)
    stepper.start([_event("#a")])

    assert stepper.phase == "awaiting_content"
    stepper.content_ready()
    scheduler.fire(0.25)

    assert attempts == [0, 0]
    assert stepper.phase == "step_pending"
    assert scheduler.live() == []


def test_undelivered_step_aborts_when_content_never_arrives() -> None:
    aborted: list[str] = []
    scheduler = ManualScheduler()

    def dispatch(step: ReplayStep) -> None:
        raise DispatchError("page is closed")

    stepper = ReplayStepper(dispatch, scheduler, on_aborted=aborted.append)
    stepper.start([_event("#a"), _event("#b")])

    assert stepper.phase == "awaiting_content"
    assert [timer.delay for timer in scheduler.live()] == [15.0]
    scheduler.fire(15.0)

    assert aborted == ["navigation_timeout"]
    assert stepper.outcome == "aborted"
    assert stepper.phase == "idle"
    assert scheduler.live() == []


def test_missing_target_fails_once_and_halts_replay() -> None:
    doc = HtmlDocument.from_html("<html><body><a id='go'>Go</a></body></html>", "https://shop.test/")
    session = SessionContext()
    executor = HtmlActionExecutor(doc)
    scheduler = ManualScheduler()
    results: list[StepResult] = []
    aborted: list[str] = []
    timings = ReplayTimings(step_timeout=0.0, settle_delay=0.0)

    def dispatch(step: ReplayStep) -> None:
        stepper.step_result(execute_step(doc, step, executor, session, timings=timings))

    stepper = ReplayStepper(
        dispatch, scheduler, timings=timings, on_step_result=results.append, on_aborted=aborted.append
    )
    stepper.start(
        [
            EventRecord(action="click", primary=SelectorInfo("#checkout", "id")),
            EventRecord(action="click", primary=SelectorInfo("#go", "id")),
        ]
    )

    assert [(result.index, result.ok, result.reason) for result in results] == [(0, False, "not_found")]
    assert aborted == ["not_found"]
    assert stepper.phase == "idle"
    assert scheduler.live() == []


def test_reset_cancels_timers_and_clears_outcome() -> None:
    scheduler = ManualScheduler()
    stepper = _stepper([], scheduler)
    stepper.start([_event("#a"), _event("#b")])
    stepper.step_result(StepResult(0, True, navigation=True))

    stepper.reset()

    assert scheduler.live() == []
    assert stepper.outcome is None
    assert stepper.phase == "idle"


def test_replay_drives_steps_against_a_document() -> None:
    doc = HtmlDocument.from_html(
        "<html><body><input id='q'><a id='go'>Search</a></body></html>", "https://shop.test/"
    )
    doc.events.subscribe(
        "click",
        lambda event: doc.load("<html><body><p id='hits'>3 results</p></body></html>", "https://shop.test/results"),
    )
    doc.events.subscribe("load", lambda event: stepper.content_ready())
    session = SessionContext()
    executor = HtmlActionExecutor(doc)
    scheduler = ManualScheduler()
    results: list[StepResult] = []
    timings = ReplayTimings(step_timeout=0.0, settle_delay=0.0)

    def dispatch(step: ReplayStep) -> None:
        stepper.step_result(execute_step(doc, step, executor, session, timings=timings))

    stepper = ReplayStepper(dispatch, scheduler, timings=timings, on_step_result=results.append)
    session.attach_replay(stepper)
    stepper.start(
        [
            EventRecord(action="fillText", primary=SelectorInfo("#q", "id"), value="lamp"),
            EventRecord(action="click", primary=SelectorInfo("#go", "id")),
            EventRecord(action="extractText", primary=SelectorInfo("#hits", "id")),
        ]
    )
    scheduler.fire(0.15)
    assert results[-1].navigation
    stepper.content_ready()
    scheduler.fire(0.8)

    assert [result.ok for result in results] == [True, True, True]
    assert results[-1].value == "3 results"
    assert stepper.outcome == "finished"
