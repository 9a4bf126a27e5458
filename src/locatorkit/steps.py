from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from .locate import LOCATE_RETRY_INTERVAL, locate_element_for_event
from .models import REASON_NOT_FOUND, ReplayStep, StepResult
from .retry import Clock, Sleeper
from .settings import ReplayTimings

if TYPE_CHECKING:
    from .dom import HtmlDocument
    from .executor import ActionExecutor
    from .playwright_dom import PlaywrightDocument
    from .session import SessionContext

logger = logging.getLogger("locatorkit.steps")


def action_argument(step: ReplayStep) -> str | None:
    event = step.event
    if event.action == "readAttribute":
        return event.attribute_name or event.value
    return event.value


def execute_step(
    document: HtmlDocument | PlaywrightDocument,
    step: ReplayStep,
    executor: ActionExecutor,
    session: SessionContext,
    *,
    timings: ReplayTimings | None = None,
    clock: Clock = time.monotonic,
    sleep: Sleeper = time.sleep,
) -> StepResult:
    """Locate the step's element and perform its action in the page."""
    timings = timings or ReplayTimings()
    event = step.event
    primary = event.primary.selector if event.primary else None

    located = locate_element_for_event(
        document,
        event,
        timeout=timings.step_timeout,
        interval=timings.locate_interval or LOCATE_RETRY_INTERVAL,
        clock=clock,
        sleep=sleep,
    )
    if located is None:
        logger.info("Step %s: no locator resolved for %s", step.index + 1, primary)
        return StepResult(step.index, False, REASON_NOT_FOUND, selector=primary)

    element = located.element
    selector = located.info.selector if located.info else primary
    document.scroll_into_view(element)
    if timings.settle_delay > 0:
        sleep(timings.settle_delay)

    loads_before = document.load_count
    session.highlight(document, element)
    try:
        outcome = executor.perform(element, event.action, action_argument(step))
    finally:
        session.clear_highlight()
    navigation = document.load_count != loads_before

    if not outcome.ok:
        logger.info("Step %s: %s failed (%s)", step.index + 1, event.action, outcome.reason)
        return StepResult(step.index, False, outcome.reason, navigation=navigation, selector=selector)
    return StepResult(
        step.index,
        True,
        navigation=navigation,
        selector=selector,
        value=outcome.extracted_value,
    )
