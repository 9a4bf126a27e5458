from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING, Any, Callable, Sequence

from .models import REASON_ACTION_ERROR, EventRecord, ReplayStep, StepResult
from .replay import DispatchError, ReplayStepper
from .runtime_checks import _is_closed_target_error, _is_missing_browser_error, normalize_url
from .session import SessionContext
from .settings import ReplayTimings
from .steps import execute_step

if TYPE_CHECKING:
    from playwright.sync_api import Browser, BrowserContext, Page, Playwright

    from .playwright_dom import PlaywrightActionExecutor, PlaywrightDocument

StatusCallback = Callable[[str], None]
StepResultCallback = Callable[[StepResult], None]
FinishedCallback = Callable[[int], None]
AbortedCallback = Callable[[str], None]

REASON_ABORTED_BY_USER = "aborted_by_user"


class QueuedTimer:
    """Timer whose callback is delivered through the worker's command queue."""

    def __init__(self, commands: queue.Queue[tuple[str, Any]], delay: float, callback: Callable[[], None]) -> None:
        self._commands = commands
        self._callback = callback
        self.cancelled = False
        self._timer = threading.Timer(max(0.0, delay), self._post)
        self._timer.daemon = True

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self.cancelled = True
        self._timer.cancel()

    def fire(self) -> None:
        if not self.cancelled:
            self._callback()

    def _post(self) -> None:
        self._commands.put(("timer", self))


class QueueScheduler:
    def __init__(self, commands: queue.Queue[tuple[str, Any]]) -> None:
        self._commands = commands

    def call_later(self, delay: float, callback: Callable[[], None]) -> QueuedTimer:
        timer = QueuedTimer(self._commands, delay, callback)
        timer.start()
        return timer


class BrowserManager:
    """Runs Playwright replay on a dedicated worker thread.

    Public methods only enqueue commands; the page, the stepper and all timer
    callbacks are touched exclusively from the worker thread.
    """

    def __init__(
        self,
        on_status: StatusCallback,
        *,
        on_step_result: StepResultCallback | None = None,
        on_finished: FinishedCallback | None = None,
        on_aborted: AbortedCallback | None = None,
        timings: ReplayTimings | None = None,
        headless: bool = True,
    ) -> None:
        self._on_status = on_status
        self._on_step_result = on_step_result or (lambda _result: None)
        self._on_finished = on_finished or (lambda _total: None)
        self._on_aborted = on_aborted or (lambda _reason: None)
        self.timings = timings or ReplayTimings()
        self.headless = headless
        self.logger = logging.getLogger("locatorkit.browser")

        self._commands: queue.Queue[tuple[str, Any]] = queue.Queue()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._started = False
        self._running = True
        self.idle = threading.Event()
        self.idle.set()

        self.session = SessionContext()
        self.stepper = ReplayStepper(
            self._dispatch_step,
            QueueScheduler(self._commands),
            timings=self.timings,
            on_step_result=self._on_step_result,
            on_finished=self._handle_finished,
            on_aborted=self._handle_aborted,
        )
        self.session.attach_replay(self.stepper)

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._document: PlaywrightDocument | None = None
        self._executor: PlaywrightActionExecutor | None = None

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._thread.start()

    def launch(self, url: str) -> None:
        self._commands.put(("launch", url.strip()))

    def replay(self, events: Sequence[EventRecord]) -> None:
        self.idle.clear()
        self._commands.put(("replay", list(events)))

    def abort(self, reason: str = REASON_ABORTED_BY_USER) -> None:
        self._commands.put(("abort", reason))

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        return self.idle.wait(timeout)

    def shutdown(self) -> None:
        if not self._started:
            return
        self._commands.put(("shutdown", None))
        self._thread.join(timeout=5)

    def _run(self) -> None:
        try:
            from playwright.sync_api import sync_playwright
        except Exception as exc:
            self._on_status(f"Playwright is not available: {exc}")
            self.idle.set()
            return

        try:
            with sync_playwright() as playwright:
                self._playwright = playwright
                self._event_loop()
        except Exception as exc:
            self.logger.exception("Browser worker crashed")
            self._on_status(f"Browser worker crashed: {exc}")
        finally:
            self.session.reset()
            self._cleanup()
            self.idle.set()

    def _event_loop(self) -> None:
        while self._running:
            try:
                command, payload = self._commands.get(timeout=0.1)
                self._handle_command(command, payload)
            except queue.Empty:
                self._pump_events()
            except Exception as exc:
                self.logger.exception("Command failed")
                self._on_status(f"Command error: {exc}")

    def _handle_command(self, command: str, payload: Any) -> None:
        if command == "shutdown":
            self.stepper.reset()
            self._running = False
            return
        if command == "launch":
            self._handle_launch(str(payload))
            return
        if command == "replay":
            self._handle_replay(payload)
            return
        if command == "abort":
            self.stepper.abort(str(payload))
            return
        if command == "timer":
            payload.fire()
            return
        if command == "step_result":
            self.stepper.step_result(payload)
            return
        if command == "content_ready":
            self.stepper.content_ready()

    def _handle_launch(self, raw_url: str) -> None:
        if not self._playwright:
            self._on_status("Playwright is not available.")
            return

        url = normalize_url(raw_url)
        if not url:
            self._on_status("Please enter a URL.")
            return

        self.stepper.reset()
        self._close_page_and_context()
        if not self._ensure_browser():
            return

        try:
            self._context = self._browser.new_context() if self._browser else None
        except Exception as exc:
            if not _is_closed_target_error(exc):
                self._on_status(f"Failed to create browser context: {exc}")
                return
            self._on_status("Managed browser was closed. Relaunching...")
            self._browser = None
            if not self._ensure_browser():
                return
            self._context = self._browser.new_context() if self._browser else None

        if not self._context:
            self._on_status("Failed to create browser context.")
            return

        from .playwright_dom import PlaywrightActionExecutor, PlaywrightDocument

        self._page = self._context.new_page()
        self._page.on("load", lambda: self._commands.put(("content_ready", None)))
        self._document = PlaywrightDocument(self._page)
        self._executor = PlaywrightActionExecutor(self._document)
        self._on_status(f"Opening {url}")
        self._page.goto(url, wait_until="load")
        self._on_status(f"Loaded {self._page.title()} ({self._page.url})")

    def _handle_replay(self, events: list[EventRecord]) -> None:
        if not self._page or not self._document:
            self._on_status("Launch a page before replaying.")
            self.idle.set()
            return
        if not events:
            self._on_status("Nothing to replay.")
            self.idle.set()
            return
        if not self.stepper.start(events):
            self._on_status("A replay is already running.")

    def _dispatch_step(self, step: ReplayStep) -> None:
        page = self._page
        if page is None or self._document is None or self._executor is None or page.is_closed():
            raise DispatchError("page is not available")

        try:
            result = execute_step(
                self._document,
                step,
                self._executor,
                self.session,
                timings=self.timings,
                sleep=self._page_sleep,
            )
        except Exception as exc:
            if _is_closed_target_error(exc):
                raise DispatchError(str(exc)) from exc
            self.logger.exception("Step %s failed unexpectedly", step.index + 1)
            result = StepResult(step.index, False, f"{REASON_ACTION_ERROR}: {exc}")

        self._commands.put(("step_result", result))
        if not result.navigation:
            return
        try:
            page.wait_for_load_state("load", timeout=self.timings.max_navigation_wait * 1000)
        except Exception as exc:
            self.logger.debug("Load state not reached after step %s: %s", step.index + 1, exc)
            return
        self._commands.put(("content_ready", None))

    def _page_sleep(self, seconds: float) -> None:
        if self._page is None:
            return
        self._page.wait_for_timeout(seconds * 1000)

    def _handle_finished(self, total: int) -> None:
        self._on_status(f"Replay finished: {total} step(s).")
        self._on_finished(total)
        self.idle.set()

    def _handle_aborted(self, reason: str) -> None:
        self._on_status(f"Replay aborted: {reason}")
        self._on_aborted(reason)
        self.idle.set()

    def _pump_events(self) -> None:
        if not self._page:
            return
        try:
            self._page.wait_for_timeout(50)
        except Exception:
            pass

    def _close_page_and_context(self) -> None:
        if self._page:
            try:
                self._page.close()
            except Exception:
                pass
        self._page = None
        self._document = None
        self._executor = None

        if self._context:
            try:
                self._context.close()
            except Exception:
                pass
        self._context = None

    def _cleanup(self) -> None:
        self._close_page_and_context()
        if self._browser:
            try:
                self._browser.close()
            except Exception:
                pass
            self._browser = None

    def _ensure_browser(self) -> bool:
        if self._browser and self._is_browser_connected():
            return True
        self._browser = None
        try:
            self._browser = self._playwright.chromium.launch(headless=self.headless) if self._playwright else None
            return self._browser is not None
        except Exception as exc:
            if _is_missing_browser_error(exc):
                self._on_status("Chromium not installed. Run: python -m playwright install chromium")
                return False
            self._on_status(f"Failed to launch Chromium: {exc}")
            return False

    def _is_browser_connected(self) -> bool:
        if not self._browser:
            return False
        try:
            return bool(self._browser.is_connected())
        except Exception:
            return False
