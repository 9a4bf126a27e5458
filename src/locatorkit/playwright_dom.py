from __future__ import annotations

from dataclasses import replace
import logging
from typing import TYPE_CHECKING, Any, Sequence

from playwright.sync_api import Error as PlaywrightError

from .dom import HtmlDocument
from .executor import SUPPORTED_ACTIONS
from .locator_generator import generate_relative_candidates, generate_selector_candidates
from .models import (
    REASON_ACTION_ERROR,
    REASON_DISABLED,
    REASON_ELEMENT_DETACHED,
    REASON_MISSING_ATTRIBUTE,
    REASON_NOT_VISIBLE,
    REASON_UNSUPPORTED_ACTION,
    REASON_UNSUPPORTED_ELEMENT,
    ActionResult,
    SelectorCandidate,
)
from .scoring import rank_candidates
from .selector_rules import SCOPE_PREFIX, ParsedSelector, xpath_text_condition
from .validation import count_info_matches

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle, Frame, Page

CAPTURE_MARKER = "data-locatorkit-capture"
ACTION_TIMEOUT_MS = 5000

_CONTAINS_SCRIPT = "(scope, node) => scope !== node && scope.contains(node)"
_SET_STYLE_SCRIPT = (
    "(node, style) => style === null ? node.removeAttribute('style') : node.setAttribute('style', style)"
)
_MARK_SCRIPT = "(node, [name, value]) => node.setAttribute(name, value)"
_UNMARK_SCRIPT = "(node, name) => node.removeAttribute(name)"


class PlaywrightDocument:
    """Live-page counterpart of :class:`HtmlDocument` over a sync Playwright page.

    Exposes the query and visibility surface the match counter, the locator
    and the step runner rely on. ``load_count`` advances on every main-frame
    navigation, which is how a step detects that its action left the page.
    """

    def __init__(self, page: Page) -> None:
        self.page = page
        self.load_count = 1
        self.logger = logging.getLogger("locatorkit.playwright")
        page.on("framenavigated", self._on_frame_navigated)

    @property
    def url(self) -> str:
        return self.page.url

    @property
    def title(self) -> str:
        try:
            return self.page.title()
        except PlaywrightError:
            return ""

    def _on_frame_navigated(self, frame: Frame) -> None:
        if frame == self.page.main_frame:
            self.load_count += 1

    def query_all(
        self,
        parsed: ParsedSelector,
        scope: ElementHandle | None = None,
        match_mode: str | None = None,
    ) -> list[ElementHandle]:
        root: Page | ElementHandle = scope if scope is not None else self.page
        if parsed.scheme == "css":
            if parsed.value.startswith(SCOPE_PREFIX) and scope is None:
                return []
            selector = f"css={parsed.value}"
        elif parsed.scheme == "xpath":
            selector = f"xpath={parsed.value}"
        else:
            selector = f"xpath=.//*[{xpath_text_condition(parsed.value, match_mode or 'exact')}]"

        try:
            handles = root.query_selector_all(selector)
            if scope is None:
                return handles
            return [handle for handle in handles if self.contains(scope, handle)]
        except PlaywrightError as exc:
            self.logger.debug("Selector %r could not be evaluated: %s", parsed.value, exc)
            return []

    def is_visible(self, node: ElementHandle) -> bool:
        try:
            return node.is_visible()
        except PlaywrightError:
            return False

    def is_attached(self, node: ElementHandle) -> bool:
        try:
            return bool(node.evaluate("node => node.isConnected"))
        except PlaywrightError:
            return False

    def contains(self, scope: ElementHandle, node: ElementHandle) -> bool:
        return bool(scope.evaluate(_CONTAINS_SCRIPT, node))

    def scroll_into_view(self, node: ElementHandle) -> None:
        try:
            node.scroll_into_view_if_needed(timeout=ACTION_TIMEOUT_MS)
            node.focus()
        except PlaywrightError as exc:
            self.logger.debug("Scroll into view failed: %s", exc)

    def get_style(self, node: ElementHandle) -> str | None:
        return node.get_attribute("style")

    def set_style(self, node: ElementHandle, style: str | None) -> None:
        node.evaluate(_SET_STYLE_SCRIPT, style)

    def rendered_text(self, node: ElementHandle) -> str:
        return node.inner_text()


def capture_snapshot(page: Page, handles: Sequence[ElementHandle]) -> tuple[HtmlDocument, list[Any | None]]:
    """Serialize the page with each handle marked and map the marks back to snapshot nodes."""
    for position, handle in enumerate(handles):
        handle.evaluate(_MARK_SCRIPT, [CAPTURE_MARKER, str(position)])
    try:
        markup = page.content()
    finally:
        for handle in handles:
            try:
                handle.evaluate(_UNMARK_SCRIPT, CAPTURE_MARKER)
            except PlaywrightError:
                pass

    document = HtmlDocument.from_html(markup, page.url)
    nodes: list[Any | None] = [None] * len(handles)
    for node in document.root.xpath(f"//*[@{CAPTURE_MARKER}]"):
        position = int(node.get(CAPTURE_MARKER))
        del node.attrib[CAPTURE_MARKER]
        if 0 <= position < len(nodes):
            nodes[position] = node
    return document, nodes


def capture_element(page: Page, handle: ElementHandle) -> tuple[HtmlDocument, Any | None]:
    document, nodes = capture_snapshot(page, [handle])
    return document, nodes[0]


def revalidate_candidates(
    live: PlaywrightDocument,
    candidates: Sequence[SelectorCandidate],
    scope: ElementHandle | None = None,
    *,
    max_count: int = 5,
) -> list[SelectorCandidate]:
    """Recount candidates against the live page, which also sees script-applied styles."""
    checked: list[SelectorCandidate] = []
    for candidate in candidates:
        governing = scope if candidate.relation == "relative" else None
        if candidate.relation == "relative" and scope is None:
            checked.append(candidate)
            continue
        count = count_info_matches(live, candidate, governing, max_count=max_count)
        if count == 0:
            live.logger.debug("Dropping %s: no visible match in the live page", candidate.selector)
            continue
        checked.append(replace(candidate, match_count=count, unique=count == 1))
    return rank_candidates(checked)


def generate_candidates_for_handle(
    live: PlaywrightDocument,
    handle: ElementHandle,
    scope: ElementHandle | None = None,
) -> list[SelectorCandidate]:
    handles = [handle] if scope is None else [handle, scope]
    snapshot, nodes = capture_snapshot(live.page, handles)
    element = nodes[0]
    if element is None:
        live.logger.warning("Captured element was not found in the page snapshot")
        return []
    if scope is not None and nodes[1] is not None:
        candidates = generate_relative_candidates(snapshot, nodes[1], element)
    else:
        candidates = generate_selector_candidates(snapshot, element)
    return revalidate_candidates(live, candidates, scope)


class PlaywrightActionExecutor:
    """Performs recorded actions through Playwright element handles."""

    def __init__(self, document: PlaywrightDocument, *, timeout_ms: int = ACTION_TIMEOUT_MS) -> None:
        self.document = document
        self.timeout_ms = timeout_ms

    def perform(self, element: ElementHandle, action: str, value: str | None = None) -> ActionResult:
        if action not in SUPPORTED_ACTIONS:
            return ActionResult(False, REASON_UNSUPPORTED_ACTION)
        if element is None or not self.document.is_attached(element):
            return ActionResult(False, REASON_ELEMENT_DETACHED)
        try:
            if action == "click":
                return self._click(element)
            if action == "fillText":
                return self._fill(element, value or "")
            if action == "extractText":
                return ActionResult(True, extracted_value=element.inner_text())
            name = (value or "").strip()
            if not name:
                return ActionResult(False, REASON_MISSING_ATTRIBUTE)
            return ActionResult(True, extracted_value=element.get_attribute(name))
        except PlaywrightError as exc:
            return ActionResult(False, f"{REASON_ACTION_ERROR}: {exc}")

    def _click(self, element: ElementHandle) -> ActionResult:
        if not element.is_visible():
            return ActionResult(False, REASON_NOT_VISIBLE)
        if element.is_disabled():
            return ActionResult(False, REASON_DISABLED)
        element.click(timeout=self.timeout_ms)
        return ActionResult(True)

    def _fill(self, element: ElementHandle, text: str) -> ActionResult:
        if not element.is_visible():
            return ActionResult(False, REASON_NOT_VISIBLE)
        if element.is_disabled():
            return ActionResult(False, REASON_DISABLED)
        try:
            editable = element.is_editable()
        except PlaywrightError:
            # Non form elements raise instead of reporting False.
            editable = False
        if not editable:
            return ActionResult(False, REASON_UNSUPPORTED_ELEMENT)
        element.fill(text, timeout=self.timeout_ms)
        return ActionResult(True, extracted_value=text)
