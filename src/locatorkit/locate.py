from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import TYPE_CHECKING, Any, Sequence

from .dom import QUERY_ERRORS
from .models import EventRecord, LocatorPath, SelectorInfo
from .retry import Clock, RetryPolicy, Sleeper
from .selector_rules import ParsedSelector, infer_selector_type, parse_selector

if TYPE_CHECKING:
    from .dom import HtmlDocument
    from .playwright_dom import PlaywrightDocument

    Document = HtmlDocument | PlaywrightDocument

logger = logging.getLogger("locatorkit.locate")

DEFAULT_LOCATE_TIMEOUT = 10.0
LOCATE_RETRY_INTERVAL = 0.2


@dataclass(frozen=True, slots=True)
class LocateResult:
    element: Any
    info: SelectorInfo | None


def _parsed_for_info(info: SelectorInfo) -> tuple[ParsedSelector, str | None]:
    if info.type == "text" and info.text_value:
        return ParsedSelector("text", info.text_value), info.match_mode or "contains"
    if info.type in {"xpath", "xpath-full"} and info.xpath_value:
        return ParsedSelector("xpath", info.xpath_value), None
    parsed = parse_selector(info.selector, info.type)
    if parsed.scheme == "text":
        return parsed, info.match_mode or "contains"
    return parsed, None


def _first_match(document: Document, parsed: ParsedSelector, scope: Any | None, match_mode: str | None) -> Any | None:
    try:
        nodes = document.query_all(parsed, scope, match_mode)
    except QUERY_ERRORS as exc:
        logger.debug("Selector %r could not be evaluated: %s", parsed.value, exc)
        return None
    if not nodes:
        return None
    for node in nodes:
        if document.is_visible(node):
            return node
    return nodes[0]


def find_element_by_selector(document: Document, selector: str, selector_type: str | None = None) -> Any | None:
    if not selector or not selector.strip():
        return None
    parsed = parse_selector(selector, selector_type or infer_selector_type(selector))
    return _first_match(document, parsed, None, "contains" if parsed.scheme == "text" else None)


def find_element_with_info(document: Document, info: SelectorInfo, scope: Any | None = None) -> Any | None:
    """Resolve one entry; a relative entry without a scope cannot resolve."""
    if info.is_relative and scope is None:
        return None
    parsed, match_mode = _parsed_for_info(info)
    if not parsed.value:
        return None
    return _first_match(document, parsed, scope if info.is_relative else None, match_mode)


def find_element_in_scope(document: Document, info: SelectorInfo, scope: Any | None = None) -> Any | None:
    if info.is_relative:
        return find_element_with_info(document, info, scope)
    return find_element_with_info(document, info)


def find_element_by_path(document: Document, path: LocatorPath | Sequence[SelectorInfo], scope: Any | None = None) -> Any | None:
    entries = path.entries if isinstance(path, LocatorPath) else tuple(path)
    if not entries:
        return None
    current = scope
    for hop, info in enumerate(entries):
        found = find_element_in_scope(document, info, current)
        if found is None:
            logger.debug("Locator path failed at hop %s: %s", hop, info.selector)
            return None
        current = found
    return current


def collect_selector_infos(event: EventRecord) -> list[SelectorInfo]:
    """Primary first, then the stored candidates in rank order, then the bare tag."""
    infos: list[SelectorInfo] = []
    seen: set[tuple[str, str]] = set()

    def push(info: SelectorInfo | None) -> None:
        if info is None or not info.selector:
            return
        if info.key() in seen:
            return
        seen.add(info.key())
        infos.append(info)

    push(event.primary)
    for candidate in event.candidates:
        push(candidate.to_info())
    if event.tag:
        push(SelectorInfo(selector=event.tag.lower(), type="tag"))
    return infos


def _scan(document: Document, target: SelectorInfo | Sequence[SelectorInfo] | LocatorPath, scope: Any | None) -> LocateResult | None:
    if isinstance(target, LocatorPath):
        element = find_element_by_path(document, target, scope)
        return LocateResult(element, target.entries[-1]) if element is not None else None

    infos = (target,) if isinstance(target, SelectorInfo) else tuple(target)
    for info in infos:
        element = find_element_in_scope(document, info, scope)
        if element is not None:
            return LocateResult(element, info)
    return None


def locate(
    document: Document,
    target: SelectorInfo | Sequence[SelectorInfo] | LocatorPath,
    scope: Any | None = None,
    *,
    timeout: float = DEFAULT_LOCATE_TIMEOUT,
    interval: float = LOCATE_RETRY_INTERVAL,
    clock: Clock = time.monotonic,
    sleep: Sleeper = time.sleep,
) -> LocateResult | None:
    """Resolve ``target`` to a live element, rescanning until ``timeout`` elapses."""
    policy = RetryPolicy(timeout=timeout, interval=interval)
    result = policy.run(lambda: _scan(document, target, scope), clock=clock, sleep=sleep)
    if result is None:
        logger.debug("No locator resolved within %.2fs", timeout)
    return result


def locate_element_for_event(
    document: Document,
    event: EventRecord,
    *,
    timeout: float = DEFAULT_LOCATE_TIMEOUT,
    interval: float = LOCATE_RETRY_INTERVAL,
    clock: Clock = time.monotonic,
    sleep: Sleeper = time.sleep,
) -> LocateResult | None:
    target: LocatorPath | list[SelectorInfo] = event.path if event.path else collect_selector_infos(event)
    if not isinstance(target, LocatorPath) and not target:
        return None
    return locate(document, target, timeout=timeout, interval=interval, clock=clock, sleep=sleep)
