from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any

from .dom import QUERY_ERRORS
from .models import SelectorCandidate, SelectorInfo
from .selector_rules import ParsedSelector, parse_selector

if TYPE_CHECKING:
    from .dom import HtmlDocument
    from .playwright_dom import PlaywrightDocument

logger = logging.getLogger("locatorkit.validation")


@dataclass(frozen=True, slots=True)
class LocatorValidation:
    unique: bool
    match_count: int
    message: str


def count_matches(
    document: HtmlDocument | PlaywrightDocument,
    selector: str,
    selector_type: str | None = None,
    scope: Any | None = None,
    *,
    match_mode: str | None = None,
    max_count: int | None = None,
) -> int:
    text = str(selector or "").strip()
    if not text:
        return 0
    parsed = parse_selector(text, selector_type)
    if not parsed.value:
        return 0
    return count_parsed_matches(document, parsed, scope, match_mode=match_mode, max_count=max_count)


def count_parsed_matches(
    document: HtmlDocument | PlaywrightDocument,
    parsed: ParsedSelector,
    scope: Any | None = None,
    *,
    match_mode: str | None = None,
    max_count: int | None = None,
) -> int:
    """Count distinct visible matches, stopping once ``max_count`` is reached."""
    try:
        nodes = document.query_all(parsed, scope, match_mode)
    except QUERY_ERRORS as exc:
        logger.debug("Selector %r could not be evaluated: %s", parsed.value, exc)
        return 0

    count = 0
    for node in nodes:
        if not document.is_visible(node):
            continue
        count += 1
        if max_count is not None and count >= max_count:
            break
    return count


def count_info_matches(
    document: HtmlDocument | PlaywrightDocument,
    info: SelectorInfo | SelectorCandidate,
    scope: Any | None = None,
    *,
    max_count: int | None = None,
) -> int:
    if info.type == "text" and info.text_value:
        parsed = ParsedSelector("text", info.text_value)
    elif info.type in {"xpath", "xpath-full"} and info.xpath_value:
        parsed = ParsedSelector("xpath", info.xpath_value)
    else:
        parsed = parse_selector(info.selector, info.type)
    mode = info.match_mode if info.type == "text" else None
    return count_parsed_matches(document, parsed, scope, match_mode=mode, max_count=max_count)


def validate_candidate(
    document: HtmlDocument | PlaywrightDocument,
    candidate: SelectorCandidate | SelectorInfo,
    scope: Any | None = None,
) -> LocatorValidation:
    match_count = count_info_matches(document, candidate, scope, max_count=2)
    if match_count == 0:
        return LocatorValidation(False, 0, "Locator does not match any visible element.")
    if match_count > 1:
        return LocatorValidation(False, match_count, "Locator is not unique in DOM.")
    return LocatorValidation(True, 1, "Locator is unique.")
