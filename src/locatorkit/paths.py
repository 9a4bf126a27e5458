from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .dom import ancestors, parent_element, tag_name
from .fragments import css_segment, indexed_xpath_segment, robust_xpath_segment, xpath_segment
from .validation import count_matches

if TYPE_CHECKING:
    from .dom import HtmlDocument


def _chain_below(element: Any, scope: Any | None) -> list[Any] | None:
    """Element and its ancestors up to (not including) ``scope``, top-down."""
    chain = [element]
    for ancestor in ancestors(element):
        if ancestor is scope:
            return list(reversed(chain))
        chain.append(ancestor)
    if scope is not None:
        return None
    return list(reversed(chain))


def build_full_xpath(element: Any) -> str | None:
    chain = _chain_below(element, None)
    if not chain:
        return None
    return "/" + "/".join(indexed_xpath_segment(node) for node in chain)


def build_robust_xpath(element: Any) -> str | None:
    parts: list[str] = []
    current = element
    while current is not None:
        built = robust_xpath_segment(current)
        if built is None:
            return None
        segment, stop = built
        parts.insert(0, segment)
        if stop:
            return "/".join(parts)
        current = parent_element(current)
    return "//" + "/".join(parts)


def build_relative_css(scope: Any, element: Any) -> str | None:
    chain = _chain_below(element, scope)
    if not chain:
        return None
    segments = [css_segment(node) for node in chain]
    if any(segment is None for segment in segments):
        return None
    return ":scope > " + " > ".join(segments)


def build_relative_xpath(scope: Any, element: Any) -> str | None:
    chain = _chain_below(element, scope)
    if not chain:
        return None
    segments = [xpath_segment(node) for node in chain]
    if any(segment is None for segment in segments):
        return None
    return "./" + "/".join(segments)


def build_unique_css_path(document: HtmlDocument, element: Any, scope: Any | None = None) -> str | None:
    """Shortest stepwise CSS path from ``element`` upward that is unique in the scope."""
    segments: list[str] = []
    current = element
    while current is not None and current is not scope:
        segment = css_segment(current)
        if segment is None:
            return None
        segments.insert(0, segment)

        if scope is not None:
            selector = ":scope " + " > ".join(segments)
        elif len(segments) > 1 and tag_name(current) == "html":
            selector = " > ".join(segments[1:])
        else:
            selector = " > ".join(segments)

        if count_matches(document, selector, "css", scope, max_count=2) == 1:
            return selector
        current = parent_element(current)
    return None
