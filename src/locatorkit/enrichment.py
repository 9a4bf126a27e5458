from __future__ import annotations

from dataclasses import dataclass, replace
import re
from typing import TYPE_CHECKING, Any

from .dom import class_list, parent_element, tag_name
from .models import SelectorCandidate
from .paths import build_unique_css_path
from .scoring import apply_fragility, uniqueness_adjusted_score
from .selector_rules import (
    SCOPE_PREFIX,
    build_xpath_selector,
    class_combinations,
    css_escape_identifier,
    parse_selector,
    parse_text_literal,
    scheme_for_type,
    xpath_class_condition,
    xpath_text_condition,
)
from .validation import count_info_matches, count_matches

if TYPE_CHECKING:
    from .dom import HtmlDocument

DEFAULT_MATCH_SAMPLE = 4
DEFAULT_DUPLICATE_SCORE = 60

TEXT_PARENT_MAX_DEPTH = 4
TEXT_PARENT_CLASS_LIMIT = 4
TEXT_PARENT_COMBINATION_LIMIT = 3
TEXT_PARENT_MAX_COMBINATIONS = 12

CSS_SIMPLE_PARENT_MAX_DEPTH = 4
CSS_PARENT_MAX_DEPTH = 3
CSS_PARENT_CLASS_LIMIT = 4
CSS_PARENT_COMBINATION_LIMIT = 3
CSS_PARENT_MAX_COMBINATIONS = 20

NOTE_SEPARATOR = " • "
UNIQUE_NOTE = "unique match"
_MATCH_NOTE_PATTERN = re.compile(r"^(?:unique match|matches \d+ elements)$")


@dataclass(slots=True)
class ResolutionContext:
    document: HtmlDocument
    element: Any
    scope: Any | None = None
    scope_label: str = "scope"
    max_match_sample: int = DEFAULT_MATCH_SAMPLE
    duplicate_score: int = DEFAULT_DUPLICATE_SCORE
    skip_global_check: bool = False
    allow_zero: bool = False
    enable_indexing: bool = True
    disambiguate: bool = True

    @property
    def sample_cap(self) -> int:
        return max(2, self.max_match_sample)


def append_note(reason: str, note: str) -> str:
    parts = [part for part in reason.split(NOTE_SEPARATOR) if part]
    if note and note not in parts:
        parts.append(note)
    return NOTE_SEPARATOR.join(parts)


def with_match_note(reason: str, match_count: int) -> str:
    parts = [part for part in reason.split(NOTE_SEPARATOR) if part and not _MATCH_NOTE_PATTERN.match(part)]
    parts.append(UNIQUE_NOTE if match_count == 1 else f"matches {match_count} elements")
    return NOTE_SEPARATOR.join(parts)


def _context_note(count: int, label: str) -> str:
    if count == 1:
        return f"unique within {label}"
    if count == 0:
        return f"no match within {label}"
    return f"{count} matches within {label}"


def _governing_scope(candidate: SelectorCandidate, context: ResolutionContext) -> Any | None:
    return context.scope if candidate.relation == "relative" else None


def enrich_candidate(candidate: SelectorCandidate, context: ResolutionContext) -> SelectorCandidate | None:
    """Count, disambiguate and score a raw candidate.

    Returns ``None`` when the candidate matches nothing and the context does
    not tolerate empty matches. A candidate that stays ambiguous is returned
    with ``unique=False`` rather than dropped.
    """
    document = context.document
    cap = context.sample_cap
    result = replace(candidate, relation=candidate.relation or "global")

    if not context.skip_global_check:
        match_count = count_info_matches(document, result, None, max_count=cap)
        if match_count == 0 and not context.allow_zero:
            return None
        result.match_count = match_count
        result.unique = match_count == 1
        result.reason = with_match_note(result.reason, match_count)

    if context.scope is not None:
        scoped_count = count_info_matches(document, result, context.scope, max_count=cap)
        result.reason = append_note(result.reason, _context_note(scoped_count, context.scope_label))
        if context.skip_global_check:
            if scoped_count == 0 and not context.allow_zero:
                return None
            result.match_count = scoped_count
            result.unique = scoped_count == 1
            result.reason = with_match_note(result.reason, scoped_count)

    if not result.unique and result.match_count != 0:
        result.score = min(result.score, context.duplicate_score)
        rewritten = _disambiguate(result, context) if context.disambiguate else None
        if rewritten is not None:
            result = rewritten
            recount = count_info_matches(document, result, _governing_scope(result, context), max_count=cap)
            result.match_count = recount
            result.unique = recount == 1
            result.reason = with_match_note(result.reason, recount)

    result.score = uniqueness_adjusted_score(result.score, result.match_count or 0, bool(result.unique))
    return apply_fragility(result)


def _disambiguate(candidate: SelectorCandidate, context: ResolutionContext) -> SelectorCandidate | None:
    if candidate.type == "text":
        return _disambiguate_text(candidate, context)
    if scheme_for_type(candidate.type) != "css":
        return None

    scope = _governing_scope(candidate, context)
    base = parse_selector(candidate.selector, candidate.type).value
    if base and not base.startswith(SCOPE_PREFIX):
        selector = build_simple_ancestor_css(context.document, context.element, base, scope)
        if selector:
            return _rewrite_css(candidate, selector, "parent chain")
        selector = build_ancestor_css(context.document, context.element, base, scope)
        if selector:
            return _rewrite_css(candidate, selector, "ancestor classes")

    if not context.enable_indexing:
        return None
    selector = build_unique_css_path(context.document, context.element, scope)
    if selector:
        return _rewrite_css(candidate, selector, "positional path")
    return None


def _rewrite_css(candidate: SelectorCandidate, selector: str, note: str) -> SelectorCandidate:
    return replace(candidate, selector=selector, type="css", reason=append_note(candidate.reason, note))


def _scoped(selector: str, scope: Any | None) -> str:
    return f"{SCOPE_PREFIX} {selector}" if scope is not None else selector


def _simple_parent_selector(element: Any) -> str:
    element_id = (element.get("id") or "").strip()
    if element_id:
        return f"#{css_escape_identifier(element_id)}"
    classes = class_list(element)
    if classes:
        return f".{css_escape_identifier(classes[0])}"
    return tag_name(element)


def build_simple_ancestor_css(
    document: HtmlDocument,
    element: Any,
    base: str,
    scope: Any | None = None,
) -> str | None:
    """Prefix ``base`` with one parent qualifier at a time until it is unique."""
    selector = base
    current = element
    for _depth in range(CSS_SIMPLE_PARENT_MAX_DEPTH + 1):
        candidate = _scoped(selector, scope)
        if count_matches(document, candidate, "css", scope, max_count=2) == 1:
            return candidate
        parent = parent_element(current)
        if parent is None or parent is scope:
            return None
        selector = f"{_simple_parent_selector(parent)} > {selector}"
        current = parent
    return None


def _ancestor_options(element: Any) -> list[str]:
    options: list[str] = []
    element_id = (element.get("id") or "").strip()
    if element_id:
        options.append(f"#{css_escape_identifier(element_id)}")
    tag = tag_name(element)
    combos = class_combinations(
        class_list(element),
        size_limit=CSS_PARENT_COMBINATION_LIMIT,
        max_results=CSS_PARENT_MAX_COMBINATIONS,
        class_limit=CSS_PARENT_CLASS_LIMIT,
    )
    for combo in combos:
        joined = "".join(f".{css_escape_identifier(name)}" for name in combo)
        options.append(joined)
        options.append(f"{tag}{joined}")
    options.append(tag)
    return options


def build_ancestor_css(
    document: HtmlDocument,
    element: Any,
    base: str,
    scope: Any | None = None,
) -> str | None:
    """Breadth-first search over ancestor qualifiers, shortest chains first."""
    tested: set[str] = set()
    paths = [base]
    current = parent_element(element)
    depth = 0
    while current is not None and current is not scope and depth < CSS_PARENT_MAX_DEPTH and paths:
        depth += 1
        next_paths: list[str] = []
        for option in _ancestor_options(current):
            for path in paths:
                for joined in (f"{option} > {path}", f"{option} {path}"):
                    if joined in tested:
                        continue
                    tested.add(joined)
                    candidate = _scoped(joined, scope)
                    if count_matches(document, candidate, "css", scope, max_count=2) == 1:
                        return candidate
                    next_paths.append(joined)
        paths = list(dict.fromkeys(next_paths))[:CSS_PARENT_MAX_COMBINATIONS]
        current = parent_element(current)
    return None


def _disambiguate_text(candidate: SelectorCandidate, context: ResolutionContext) -> SelectorCandidate | None:
    text = candidate.text_value or parse_text_literal(candidate.selector)
    if not text:
        return None
    expression = build_ancestor_text_xpath(
        context.document,
        context.element,
        text,
        candidate.match_mode or "exact",
        _governing_scope(candidate, context),
    )
    if expression is None:
        return None
    return replace(
        candidate,
        selector=build_xpath_selector(expression),
        type="xpath",
        xpath_value=expression,
        text_value=text,
        reason=append_note(candidate.reason, "text within ancestor"),
    )


def build_ancestor_text_xpath(
    document: HtmlDocument,
    element: Any,
    text: str,
    match_mode: str = "exact",
    scope: Any | None = None,
) -> str | None:
    condition = xpath_text_condition(text, match_mode)
    prefix = "." if scope is not None else ""
    tag = tag_name(element)

    qualified: list[str] = [
        f"{prefix}//{tag}[{xpath_class_condition(name)} and {condition}]"
        for name in class_list(element)[:TEXT_PARENT_CLASS_LIMIT]
    ]
    tag_only: list[str] = []

    current = parent_element(element)
    depth = 0
    while current is not None and current is not scope and depth < TEXT_PARENT_MAX_DEPTH:
        depth += 1
        ancestor_tag = tag_name(current)
        combos = class_combinations(
            class_list(current),
            size_limit=TEXT_PARENT_COMBINATION_LIMIT,
            max_results=TEXT_PARENT_MAX_COMBINATIONS,
            class_limit=TEXT_PARENT_CLASS_LIMIT,
        )
        for combo in combos:
            conditions = " and ".join(xpath_class_condition(name) for name in combo)
            qualified.append(f"{prefix}//{ancestor_tag}[{conditions}]//*[{condition}]")
        tag_only.append(f"{prefix}//{ancestor_tag}//*[{condition}]")
        current = parent_element(current)

    for expression in (*qualified, *tag_only):
        if count_matches(document, expression, "xpath", scope, max_count=2) == 1:
            return expression
    return None
