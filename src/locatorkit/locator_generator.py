from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Any

from .dom import class_list, same_tag_index, tag_name
from .enrichment import ResolutionContext, build_simple_ancestor_css, enrich_candidate
from .locate import find_element_with_info
from .models import LocatorPath, SelectorCandidate
from .paths import build_full_xpath, build_relative_css, build_relative_xpath, build_robust_xpath
from .scoring import rank_candidates
from .selector_rules import (
    ATTRIBUTE_PRIORITY,
    AttributeRule,
    build_text_selector,
    build_xpath_selector,
    class_combinations,
    css_escape_identifier,
    escape_css_string,
    partial_tokens,
)

if TYPE_CHECKING:
    from .dom import HtmlDocument

logger = logging.getLogger("locatorkit.generator")

GENERATION_MATCH_SAMPLE = 5

DEFAULT_TEXT_SCORE = 65
TEXT_VARIANT_SCORE = 62
TEXT_MAX_LENGTH = 60
DEFAULT_TAG_SCORE = 20
TAG_DUPLICATE_SCORE = 28
ROBUST_XPATH_SCORE = 58
ROBUST_XPATH_DUPLICATE_SCORE = 52
FULL_XPATH_SCORE = 42
FULL_XPATH_DUPLICATE_SCORE = 36
ATTRIBUTE_DUPLICATE_SCORE = 62
CLASS_DUPLICATE_SCORE = 60
FIRST_OF_TYPE_SCORE = 84
FIRST_OF_TYPE_QUALIFIED_SCORE = 88
FIRST_OF_TYPE_DUPLICATE_SCORE = 66
PARTIAL_MIN_SCORE = 60

CLASS_COMBINATION_LIMIT = 3
MAX_CLASS_COMBINATIONS = 24

RELATIVE_CSS_SCORE = 90
RELATIVE_CSS_DUPLICATE_SCORE = 68
RELATIVE_XPATH_SCORE = 86
RELATIVE_XPATH_DUPLICATE_SCORE = 66


@dataclass(slots=True)
class CandidateDraft:
    selector: str
    type: str
    score: int
    reason: str
    options: dict[str, Any] = field(default_factory=dict)

    def to_candidate(self) -> SelectorCandidate:
        return SelectorCandidate(
            selector=self.selector,
            type=self.type,
            score=self.score,
            reason=self.reason,
            relation=self.options.get("relation", "global"),
            match_mode=self.options.get("match_mode"),
            text_value=self.options.get("text_value"),
            xpath_value=self.options.get("xpath_value"),
        )


@dataclass(slots=True)
class DomAnalyzer:
    document: HtmlDocument
    element: Any

    @property
    def tag(self) -> str:
        return tag_name(self.element)

    @property
    def classes(self) -> list[str]:
        return class_list(self.element)

    def attr(self, key: str) -> str | None:
        raw = self.element.get(key)
        if raw is None:
            return None
        value = str(raw)
        return value if value.strip() else None

    def text_line(self) -> str | None:
        return self.document.first_text_line(self.element, TEXT_MAX_LENGTH)

    def is_first_of_type(self) -> bool:
        return same_tag_index(self.element) == 1


class CandidateFactory:
    def __init__(
        self,
        document: HtmlDocument,
        element: Any,
        *,
        scope: Any | None = None,
        sample: int = GENERATION_MATCH_SAMPLE,
    ) -> None:
        self.document = document
        self.element = element
        self.scope = scope
        self.analyzer = DomAnalyzer(document, element)
        self.sample = sample
        self._candidates: list[SelectorCandidate] = []
        self._seen: set[tuple[str, str]] = set()
        self._tried: set[tuple[str, str]] = set()

    def generate(self) -> list[SelectorCandidate]:
        if self.scope is not None:
            self._add_relative_strategies()
        self._add_attribute_strategies()
        self._add_class_combinations()
        self._add_text_strategy()
        self._add_robust_xpath()
        self._add_full_xpath()
        self._add_tag_fallback()
        self._add_first_of_type_shortcut()
        return list(self._candidates)

    def _context(self, **overrides: Any) -> ResolutionContext:
        return ResolutionContext(
            document=self.document,
            element=self.element,
            max_match_sample=self.sample,
            **overrides,
        )

    def _add(self, draft: CandidateDraft | None, **overrides: Any) -> SelectorCandidate | None:
        if draft is None:
            return None
        raw_key = (draft.type, draft.selector)
        if raw_key in self._tried:
            return None
        self._tried.add(raw_key)

        enriched = enrich_candidate(draft.to_candidate(), self._context(**overrides))
        if enriched is None or not self._resolves_to_element(enriched):
            return None
        _add_unique(self._candidates, enriched, self._seen)
        return enriched

    def _resolves_to_element(self, candidate: SelectorCandidate) -> bool:
        if not candidate.unique:
            return True
        if find_element_with_info(self.document, candidate.to_info(), self.scope) is self.element:
            return True
        logger.debug("Dropping %s: its unique match is another element", candidate.selector)
        return False

    def _add_relative_strategies(self) -> None:
        scoped = {"scope": self.scope, "scope_label": _scope_label(self.scope), "skip_global_check": True}

        relative_css = build_relative_css(self.scope, self.element)
        if relative_css:
            draft = CandidateDraft(relative_css, "css", RELATIVE_CSS_SCORE, "relative css", {"relation": "relative"})
            self._add(draft, duplicate_score=RELATIVE_CSS_DUPLICATE_SCORE, **scoped)

        relative_xpath = build_relative_xpath(self.scope, self.element)
        if relative_xpath:
            draft = CandidateDraft(
                build_xpath_selector(relative_xpath),
                "xpath",
                RELATIVE_XPATH_SCORE,
                "relative xpath",
                {"relation": "relative", "xpath_value": relative_xpath},
            )
            self._add(draft, duplicate_score=RELATIVE_XPATH_DUPLICATE_SCORE, **scoped)

    def _add_attribute_strategies(self) -> None:
        for rule in ATTRIBUTE_PRIORITY:
            value = self.analyzer.attr(rule.attr)
            if not value:
                continue
            self._add(_attribute_draft(rule, value), duplicate_score=ATTRIBUTE_DUPLICATE_SCORE)
            if not rule.allow_partial:
                continue
            for index, token in enumerate(partial_tokens(value)):
                if token == value:
                    continue
                draft = CandidateDraft(
                    selector=f'[{rule.attr}*="{escape_css_string(token)}"]',
                    type=f"{rule.type}-partial",
                    score=max(rule.score - 8 - index * 2, PARTIAL_MIN_SCORE),
                    reason=f"{rule.reason} (partial)",
                )
                self._add(draft, duplicate_score=ATTRIBUTE_DUPLICATE_SCORE)

    def _add_class_combinations(self) -> None:
        combos = class_combinations(
            self.analyzer.classes,
            size_limit=CLASS_COMBINATION_LIMIT,
            max_results=MAX_CLASS_COMBINATIONS,
        )
        tag = self.analyzer.tag
        for combo in combos:
            joined = "".join(f".{css_escape_identifier(name)}" for name in combo)
            size = len(combo)
            label = "class" if size == 1 else f"{size} class combination"
            self._add(
                CandidateDraft(joined, "class", 62 - min(10, size * 2), label),
                duplicate_score=CLASS_DUPLICATE_SCORE,
            )
            self._add(
                CandidateDraft(f"{tag}{joined}", "class-tag", 68 - min(10, size), f"tag + {label}"),
                duplicate_score=CLASS_DUPLICATE_SCORE,
            )

    def _add_text_strategy(self) -> None:
        text = self.analyzer.text_line()
        if not text:
            return
        options = {"match_mode": "exact", "text_value": text}
        literal = CandidateDraft(build_text_selector(text), "text", DEFAULT_TEXT_SCORE, "text match", options)
        added = self._add(literal, disambiguate=False, duplicate_score=DEFAULT_TEXT_SCORE)
        if added is None or added.unique:
            return

        variant = enrich_candidate(
            CandidateDraft(literal.selector, "text", TEXT_VARIANT_SCORE, "text match", dict(options)).to_candidate(),
            self._context(duplicate_score=TEXT_VARIANT_SCORE),
        )
        if variant is not None and variant.type != "text" and self._resolves_to_element(variant):
            _add_unique(self._candidates, variant, self._seen)

    def _add_robust_xpath(self) -> None:
        expression = build_robust_xpath(self.element)
        if not expression:
            return
        draft = CandidateDraft(
            build_xpath_selector(expression),
            "xpath",
            ROBUST_XPATH_SCORE,
            "attribute/structure xpath",
            {"xpath_value": expression},
        )
        self._add(draft, duplicate_score=ROBUST_XPATH_DUPLICATE_SCORE)

    def _add_full_xpath(self) -> None:
        expression = build_full_xpath(self.element)
        if not expression:
            return
        draft = CandidateDraft(
            build_xpath_selector(expression),
            "xpath-full",
            FULL_XPATH_SCORE,
            "absolute xpath",
            {"xpath_value": expression},
        )
        self._add(draft, duplicate_score=FULL_XPATH_DUPLICATE_SCORE, enable_indexing=False)

    def _add_tag_fallback(self) -> None:
        draft = CandidateDraft(self.analyzer.tag, "tag", DEFAULT_TAG_SCORE, "tag only")
        self._add(draft, duplicate_score=TAG_DUPLICATE_SCORE, allow_zero=True)

    def _add_first_of_type_shortcut(self) -> None:
        classes = self.analyzer.classes
        if not classes or not self.analyzer.is_first_of_type():
            return
        tag = self.analyzer.tag
        base = tag + "".join(f".{css_escape_identifier(name)}" for name in classes[:2]) + ":nth-of-type(1)"
        selector = build_simple_ancestor_css(self.document, self.element, base)
        if selector is None:
            return
        score = FIRST_OF_TYPE_SCORE if selector == base else FIRST_OF_TYPE_QUALIFIED_SCORE
        draft = CandidateDraft(selector, "css", score, "first of type")
        self._add(draft, duplicate_score=FIRST_OF_TYPE_DUPLICATE_SCORE)


def _attribute_draft(rule: AttributeRule, value: str) -> CandidateDraft:
    if rule.attr == "id":
        selector = f"#{css_escape_identifier(value)}"
    else:
        selector = f'[{rule.attr}="{escape_css_string(value)}"]'
    return CandidateDraft(selector, rule.type, rule.score, rule.reason)


def _add_unique(
    candidates: list[SelectorCandidate],
    candidate: SelectorCandidate,
    seen: set[tuple[str, str]],
) -> None:
    key = (candidate.type, candidate.selector)
    if key in seen:
        return
    seen.add(key)
    candidates.append(candidate)


def generate_selector_candidates(document: HtmlDocument, element: Any) -> list[SelectorCandidate]:
    """Ranked, duplicate-free candidates for ``element``."""
    factory = CandidateFactory(document, element)
    return rank_candidates(factory.generate())


def _scope_label(scope: Any) -> str:
    scope_id = (scope.get("id") or "").strip()
    if scope_id:
        return f"{tag_name(scope)}#{scope_id}"
    return tag_name(scope)


def generate_relative_candidates(document: HtmlDocument, scope: Any, element: Any) -> list[SelectorCandidate]:
    """Candidates for ``element`` evaluated inside ``scope``, followed by its global ones."""
    factory = CandidateFactory(document, element, scope=scope)
    return rank_candidates(factory.generate())


def build_locator_path(document: HtmlDocument, scope: Any, element: Any) -> LocatorPath | None:
    """Two-hop path: the scope's best global locator, then the element inside it."""
    scope_candidates = [item for item in generate_selector_candidates(document, scope) if item.unique]
    relative = [
        item
        for item in generate_relative_candidates(document, scope, element)
        if item.unique and item.relation == "relative"
    ]
    if not scope_candidates or not relative:
        return None
    return LocatorPath((scope_candidates[0].to_info(), relative[0].to_info()))
