from __future__ import annotations

from dataclasses import replace
import re
from typing import Iterable

from .models import SelectorCandidate
from .selector_rules import is_absolute_xpath, is_index_based_xpath, nth_step_indices, selector_type_rank

UNIQUE_MATCH_BONUS = 6
DUPLICATE_PENALTY_STEP = 6
DUPLICATE_PENALTY_CAP = 24
MIN_SCORE = 5
MIN_DUPLICATE_SCORE = 10
MAX_SCORE = 100

ABSOLUTE_XPATH_PENALTY = 18
INDEXED_XPATH_PENALTY = 8
CLASS_COMBINATION_PENALTY = 4

_CLASS_SEPARATOR = re.compile(r"(?<!\\)\.")
_CSS_POSITION_TYPES = {"css", "class", "class-tag", "tag"}
_CLASS_TYPES = {"class", "class-tag"}


def uniqueness_adjusted_score(score: int, match_count: int, unique: bool) -> int:
    if unique:
        return min(MAX_SCORE, score + UNIQUE_MATCH_BONUS)
    if match_count > 1:
        penalty = min(DUPLICATE_PENALTY_CAP, (match_count - 1) * DUPLICATE_PENALTY_STEP)
        return max(MIN_DUPLICATE_SCORE, score - penalty)
    return score


def fragility_penalties(candidate: SelectorCandidate) -> list[tuple[str, int]]:
    penalties: list[tuple[str, int]] = []
    selector = candidate.selector
    selector_type = candidate.type

    if selector_type in {"xpath", "xpath-full"}:
        expression = candidate.xpath_value or selector
        if selector_type == "xpath-full" or is_absolute_xpath(expression):
            penalties.append(("absolute xpath", ABSOLUTE_XPATH_PENALTY))
        elif is_index_based_xpath(expression):
            penalties.append(("indexed xpath step", INDEXED_XPATH_PENALTY))

    if selector_type in _CSS_POSITION_TYPES or selector_type.endswith("-partial"):
        for index in nth_step_indices(selector):
            penalty = 2 if index == 1 else min(12, 4 + index)
            penalties.append((f"position :nth-of-type({index})", penalty))

    if selector_type in _CLASS_TYPES:
        class_count = len(_CLASS_SEPARATOR.findall(selector))
        if class_count > 2:
            penalties.append((f"{class_count} class combination", (class_count - 2) * CLASS_COMBINATION_PENALTY))

    return penalties


def apply_fragility(candidate: SelectorCandidate) -> SelectorCandidate:
    penalties = fragility_penalties(candidate)
    if not penalties:
        return candidate
    total = sum(amount for _note, amount in penalties)
    notes = [note for note, _amount in penalties]
    reason = " • ".join(part for part in (candidate.reason, *notes) if part)
    return replace(candidate, score=max(MIN_SCORE, candidate.score - total), reason=reason)


def rank_key(candidate: SelectorCandidate) -> tuple[int, int, int, int, str, str]:
    return (
        0 if candidate.unique else 1,
        0 if candidate.relation == "relative" else 1,
        -selector_type_rank(candidate.type),
        -int(candidate.score),
        candidate.type,
        candidate.selector,
    )


def rank_candidates(candidates: Iterable[SelectorCandidate]) -> list[SelectorCandidate]:
    return sorted(candidates, key=rank_key)
