from __future__ import annotations

from typing import Any

from .dom import class_list, same_tag_index, same_tag_siblings, tag_name
from .selector_rules import (
    XPATH_ATTRIBUTE_PRIORITY,
    css_escape_identifier,
    xpath_class_condition,
    xpath_literal,
)

SEGMENT_CLASS_LIMIT = 2


def css_segment(element: Any) -> str | None:
    """Single-node CSS step: id, else up to two classes, else sibling position."""
    tag = tag_name(element)
    if not tag:
        return None

    element_id = (element.get("id") or "").strip()
    if element_id:
        return f"{tag}#{css_escape_identifier(element_id)}"

    classes = class_list(element)[:SEGMENT_CLASS_LIMIT]
    if classes:
        segment = tag + "".join(f".{css_escape_identifier(name)}" for name in classes)
        wanted = set(classes)
        peers = [
            sibling
            for sibling in same_tag_siblings(element)
            if wanted.issubset(class_list(sibling))
        ]
        if len(peers) > 1:
            segment += f":nth-of-type({same_tag_index(element)})"
        return segment

    return f"{tag}:nth-of-type({same_tag_index(element)})"


def xpath_segment(element: Any) -> str | None:
    """Single-node XPath step: id, priority attribute, first class, then sibling position."""
    tag = tag_name(element)
    if not tag:
        return None

    element_id = (element.get("id") or "").strip()
    if element_id:
        return f"{tag}[@id={xpath_literal(element_id)}]"

    for attr in XPATH_ATTRIBUTE_PRIORITY:
        value = element.get(attr)
        if value:
            return f"{tag}[@{attr}={xpath_literal(value)}]"

    classes = class_list(element)
    if classes:
        return f"{tag}[{xpath_class_condition(classes[0])}]"

    return f"{tag}[{same_tag_index(element)}]"


def robust_xpath_segment(element: Any) -> tuple[str, bool] | None:
    """Like :func:`xpath_segment`, but an id becomes a document anchor that ends the walk."""
    tag = tag_name(element)
    if not tag:
        return None

    element_id = (element.get("id") or "").strip()
    if element_id:
        return f"//*[@id={xpath_literal(element_id)}]", True

    segment = xpath_segment(element)
    if segment is None:
        return None
    return segment, False


def indexed_xpath_segment(element: Any) -> str:
    return f"{tag_name(element)}[{same_tag_index(element)}]"
