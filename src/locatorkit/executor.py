from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from .dom import ancestors, tag_name
from .models import (
    REASON_ACTION_ERROR,
    REASON_DISABLED,
    REASON_ELEMENT_DETACHED,
    REASON_MISSING_ATTRIBUTE,
    REASON_NOT_VISIBLE,
    REASON_UNSUPPORTED_ACTION,
    REASON_UNSUPPORTED_ELEMENT,
    ActionName,
    ActionResult,
)

if TYPE_CHECKING:
    from .dom import HtmlDocument

SUPPORTED_ACTIONS: tuple[ActionName, ...] = ("click", "fillText", "extractText", "readAttribute")

_DISABLEABLE_TAGS = {"button", "input", "select", "textarea", "option", "optgroup", "fieldset"}
_NON_TEXT_INPUT_TYPES = {
    "button", "checkbox", "color", "file", "hidden", "image", "radio", "range", "reset", "submit",
}


class ActionExecutor(Protocol):
    def perform(self, element: Any, action: str, value: str | None = None) -> ActionResult: ...


def is_disabled(element: Any) -> bool:
    if tag_name(element) in _DISABLEABLE_TAGS and element.get("disabled") is not None:
        return True
    for ancestor in ancestors(element):
        if tag_name(ancestor) == "fieldset" and ancestor.get("disabled") is not None:
            return True
    return False


def is_text_editable(element: Any) -> bool:
    tag = tag_name(element)
    if tag == "textarea":
        return True
    if tag == "input":
        return (element.get("type") or "text").strip().lower() not in _NON_TEXT_INPUT_TYPES
    editable = element.get("contenteditable")
    return editable is not None and editable.strip().lower() in {"", "true", "plaintext-only"}


class HtmlActionExecutor:
    """Performs recorded actions on an :class:`HtmlDocument`, reporting failures as results."""

    def __init__(self, document: HtmlDocument) -> None:
        self.document = document

    def perform(self, element: Any, action: str, value: str | None = None) -> ActionResult:
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
                return ActionResult(True, extracted_value=self.document.rendered_text(element))
            return self._read_attribute(element, value)
        except Exception as exc:
            return ActionResult(False, f"{REASON_ACTION_ERROR}: {exc}")

    def _click(self, element: Any) -> ActionResult:
        if not self.document.is_visible(element):
            return ActionResult(False, REASON_NOT_VISIBLE)
        if is_disabled(element):
            return ActionResult(False, REASON_DISABLED)
        self.document.events.dispatch("click", element)
        return ActionResult(True)

    def _fill(self, element: Any, text: str) -> ActionResult:
        if not self.document.is_visible(element):
            return ActionResult(False, REASON_NOT_VISIBLE)
        if is_disabled(element):
            return ActionResult(False, REASON_DISABLED)
        if not is_text_editable(element):
            return ActionResult(False, REASON_UNSUPPORTED_ELEMENT)

        if tag_name(element) == "input":
            element.set("value", text)
        else:
            for child in list(element):
                element.remove(child)
            element.text = text
        self.document.events.dispatch("input", element, value=text)
        self.document.events.dispatch("change", element, value=text)
        return ActionResult(True, extracted_value=text)

    def _read_attribute(self, element: Any, attribute: str | None) -> ActionResult:
        name = (attribute or "").strip()
        if not name:
            return ActionResult(False, REASON_MISSING_ATTRIBUTE)
        return ActionResult(True, extracted_value=element.get(name))
