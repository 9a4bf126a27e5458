from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from .dom import is_element, tag_name
from .executor import is_text_editable
from .locator_generator import generate_selector_candidates
from .models import EventRecord

if TYPE_CHECKING:
    from .dom import HtmlDocument
    from .events import DomEvent
    from .session import SessionContext

EventCallback = Callable[[EventRecord], None]

RECORDED_EVENT_TYPES = ("click", "change")
_ROOT_TAGS = {"html", "body"}


class Recorder:
    """Turns user interactions on a document into :class:`EventRecord` steps."""

    def __init__(self, document: HtmlDocument, session: SessionContext, on_event: EventCallback) -> None:
        self.document = document
        self.session = session
        self._on_event = on_event
        self.logger = logging.getLogger("locatorkit.recorder")
        self._unsubscribers: list[Callable[[], None]] = []

    def attach(self) -> None:
        if self._unsubscribers:
            return
        handlers = {"click": self._handle_click, "change": self._handle_change}
        for event_type in RECORDED_EVENT_TYPES:
            self._unsubscribers.append(self.document.events.subscribe(event_type, handlers[event_type], capture=True))

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def record_manual(self, element: Any, action: str, attribute: str | None = None) -> EventRecord | None:
        """Record an extraction step for an element picked explicitly."""
        if action not in {"extractText", "readAttribute"}:
            raise ValueError(f"Unsupported manual action: {action}")
        if action == "readAttribute" and not (attribute or "").strip():
            raise ValueError("readAttribute needs an attribute name")
        return self._record(element, action, attribute_name=(attribute or "").strip() or None)

    def _should_record(self, target: Any) -> bool:
        if not self.session.recording or self.session.selection_mode:
            return False
        return is_element(target) and tag_name(target) not in _ROOT_TAGS

    def _handle_click(self, event: DomEvent) -> None:
        if not self._should_record(event.target):
            return
        self._record(event.target, "click")

    def _handle_change(self, event: DomEvent) -> None:
        target = event.target
        if not self._should_record(target) or not is_text_editable(target):
            return
        value = event.detail.get("value")
        if value is None:
            value = target.get("value") if tag_name(target) == "input" else self.document.rendered_text(target)
        self._record(target, "fillText", value=str(value))

    def _record(
        self,
        element: Any,
        action: str,
        *,
        value: str | None = None,
        attribute_name: str | None = None,
    ) -> EventRecord | None:
        candidates = generate_selector_candidates(self.document, element)
        if not candidates:
            self.logger.warning("No selector candidates for <%s>; %s not recorded", tag_name(element), action)
            return None
        record = EventRecord(
            action=action,
            primary=candidates[0].to_info(),
            candidates=tuple(candidates),
            value=value,
            tag=tag_name(element),
            attribute_name=attribute_name,
            page_url=self.document.url,
            page_title=self.document.title or None,
        )
        self.logger.info("Recorded %s on %s", action, record.primary.selector)
        self._on_event(record)
        return record
