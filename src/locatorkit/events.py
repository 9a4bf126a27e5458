from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Callable

EventHandler = Callable[["DomEvent"], None]


@dataclass(slots=True)
class DomEvent:
    type: str
    target: Any
    detail: dict[str, Any] = field(default_factory=dict)
    stopped: bool = False

    def stop(self) -> None:
        self.stopped = True


class EventDispatcher:
    """Subscribe/dispatch hub for document events.

    Capture-phase handlers run before bubble-phase handlers, each group in
    subscription order. A handler can end dispatch with ``event.stop()``.
    """

    def __init__(self) -> None:
        self._capture: dict[str, list[EventHandler]] = {}
        self._bubble: dict[str, list[EventHandler]] = {}
        self.logger = logging.getLogger("locatorkit.events")

    def subscribe(self, event_type: str, handler: EventHandler, *, capture: bool = False) -> Callable[[], None]:
        registry = self._capture if capture else self._bubble
        registry.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = registry.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def dispatch(self, event_type: str, target: Any, **detail: Any) -> DomEvent:
        event = DomEvent(event_type, target, dict(detail))
        handlers = [*self._capture.get(event_type, []), *self._bubble.get(event_type, [])]
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                self.logger.exception("Handler for %s event failed", event_type)
            if event.stopped:
                break
        return event
