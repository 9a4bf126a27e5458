from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .dom import HtmlDocument
    from .playwright_dom import PlaywrightDocument
    from .replay import ReplayStepper

HIGHLIGHT_STYLE = "outline: 3px solid #ff9800; outline-offset: 2px"


@dataclass(slots=True)
class _Highlight:
    document: HtmlDocument | PlaywrightDocument
    element: Any
    previous_style: str | None


class SessionContext:
    """Per-session mutable state shared by the recorder, the step runner and replay."""

    def __init__(self) -> None:
        self.recording = False
        self.selection_mode = False
        self.replay: ReplayStepper | None = None
        self._highlight: _Highlight | None = None

    @property
    def highlighted(self) -> Any | None:
        return self._highlight.element if self._highlight else None

    def start_recording(self) -> None:
        self.clear_highlight()
        self.recording = True

    def stop_recording(self) -> None:
        self.recording = False

    def highlight(self, document: HtmlDocument | PlaywrightDocument, element: Any) -> None:
        if self._highlight and self._highlight.element is element:
            return
        self.clear_highlight()
        previous = document.get_style(element)
        combined = f"{previous.rstrip('; ')}; {HIGHLIGHT_STYLE}" if previous else HIGHLIGHT_STYLE
        document.set_style(element, combined)
        self._highlight = _Highlight(document, element, previous)

    def clear_highlight(self) -> None:
        if self._highlight is None:
            return
        current = self._highlight
        self._highlight = None
        if current.document.is_attached(current.element):
            current.document.set_style(current.element, current.previous_style)

    def attach_replay(self, stepper: ReplayStepper) -> None:
        if self.replay is not None and self.replay is not stepper:
            self.replay.reset()
        self.replay = stepper

    def reset(self) -> None:
        self.clear_highlight()
        self.recording = False
        self.selection_mode = False
        if self.replay is not None:
            self.replay.reset()
            self.replay = None
