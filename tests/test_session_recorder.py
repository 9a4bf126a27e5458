import pytest

from locatorkit.dom import HtmlDocument
from locatorkit.models import EventRecord
from locatorkit.recorder import Recorder
from locatorkit.replay import ReplayStepper
from locatorkit.session import HIGHLIGHT_STYLE, SessionContext

PAGE = """
<html><head><title>Profile</title></head><body>
  <input id="name" value="">
  <button id="save">Save</button>
  <span class="badge" title="Member since 2020">Gold</span>
</body></html>
"""


def _recording(doc: HtmlDocument) -> tuple[Recorder, SessionContext, list[EventRecord]]:
    events: list[EventRecord] = []
    session = SessionContext()
    recorder = Recorder(doc, session, events.append)
    recorder.attach()
    session.start_recording()
    return recorder, session, events


def test_click_is_recorded_with_ranked_candidates() -> None:
    doc = HtmlDocument.from_html(PAGE, "https://app.test/profile")
    _recorder, _session, events = _recording(doc)

    doc.events.dispatch("click", doc.root.get_element_by_id("save"))

    assert len(events) == 1
    record = events[0]
    assert record.action == "click"
    assert record.primary.selector == "#save"
    assert record.candidates[0].selector == "#save"
    assert record.tag == "button"
    assert record.page_url == "https://app.test/profile"
    assert record.page_title == "Profile"


def test_change_on_text_field_records_fill_text() -> None:
    doc = HtmlDocument.from_html(PAGE)
    _recorder, _session, events = _recording(doc)

    doc.events.dispatch("change", doc.root.get_element_by_id("name"), value="Ada")

    assert [(event.action, event.value) for event in events] == [("fillText", "Ada")]


def test_nothing_is_recorded_when_not_recording_or_selecting() -> None:
    doc = HtmlDocument.from_html(PAGE)
    recorder, session, events = _recording(doc)
    button = doc.root.get_element_by_id("save")

    session.selection_mode = True
    doc.events.dispatch("click", button)
    session.selection_mode = False
    doc.events.dispatch("click", doc.body)
    session.stop_recording()
    doc.events.dispatch("click", button)
    session.start_recording()
    recorder.detach()
    doc.events.dispatch("click", button)

    assert events == []


def test_manual_extraction_steps() -> None:
    doc = HtmlDocument.from_html(PAGE)
    recorder, _session, events = _recording(doc)
    badge = doc.root.find(".//span")

    recorder.record_manual(badge, "extractText")
    recorder.record_manual(badge, "readAttribute", "title")

    assert [(event.action, event.attribute_name) for event in events] == [
        ("extractText", None),
        ("readAttribute", "title"),
    ]
    with pytest.raises(ValueError):
        recorder.record_manual(badge, "readAttribute")


def test_session_highlight_restores_previous_style() -> None:
    doc = HtmlDocument.from_html('<html><body><p style="color: red;">x</p><p>y</p></body></html>')
    first, second = doc.root.findall(".//p")
    session = SessionContext()

    session.highlight(doc, first)
    assert first.get("style") == f"color: red; {HIGHLIGHT_STYLE}"
    session.highlight(doc, second)

    assert first.get("style") == "color: red;"
    assert second.get("style") == HIGHLIGHT_STYLE
    session.clear_highlight()
    assert second.get("style") is None


def test_session_reset_detaches_replay() -> None:
    session = SessionContext()
    stepper = ReplayStepper(lambda step: None, scheduler=None)
    session.attach_replay(stepper)
    session.start_recording()

    session.reset()

    assert session.replay is None
    assert not session.recording
    assert stepper.phase == "idle"
