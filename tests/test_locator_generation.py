from locatorkit.dom import HtmlDocument
from locatorkit.locate import find_element_by_path, find_element_with_info
from locatorkit.locator_generator import (
    build_locator_path,
    generate_relative_candidates,
    generate_selector_candidates,
)

SAVE_FORM = """
<html><body>
  <form>
    <button id="save-btn" class="btn primary">Save</button>
    <button class="btn">Cancel</button>
  </form>
</body></html>
"""

ROWS = """
<html><body>
  <ul class="list"><li class="row">A</li><li class="row">B</li><li class="row">C</li></ul>
</body></html>
"""

PANELS = """
<html><body>
  <section class="panel" id="billing"><h2>Billing</h2><button class="edit">Edit</button></section>
  <section class="panel" id="shipping"><h2>Shipping</h2><button class="edit">Edit</button></section>
  <input aria-label="Search products">
</body></html>
"""


def test_id_candidate_wins_for_button_with_id() -> None:
    doc = HtmlDocument.from_html(SAVE_FORM)
    button = doc.root.get_element_by_id("save-btn")

    candidates = generate_selector_candidates(doc, button)
    top = candidates[0]

    assert top.type == "id"
    assert top.selector == "#save-btn"
    assert top.unique is True
    assert top.match_count == 1
    assert top.score == max(candidate.score for candidate in candidates)


def test_each_repeated_row_gets_a_unique_locator_that_resolves_back() -> None:
    doc = HtmlDocument.from_html(ROWS)

    for row in doc.root.findall(".//li"):
        candidates = generate_selector_candidates(doc, row)
        unique = [candidate for candidate in candidates if candidate.unique]

        assert unique, f"no unique candidate for {row.text}"
        assert candidates[0].unique
        for candidate in unique:
            assert find_element_with_info(doc, candidate.to_info()) is row


def test_candidates_are_distinct_and_match_something() -> None:
    doc = HtmlDocument.from_html(PANELS)
    button = doc.root.get_element_by_id("shipping").find("button")

    candidates = generate_selector_candidates(doc, button)
    keys = [(candidate.type, candidate.selector) for candidate in candidates]

    assert len(keys) == len(set(keys))
    assert all((candidate.match_count or 0) >= 1 for candidate in candidates if candidate.type != "tag")
    assert any(candidate.unique and candidate.type in {"css", "xpath"} for candidate in candidates)


def test_partial_attribute_candidates_use_tokens() -> None:
    doc = HtmlDocument.from_html(PANELS)
    field = doc.root.find(".//input")

    selectors = {candidate.selector: candidate for candidate in generate_selector_candidates(doc, field)}

    assert '[aria-label="Search products"]' in selectors
    assert selectors['[aria-label*="Search"]'].type == "aria-label-partial"


def test_relative_candidates_resolve_inside_scope_only() -> None:
    doc = HtmlDocument.from_html(PANELS)
    billing = doc.root.get_element_by_id("billing")
    shipping = doc.root.get_element_by_id("shipping")
    button = shipping.find("button")

    candidates = generate_relative_candidates(doc, shipping, button)
    relative = [candidate for candidate in candidates if candidate.relation == "relative"]

    assert relative
    assert candidates[0].relation == "relative"
    for candidate in relative:
        info = candidate.to_info()
        assert find_element_with_info(doc, info, shipping) is button
        assert find_element_with_info(doc, info, billing) is not button
        assert find_element_with_info(doc, info) is None


def test_locator_path_resolves_scope_then_element() -> None:
    doc = HtmlDocument.from_html(PANELS)
    shipping = doc.root.get_element_by_id("shipping")
    button = shipping.find("button")

    path = build_locator_path(doc, shipping, button)

    assert path is not None
    assert len(path) == 2
    assert path.entries[0].selector == "#shipping"
    assert path.entries[1].relation == "relative"
    assert find_element_by_path(doc, path) is button


def test_every_candidate_carries_a_relation() -> None:
    doc = HtmlDocument.from_html(ROWS)
    ul = doc.root.find(".//ul")
    last = ul.findall("li")[2]

    candidates = generate_relative_candidates(doc, ul, last)

    assert {candidate.relation for candidate in candidates} == {"global", "relative"}
    assert all(candidate.to_dict()["relation"] in {"global", "relative"} for candidate in candidates)
    assert {candidate.relation for candidate in generate_selector_candidates(doc, last)} == {"global"}


def test_attribute_value_keeps_surrounding_whitespace() -> None:
    doc = HtmlDocument.from_html('<html><body><button data-testid=" save ">Save</button></body></html>')
    button = doc.root.find(".//button")

    candidates = generate_selector_candidates(doc, button)
    by_selector = {candidate.selector: candidate for candidate in candidates}

    assert '[data-testid=" save "]' in by_selector
    assert by_selector['[data-testid=" save "]'].unique
