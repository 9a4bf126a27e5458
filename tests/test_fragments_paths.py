from locatorkit.dom import HtmlDocument
from locatorkit.fragments import css_segment, robust_xpath_segment, xpath_segment
from locatorkit.paths import (
    build_full_xpath,
    build_relative_css,
    build_relative_xpath,
    build_robust_xpath,
    build_unique_css_path,
)

PAGE = """
<html><body>
  <div id="app">
    <ul class="menu">
      <li class="item active">Home</li>
      <li class="item">About</li>
      <li data-testid="contact">Contact</li>
    </ul>
  </div>
  <form><input name="q"><span>plain</span><span>other</span></form>
</body></html>
"""


def _doc() -> HtmlDocument:
    return HtmlDocument.from_html(PAGE)


def test_css_segment_prefers_id_then_classes_then_position() -> None:
    doc = _doc()
    app = doc.root.get_element_by_id("app")
    items = app.findall(".//li")
    spans = doc.root.findall(".//span")

    assert css_segment(app) == "div#app"
    assert css_segment(items[0]) == "li.item.active"
    assert css_segment(items[1]) == "li.item:nth-of-type(2)"
    assert css_segment(spans[1]) == "span:nth-of-type(2)"


def test_xpath_segment_uses_priority_attributes() -> None:
    doc = _doc()
    contact = doc.root.find(".//li[@data-testid]")
    field = doc.root.find(".//input")
    span = doc.root.findall(".//span")[1]

    assert xpath_segment(contact) == "li[@data-testid='contact']"
    assert xpath_segment(field) == "input[@name='q']"
    assert xpath_segment(span) == "span[2]"


def test_robust_xpath_stops_at_nearest_id() -> None:
    doc = _doc()
    app = doc.root.get_element_by_id("app")
    home = app.find(".//li")

    assert robust_xpath_segment(app) == ("//*[@id='app']", True)
    expression = build_robust_xpath(home)
    assert expression is not None
    assert expression.startswith("//*[@id='app']/ul[")
    assert home in doc.root.xpath(expression)


def test_full_xpath_is_index_based_from_html() -> None:
    doc = _doc()
    span = doc.root.findall(".//span")[1]

    assert build_full_xpath(span) == "/html[1]/body[1]/form[1]/span[2]"
    assert doc.root.xpath(build_full_xpath(span)) == [span]


def test_relative_paths_are_child_anchored_to_scope() -> None:
    doc = _doc()
    menu = doc.root.find(".//ul")
    about = menu.findall("li")[1]
    outside = doc.root.find(".//input")

    assert build_relative_css(menu, about) == ":scope > li.item:nth-of-type(2)"
    assert build_relative_xpath(menu, about).startswith("./li[")
    assert build_relative_css(menu, outside) is None
    assert build_relative_xpath(menu, outside) is None


def test_unique_css_path_walks_up_until_unique() -> None:
    doc = _doc()
    about = doc.root.findall(".//li")[1]
    menu = doc.root.find(".//ul")

    assert build_unique_css_path(doc, about) == "li.item:nth-of-type(2)"
    assert build_unique_css_path(doc, about, menu) == ":scope li.item:nth-of-type(2)"
