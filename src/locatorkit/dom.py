from __future__ import annotations

from functools import lru_cache
from itertools import chain
import re
from typing import Any, Iterator

from cssselect import HTMLTranslator, SelectorError
from lxml import etree
from lxml import html as lxml_html

from .events import EventDispatcher
from .selector_rules import SCOPE_PREFIX, ParsedSelector, xpath_text_condition

QUERY_ERRORS: tuple[type[Exception], ...] = (SelectorError, etree.XPathError)

NON_RENDERED_TAGS = frozenset({"head", "script", "style", "template", "noscript", "title", "meta", "link"})
BLOCK_TAGS = frozenset(
    {
        "address", "article", "aside", "blockquote", "dd", "details", "dialog", "div", "dl", "dt",
        "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6",
        "header", "hr", "li", "main", "nav", "ol", "p", "pre", "section", "summary", "table",
        "tbody", "td", "tfoot", "th", "thead", "tr", "ul",
    }
)

_HIDDEN_STYLE_PATTERN = re.compile(r"(?:^|;)\s*(?:display\s*:\s*none|visibility\s*:\s*hidden)\b", re.IGNORECASE)
_EMPTY_DOCUMENT = "<html><head></head><body></body></html>"
_translator = HTMLTranslator()


@lru_cache(maxsize=1024)
def css_to_xpath(css: str, prefix: str = "descendant-or-self::") -> str:
    return _translator.css_to_xpath(css, prefix=prefix)


def is_element(node: Any) -> bool:
    return isinstance(node, etree._Element) and isinstance(node.tag, str)


def tag_name(element: Any) -> str:
    return str(element.tag).lower()


def class_list(element: Any) -> list[str]:
    seen: list[str] = []
    for token in (element.get("class") or "").split():
        if token not in seen:
            seen.append(token)
    return seen


def parent_element(element: Any) -> Any | None:
    parent = element.getparent()
    if parent is None or not is_element(parent):
        return None
    return parent


def ancestors(element: Any) -> Iterator[Any]:
    current = parent_element(element)
    while current is not None:
        yield current
        current = parent_element(current)


def element_children(element: Any) -> list[Any]:
    return [child for child in element if is_element(child)]


def same_tag_index(element: Any) -> int:
    index = 1
    for sibling in element.itersiblings(preceding=True):
        if is_element(sibling) and sibling.tag == element.tag:
            index += 1
    return index


def same_tag_siblings(element: Any) -> list[Any]:
    parent = parent_element(element)
    if parent is None:
        return [element]
    return [child for child in element_children(parent) if child.tag == element.tag]


def hides_itself(element: Any) -> bool:
    tag = tag_name(element)
    if tag in NON_RENDERED_TAGS:
        return True
    if element.get("hidden") is not None:
        return True
    if _HIDDEN_STYLE_PATTERN.search(element.get("style") or ""):
        return True
    return tag == "input" and (element.get("type") or "").strip().lower() == "hidden"


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text)


class HtmlDocument:
    """A live, mutable HTML tree backed by lxml.

    Element references handed out by a document are lxml elements. They stay
    valid until the next :meth:`load`, which swaps the whole tree the way a
    page navigation does.
    """

    def __init__(self, markup: str = _EMPTY_DOCUMENT, url: str = "about:blank") -> None:
        self.events = EventDispatcher()
        self.url = url
        self.root = lxml_html.document_fromstring(markup or _EMPTY_DOCUMENT)
        self.load_count = 1

    @classmethod
    def from_html(cls, markup: str, url: str = "about:blank") -> HtmlDocument:
        return cls(markup, url)

    @property
    def body(self) -> Any | None:
        return self.root.find("body")

    @property
    def title(self) -> str:
        return _collapse(self.root.findtext(".//title") or "").strip()

    def load(self, markup: str, url: str | None = None) -> None:
        self.events.dispatch("unload", self.root, url=self.url)
        self.root = lxml_html.document_fromstring(markup or _EMPTY_DOCUMENT)
        if url is not None:
            self.url = url
        self.load_count += 1
        self.events.dispatch("load", self.root, url=self.url)

    def serialize(self) -> str:
        return lxml_html.tostring(self.root, encoding="unicode")

    def is_attached(self, node: Any) -> bool:
        return is_element(node) and node.getroottree().getroot() is self.root

    def contains(self, scope: Any, node: Any) -> bool:
        return any(ancestor is scope for ancestor in ancestors(node))

    def is_visible(self, node: Any) -> bool:
        return not any(hides_itself(item) for item in chain((node,), ancestors(node)))

    def scroll_into_view(self, node: Any) -> None:
        self.events.dispatch("focus", node)

    def get_style(self, node: Any) -> str | None:
        return node.get("style")

    def set_style(self, node: Any, style: str | None) -> None:
        if style is None:
            node.attrib.pop("style", None)
        else:
            node.set("style", style)

    def rendered_text(self, node: Any) -> str:
        chunks: list[str] = []
        self._collect_text(node, chunks)
        lines = (re.sub(r"[ \t\f\v\r]+", " ", line).strip() for line in "".join(chunks).split("\n"))
        return "\n".join(line for line in lines if line)

    def first_text_line(self, node: Any, limit: int = 60) -> str | None:
        for line in self.rendered_text(node).split("\n"):
            if line:
                return line[:limit]
        return None

    def query_all(
        self,
        parsed: ParsedSelector,
        scope: Any | None = None,
        match_mode: str | None = None,
    ) -> list[Any]:
        """Evaluate a parsed selector and return matching elements in document order.

        With an element scope only strict descendants of the scope are returned.
        Raises ``SelectorError`` or ``etree.XPathError`` for malformed selectors.
        """
        context = scope if scope is not None else self.root
        if parsed.scheme == "css":
            nodes = self._query_css(parsed.value, context)
        elif parsed.scheme == "xpath":
            nodes = self._evaluate(context, parsed.value)
        else:
            nodes = self._evaluate(context, f".//*[{xpath_text_condition(parsed.value, match_mode or 'exact')}]")

        unique_nodes = list(dict.fromkeys(nodes))
        if scope is None:
            return unique_nodes
        return [node for node in unique_nodes if self.contains(scope, node)]

    def _query_css(self, value: str, context: Any) -> list[Any]:
        if not value.startswith(SCOPE_PREFIX):
            return self._evaluate(self.root, css_to_xpath(value))

        remainder = value[len(SCOPE_PREFIX):].strip()
        if not remainder:
            return []
        prefix = "descendant::"
        if remainder.startswith(">"):
            remainder = remainder[1:].strip()
            prefix = "child::"
        return self._evaluate(context, css_to_xpath(remainder, prefix))

    @staticmethod
    def _evaluate(context: Any, expression: str) -> list[Any]:
        result = context.xpath(expression)
        if not isinstance(result, list):
            return []
        return [node for node in result if is_element(node)]

    def _collect_text(self, node: Any, chunks: list[str]) -> None:
        tag = tag_name(node)
        if hides_itself(node):
            return
        if tag == "br":
            chunks.append("\n")
            return
        block = tag in BLOCK_TAGS
        if block:
            chunks.append("\n")
        if node.text:
            chunks.append(_collapse(node.text))
        for child in node:
            if is_element(child):
                self._collect_text(child, chunks)
            if child.tail:
                chunks.append(_collapse(child.tail))
        if block:
            chunks.append("\n")
