from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import combinations
from typing import Literal

Scheme = Literal["css", "xpath", "text"]

TEXT_PREFIX = "text="
XPATH_PREFIX = "xpath="
CSS_PREFIX = "css="
SCOPE_PREFIX = ":scope"


@dataclass(frozen=True, slots=True)
class AttributeRule:
    attr: str
    type: str
    score: int
    reason: str
    allow_partial: bool = False


ATTRIBUTE_PRIORITY: tuple[AttributeRule, ...] = (
    AttributeRule("id", "id", 90, "id attribute"),
    AttributeRule("data-testid", "data-testid", 88, "data-testid attribute", True),
    AttributeRule("data-test", "data-test", 86, "data-test attribute", True),
    AttributeRule("data-qa", "data-qa", 84, "data-qa attribute", True),
    AttributeRule("data-cy", "data-cy", 84, "data-cy attribute", True),
    AttributeRule("data-id", "data-id", 82, "data-id attribute", True),
    AttributeRule("aria-label", "aria-label", 80, "aria-label attribute", True),
    AttributeRule("role", "role", 78, "role attribute"),
    AttributeRule("name", "name", 78, "name attribute"),
    AttributeRule("title", "title", 72, "title attribute", True),
    AttributeRule("type", "type", 68, "type attribute"),
)

XPATH_ATTRIBUTE_PRIORITY = (
    "data-testid",
    "data-test",
    "data-qa",
    "data-cy",
    "data-id",
    "aria-label",
    "role",
    "name",
    "type",
)

SELECTOR_TYPE_PRIORITY: dict[str, int] = {
    "id": 100,
    "data-testid": 96,
    "data-test": 95,
    "data-qa": 94,
    "data-cy": 94,
    "data-id": 92,
    "aria-label": 90,
    "name": 88,
    "role": 85,
    "title": 82,
    "text": 78,
    "css": 70,
    "class-tag": 66,
    "class": 62,
    "tag": 40,
    "xpath": 30,
    "xpath-full": 5,
}

_PARTIAL_TOKEN_SPLIT = re.compile(r"[\s,;]+")
_TEXT_SELECTOR_PATTERN = re.compile(r'^text="(.*)"$', re.DOTALL)
_TEXT_UNESCAPE = re.compile(r"\\(.)", re.DOTALL)


@dataclass(frozen=True, slots=True)
class ParsedSelector:
    scheme: Scheme
    value: str

    @property
    def is_scoped(self) -> bool:
        if self.scheme == "css":
            return self.value.startswith(SCOPE_PREFIX)
        if self.scheme == "xpath":
            return self.value.startswith(".")
        return False


def selector_type_rank(selector_type: str | None) -> int:
    if not selector_type:
        return 0
    if selector_type in SELECTOR_TYPE_PRIORITY:
        return SELECTOR_TYPE_PRIORITY[selector_type]
    if selector_type.startswith("data-"):
        return 90
    if "partial" in selector_type:
        return 75
    return 50


def scheme_for_type(selector_type: str | None) -> Scheme | None:
    if not selector_type:
        return None
    if selector_type == "text":
        return "text"
    if selector_type in {"xpath", "xpath-full"}:
        return "xpath"
    return "css"


def infer_selector_type(selector: str) -> str:
    text = selector.strip()
    if text.startswith(TEXT_PREFIX):
        return "text"
    if text.startswith(XPATH_PREFIX) or text.startswith("/") or text.startswith("./") or text.startswith("("):
        return "xpath"
    return "css"


def parse_selector(selector: str, selector_type: str | None = None) -> ParsedSelector:
    text = selector.strip()
    scheme = scheme_for_type(selector_type) or scheme_for_type(infer_selector_type(text)) or "css"
    if scheme == "text":
        return ParsedSelector("text", parse_text_literal(text))
    if scheme == "xpath":
        if text.startswith(XPATH_PREFIX):
            text = text[len(XPATH_PREFIX):]
        return ParsedSelector("xpath", text.strip())
    if text.startswith(CSS_PREFIX):
        text = text[len(CSS_PREFIX):]
    return ParsedSelector("css", text.strip())


def build_text_selector(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'{TEXT_PREFIX}"{escaped}"'


def parse_text_literal(selector: str) -> str:
    text = selector.strip()
    if text.startswith(TEXT_PREFIX):
        text = text[len(TEXT_PREFIX):]
    match = _TEXT_SELECTOR_PATTERN.match(f"{TEXT_PREFIX}{text}")
    if not match:
        return text
    return _TEXT_UNESCAPE.sub(r"\1", match.group(1))


def build_xpath_selector(expression: str) -> str:
    return f"{XPATH_PREFIX}{expression}"


def escape_css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\a ")


def css_escape_identifier(value: str) -> str:
    """Serialize an identifier the way ``CSS.escape`` does."""
    result: list[str] = []
    length = len(value)
    for index, char in enumerate(value):
        code = ord(char)
        if code == 0:
            result.append("\ufffd")
        elif 0x01 <= code <= 0x1F or code == 0x7F:
            result.append(f"\\{code:x} ")
        elif index == 0 and char.isdigit() and char.isascii():
            result.append(f"\\{code:x} ")
        elif index == 1 and char.isdigit() and char.isascii() and value[0] == "-":
            result.append(f"\\{code:x} ")
        elif index == 0 and char == "-" and length == 1:
            result.append("\\-")
        elif code >= 0x80 or char in "-_" or (char.isascii() and char.isalnum()):
            result.append(char)
        else:
            result.append(f"\\{char}")
    return "".join(result)


def xpath_literal(value: str) -> str:
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    tokens: list[str] = []
    for index, part in enumerate(parts):
        if part:
            tokens.append(f"'{part}'")
        if index != len(parts) - 1:
            tokens.append('"\'"')
    return f"concat({', '.join(tokens)})"


def xpath_class_condition(class_name: str) -> str:
    return f"contains(concat(' ', normalize-space(@class), ' '), {xpath_literal(f' {class_name} ')})"


def xpath_text_condition(text: str, match_mode: str | None = "exact") -> str:
    """Innermost-element text test: the node matches and none of its descendants does."""
    literal = xpath_literal(text)
    if match_mode == "contains":
        test = f"contains(normalize-space(.), {literal})"
    else:
        test = f"normalize-space(.) = {literal}"
    return f"{test} and not(.//*[{test}])"


def partial_tokens(value: str, limit: int = 2) -> list[str]:
    tokens = [token for token in _PARTIAL_TOKEN_SPLIT.split(value) if len(token) > 2]
    return tokens[:limit]


def is_absolute_xpath(expression: str) -> bool:
    text = expression.strip()
    if text.startswith(XPATH_PREFIX):
        text = text[len(XPATH_PREFIX):]
    return bool(re.match(r"^/html(\[\d+\])?(/|$)", text, re.IGNORECASE))


def is_index_based_xpath(expression: str) -> bool:
    text = expression.strip()
    if "@" in text:
        return False
    return bool(re.search(r"/[A-Za-z*][\w-]*\[\d+\]", text))


_NTH_STEP_PATTERN = re.compile(r":nth-(?:of-type|child)\((\d+)\)")


def nth_step_indices(selector: str) -> list[int]:
    return [int(match.group(1)) for match in _NTH_STEP_PATTERN.finditer(selector)]


def class_combinations(
    classes: list[str],
    *,
    size_limit: int = 3,
    max_results: int = 24,
    class_limit: int | None = None,
) -> list[tuple[str, ...]]:
    pool = list(dict.fromkeys(name for name in classes if name))
    if class_limit is not None:
        pool = pool[:class_limit]
    combos = [
        combo
        for size in range(1, min(size_limit, len(pool)) + 1)
        for combo in combinations(pool, size)
    ]
    combos.sort(key=lambda combo: (len(combo), " ".join(combo)))
    return combos[:max_results]
