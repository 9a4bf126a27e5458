from __future__ import annotations

from dataclasses import dataclass, field, replace
import time
from typing import Any, Literal, Mapping

Relation = Literal["global", "relative"]
MatchMode = Literal["exact", "contains"]
ActionName = Literal["click", "fillText", "extractText", "readAttribute"]

EVENT_SCHEMA_VERSION = 2

REASON_NOT_FOUND = "not_found"
REASON_NAVIGATION_TIMEOUT = "navigation_timeout"
REASON_ELEMENT_DETACHED = "element_detached"
REASON_NOT_VISIBLE = "element_not_visible"
REASON_DISABLED = "element_disabled"
REASON_UNSUPPORTED_ELEMENT = "unsupported_element"
REASON_MISSING_ATTRIBUTE = "missing_attribute"
REASON_UNSUPPORTED_ACTION = "unsupported_action"
REASON_ACTION_ERROR = "action_error"


def _compact(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def _optional_bool(value: Any) -> bool | None:
    if value is None:
        return None
    return bool(value)


@dataclass(slots=True)
class SelectorCandidate:
    selector: str
    type: str
    score: int
    reason: str = ""
    match_count: int | None = None
    unique: bool | None = None
    relation: Relation | None = None
    match_mode: MatchMode | None = None
    text_value: str | None = None
    xpath_value: str | None = None

    def to_info(self) -> SelectorInfo:
        return SelectorInfo(
            selector=self.selector,
            type=self.type,
            score=self.score,
            relation=self.relation,
            match_mode=self.match_mode,
            text_value=self.text_value,
            xpath_value=self.xpath_value,
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "selector": self.selector,
                "type": self.type,
                "score": self.score,
                "reason": self.reason,
                "matchCount": self.match_count,
                "unique": self.unique,
                "relation": self.relation,
                "matchMode": self.match_mode,
                "textValue": self.text_value,
                "xpathValue": self.xpath_value,
            }
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> SelectorCandidate:
        return cls(
            selector=str(payload["selector"]),
            type=str(payload.get("type") or "css"),
            score=int(payload.get("score") or 0),
            reason=str(payload.get("reason") or ""),
            match_count=_optional_int(payload.get("matchCount")),
            unique=_optional_bool(payload.get("unique")),
            relation=payload.get("relation"),
            match_mode=payload.get("matchMode"),
            text_value=payload.get("textValue"),
            xpath_value=payload.get("xpathValue"),
        )


@dataclass(frozen=True, slots=True)
class SelectorInfo:
    selector: str
    type: str
    score: int = 0
    relation: Relation | None = None
    match_mode: MatchMode | None = None
    text_value: str | None = None
    xpath_value: str | None = None

    @property
    def is_relative(self) -> bool:
        return self.relation == "relative"

    def key(self) -> tuple[str, str]:
        return (self.type, self.selector)

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "selector": self.selector,
                "type": self.type,
                "score": self.score,
                "relation": self.relation,
                "matchMode": self.match_mode,
                "textValue": self.text_value,
                "xpathValue": self.xpath_value,
            }
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> SelectorInfo:
        return cls(
            selector=str(payload["selector"]),
            type=str(payload.get("type") or "css"),
            score=int(payload.get("score") or 0),
            relation=payload.get("relation"),
            match_mode=payload.get("matchMode"),
            text_value=payload.get("textValue"),
            xpath_value=payload.get("xpathValue"),
        )


@dataclass(frozen=True, slots=True)
class LocatorPath:
    """Multi-hop locator: each entry is resolved inside the previous entry's element."""

    entries: tuple[SelectorInfo, ...]

    def __len__(self) -> int:
        return len(self.entries)

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self.entries]

    @classmethod
    def from_list(cls, payload: list[Mapping[str, Any]]) -> LocatorPath:
        return cls(tuple(SelectorInfo.from_dict(item) for item in payload))


@dataclass(frozen=True, slots=True)
class EventRecord:
    action: str
    primary: SelectorInfo | None
    candidates: tuple[SelectorCandidate, ...] = ()
    value: str | None = None
    tag: str | None = None
    attribute_name: str | None = None
    path: LocatorPath | None = None
    page_url: str | None = None
    page_title: str | None = None
    timestamp: float = field(default_factory=time.time)
    version: int = EVENT_SCHEMA_VERSION

    def repick(self, candidate: SelectorCandidate | SelectorInfo) -> EventRecord:
        info = candidate.to_info() if isinstance(candidate, SelectorCandidate) else candidate
        return replace(self, primary=info)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "version": self.version,
            "timestamp": self.timestamp,
            "action": self.action,
            "value": self.value,
            "tag": self.tag,
            "attributeName": self.attribute_name,
            "selectorCandidates": [candidate.to_dict() for candidate in self.candidates],
        }
        if self.primary is not None:
            payload.update(
                {
                    "primarySelector": self.primary.selector,
                    "primarySelectorType": self.primary.type,
                    "primarySelectorScore": self.primary.score,
                    "primarySelectorRelation": self.primary.relation,
                    "primarySelectorMatchMode": self.primary.match_mode,
                    "primarySelectorText": self.primary.text_value,
                    "primarySelectorXPath": self.primary.xpath_value,
                }
            )
        if self.path is not None:
            payload["locatorPath"] = self.path.to_list()
        if self.page_url is not None or self.page_title is not None:
            payload["page"] = _compact({"url": self.page_url, "title": self.page_title})
        return _compact(payload)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> EventRecord:
        primary = None
        if payload.get("primarySelector"):
            primary = SelectorInfo(
                selector=str(payload["primarySelector"]),
                type=str(payload.get("primarySelectorType") or "css"),
                score=int(payload.get("primarySelectorScore") or 0),
                relation=payload.get("primarySelectorRelation"),
                match_mode=payload.get("primarySelectorMatchMode"),
                text_value=payload.get("primarySelectorText"),
                xpath_value=payload.get("primarySelectorXPath"),
            )
        raw_path = payload.get("locatorPath")
        page = payload.get("page") or {}
        return cls(
            action=str(payload["action"]),
            primary=primary,
            candidates=tuple(
                SelectorCandidate.from_dict(item) for item in payload.get("selectorCandidates") or []
            ),
            value=payload.get("value"),
            tag=payload.get("tag"),
            attribute_name=payload.get("attributeName"),
            path=LocatorPath.from_list(raw_path) if raw_path else None,
            page_url=page.get("url"),
            page_title=page.get("title"),
            timestamp=float(payload.get("timestamp") or 0.0),
            version=int(payload.get("version") or EVENT_SCHEMA_VERSION),
        )


@dataclass(frozen=True, slots=True)
class ActionResult:
    ok: bool
    reason: str | None = None
    extracted_value: str | None = None


@dataclass(frozen=True, slots=True)
class ReplayStep:
    event: EventRecord
    index: int
    total: int


@dataclass(frozen=True, slots=True)
class StepResult:
    index: int
    ok: bool
    reason: str | None = None
    navigation: bool = False
    selector: str | None = None
    value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "index": self.index,
                "ok": self.ok,
                "reason": self.reason,
                "navigation": self.navigation,
                "selector": self.selector,
                "value": self.value,
            }
        )
