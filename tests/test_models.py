from locatorkit.models import EventRecord, LocatorPath, SelectorCandidate, SelectorInfo, StepResult


def test_candidate_dict_omits_absent_fields() -> None:
    candidate = SelectorCandidate("#save", "id", 96, "id attribute • unique match", match_count=1, unique=True)

    assert candidate.to_dict() == {
        "selector": "#save",
        "type": "id",
        "score": 96,
        "reason": "id attribute • unique match",
        "matchCount": 1,
        "unique": True,
    }


def test_event_record_serialization_preserves_absence() -> None:
    payload = {
        "version": 2,
        "timestamp": 1700000000.0,
        "action": "click",
        "primarySelector": "xpath=./button[1]",
        "primarySelectorType": "xpath",
        "primarySelectorScore": 80,
        "primarySelectorRelation": "relative",
        "primarySelectorXPath": "./button[1]",
        "selectorCandidates": [{"selector": "button", "type": "tag", "score": 20, "reason": "tag only"}],
        "locatorPath": [
            {"selector": "#card", "type": "id", "score": 96},
            {"selector": "xpath=./button[1]", "type": "xpath", "score": 80, "relation": "relative"},
        ],
    }

    record = EventRecord.from_dict(payload)

    assert record.primary.relation == "relative"
    assert record.primary.match_mode is None
    assert record.candidates[0].match_count is None
    assert len(record.path) == 2
    assert record.to_dict() == payload


def test_repick_replaces_primary_only() -> None:
    record = EventRecord(action="click", primary=SelectorInfo("#a", "id"), tag="a")

    updated = record.repick(SelectorCandidate("a.link", "class-tag", 70))

    assert updated.primary == SelectorInfo("a.link", "class-tag", 70)
    assert updated.tag == "a"
    assert record.primary.selector == "#a"


def test_locator_path_round_trip_keeps_relation() -> None:
    path = LocatorPath((SelectorInfo("#card", "id"), SelectorInfo(":scope > a", "css", relation="relative")))

    assert LocatorPath.from_list(path.to_list()) == path


def test_step_result_dict() -> None:
    assert StepResult(2, False, "not_found").to_dict() == {
        "index": 2,
        "ok": False,
        "reason": "not_found",
        "navigation": False,
    }
