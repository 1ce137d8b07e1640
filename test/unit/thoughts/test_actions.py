"""Unit tests for action payload validation and gateway result normalization."""

import pytest

from thoughts.actions import (
    CreateMoodPayload,
    EnhanceTaskPayload,
    build_proposed_actions,
    dump_action_payload,
    parse_action_payload,
)
from thoughts.errors import ActionPayloadError, GatewayResponseError


def test_parse_accepts_camel_case_fields() -> None:
    """Gateway camelCase fields populate the payload models."""
    payload = parse_action_payload(
        "createTask",
        {"title": "Buy milk", "estimatedTime": 10, "priority": "high"},
    )

    assert payload.title == "Buy milk"
    assert payload.estimated_time == 10
    assert payload.category == "mastery"
    assert dump_action_payload(payload)["estimatedTime"] == 10


def test_parse_unknown_type_raises() -> None:
    """Unknown action types are rejected with a descriptive error."""
    with pytest.raises(ActionPayloadError, match="unknown action type"):
        parse_action_payload("sendEmail", {})


def test_parse_missing_required_field_raises() -> None:
    """Missing required fields surface the validation location."""
    with pytest.raises(ActionPayloadError, match="tag"):
        parse_action_payload("addTag", {})


def test_parse_rejects_non_mapping_data() -> None:
    """Action data must be an object."""
    with pytest.raises(ActionPayloadError, match="data must be an object"):
        parse_action_payload("addTag", ["tool-tasks"])


def test_enhance_task_folds_nested_updates() -> None:
    """The nested updates form is merged into the top-level fields."""
    payload = parse_action_payload(
        "enhanceTask",
        {"taskId": "task-1", "updates": {"notes": "Use oat milk", "priority": "low"}},
    )

    assert isinstance(payload, EnhanceTaskPayload)
    assert payload.changes() == {"notes": "Use oat milk", "priority": "low"}
    assert payload.updates is None


def test_enhance_task_requires_some_change() -> None:
    """An enhancement that changes nothing is invalid."""
    with pytest.raises(ActionPayloadError):
        parse_action_payload("enhanceTask", {"taskId": "task-1"})


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        ({"value": 7}, 7),
        ({"intensity": 64}, 6),
        ({"intensity": 2}, 1),
        ({"value": 3, "intensity": 90}, 3),
    ],
)
def test_mood_value_conversion(data, expected) -> None:
    """Mood value prefers the explicit score and scales intensity otherwise."""
    payload = parse_action_payload("createMood", data)

    assert isinstance(payload, CreateMoodPayload)
    assert payload.mood_value() == expected


def test_mood_requires_a_measure() -> None:
    """A mood entry needs a value or an intensity."""
    with pytest.raises(ActionPayloadError, match="value or intensity"):
        parse_action_payload("createMood", {"note": "meh"})


def test_build_proposed_actions_places_enhancement_first() -> None:
    """An applied thought enhancement precedes the gateway actions in order."""
    result = {
        "thoughtEnhancement": {
            "shouldApply": True,
            "improvedText": "Buy oat milk on the way home",
            "changes": "clarified",
        },
        "actions": [
            {"type": "createTask", "tool": "tasks", "data": {"title": "A"}, "confidence": 90},
            {"type": "addTag", "data": {"tag": "tool-errands"}},
            {"type": "changeType", "data": {"type": "task"}, "reasoning": "  actionable  "},
        ],
    }

    proposals = build_proposed_actions(result)

    assert [proposal.type for proposal in proposals] == [
        "enhanceThought",
        "createTask",
        "addTag",
        "changeType",
    ]
    assert proposals[0].tool == "system"
    assert proposals[0].data == {
        "improvedText": "Buy oat milk on the way home",
        "changes": "clarified",
    }
    assert proposals[1].confidence == 90
    assert proposals[3].reasoning == "actionable"


def test_build_proposed_actions_ignores_unapplied_enhancement() -> None:
    """Enhancements without shouldApply are not turned into actions."""
    result = {
        "thoughtEnhancement": {"shouldApply": False, "improvedText": "Other"},
        "actions": [],
    }

    assert build_proposed_actions(result) == []


def test_build_proposed_actions_tolerates_missing_actions() -> None:
    """A result without actions yields no proposals."""
    assert build_proposed_actions({}) == []


@pytest.mark.parametrize(
    "result",
    [
        {"actions": "createTask"},
        {"actions": ["createTask"]},
        {"actions": [{"data": {"title": "x"}}]},
        {"actions": [{"type": "sendEmail", "data": {}}]},
        {"actions": [{"type": "createTask", "data": {}}]},
    ],
)
def test_build_proposed_actions_rejects_invalid_results(result) -> None:
    """Malformed gateway results fail the whole attempt."""
    with pytest.raises(GatewayResponseError):
        build_proposed_actions(result)
