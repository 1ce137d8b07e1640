"""Typed payloads for AI-proposed actions and gateway result normalization.

Each action type carries its own payload model so that the executor never
has to guess at the shape of ``data``. Gateway payloads use camelCase field
names; the models accept either spelling and dump back to camelCase for
storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from thoughts.constants import SYSTEM_TOOL
from thoughts.errors import ActionPayloadError, GatewayResponseError


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AddTagPayload(_Payload):
    """Add a tag to the source thought."""

    tag: str = Field(min_length=1)


class Recurrence(_Payload):
    """Recurrence suggestion attached to a created task."""

    type: str = "none"
    frequency: int = 1
    reasoning: str | None = None


class CreateTaskPayload(_Payload):
    """Create a new task from the thought."""

    title: str = Field(min_length=1)
    category: str = "mastery"
    priority: str = "medium"
    estimated_time: int = Field(default=30, alias="estimatedTime")
    notes: str | None = None
    recurrence: Recurrence | None = None


class EnhanceTaskPayload(_Payload):
    """Enrich an existing task with information from the thought."""

    task_id: str = Field(alias="taskId", min_length=1)
    notes: str | None = None
    priority: str | None = None
    category: str | None = None
    updates: dict[str, Any] | None = None

    @model_validator(mode="after")
    def fold_updates(self) -> "EnhanceTaskPayload":
        """Merge the nested ``updates`` form into top-level fields."""
        if self.updates:
            for field_name in ("notes", "priority", "category"):
                value = self.updates.get(field_name)
                if getattr(self, field_name) is None and isinstance(value, str) and value:
                    setattr(self, field_name, value)
            self.updates = None
        if not self.changes():
            raise ValueError("no updates provided for enhanceTask")
        return self

    def changes(self) -> dict[str, str]:
        """Return the task fields this action sets."""
        return {
            name: value
            for name, value in (
                ("notes", self.notes),
                ("priority", self.priority),
                ("category", self.category),
            )
            if value
        }


class CreateProjectPayload(_Payload):
    """Create a new project and link the thought to it."""

    title: str = Field(min_length=1)
    objective: str | None = None
    description: str | None = None
    timeframe: str = "long-term"
    category: str = "mastery"
    priority: str = "medium"
    target_date: str | None = Field(default=None, alias="targetDate")
    action_plan: list[str] = Field(default_factory=list, alias="actionPlan")


class CreateGoalPayload(_Payload):
    """Create a new goal."""

    title: str = Field(min_length=1)
    objective: str | None = None


class CreateMoodPayload(_Payload):
    """Record a mood entry, optionally reclassifying the thought as a feeling."""

    value: int | None = Field(default=None, ge=1, le=10)
    note: str | None = None
    mood: str | None = None
    intensity: int | None = Field(default=None, ge=0, le=100)

    @model_validator(mode="after")
    def require_measure(self) -> "CreateMoodPayload":
        """Ensure the entry can be scored."""
        if self.value is None and self.intensity is None:
            raise ValueError("createMood requires value or intensity")
        return self

    def mood_value(self) -> int:
        """Return the 1-10 tracker value, converting 0-100 intensity when needed."""
        if self.value is not None:
            return self.value
        return max(1, min(10, round((self.intensity or 0) / 10)))


class LinkToProjectPayload(_Payload):
    """Link the thought to an existing project matched by title."""

    project_title: str = Field(alias="projectTitle", min_length=1)


class EnhanceThoughtPayload(_Payload):
    """Replace the thought text with an improved version."""

    improved_text: str = Field(alias="improvedText", min_length=1)
    changes: str | None = None


class ChangeTypePayload(_Payload):
    """Change the semantic type of the thought."""

    type: str = Field(min_length=1)


class SetIntensityPayload(_Payload):
    """Set the intensity score of the thought."""

    intensity: int


ActionPayload = Union[
    AddTagPayload,
    CreateTaskPayload,
    EnhanceTaskPayload,
    CreateProjectPayload,
    CreateGoalPayload,
    CreateMoodPayload,
    LinkToProjectPayload,
    EnhanceThoughtPayload,
    ChangeTypePayload,
    SetIntensityPayload,
]

ACTION_PAYLOAD_MODELS: dict[str, type[_Payload]] = {
    "addTag": AddTagPayload,
    "createTask": CreateTaskPayload,
    "enhanceTask": EnhanceTaskPayload,
    "createProject": CreateProjectPayload,
    "createGoal": CreateGoalPayload,
    "createMood": CreateMoodPayload,
    "linkToProject": LinkToProjectPayload,
    "enhanceThought": EnhanceThoughtPayload,
    "changeType": ChangeTypePayload,
    "setIntensity": SetIntensityPayload,
}


def parse_action_payload(action_type: str, data: Mapping[str, Any] | None) -> ActionPayload:
    """Validate raw action data against the model registered for its type."""
    model = ACTION_PAYLOAD_MODELS.get(action_type)
    if model is None:
        raise ActionPayloadError(action_type, "unknown action type")
    if data is not None and not isinstance(data, Mapping):
        raise ActionPayloadError(action_type, "data must be an object")
    try:
        return model.model_validate(dict(data or {}))
    except ValidationError as exc:
        raise ActionPayloadError(action_type, _summarize_validation_error(exc)) from exc


def dump_action_payload(payload: ActionPayload) -> dict[str, Any]:
    """Serialize a payload to its camelCase storage form."""
    return payload.model_dump(by_alias=True, exclude_none=True, mode="json")


def _summarize_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "data"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


@dataclass(frozen=True)
class ProposedActionInput:
    """Normalized action ready to be appended to a queue item."""

    type: str
    data: dict[str, Any]
    tool: str | None = None
    reasoning: str | None = None
    confidence: int | None = None


def build_proposed_actions(result: Mapping[str, Any]) -> list[ProposedActionInput]:
    """Turn a gateway result into the ordered list of actions to enqueue.

    A suggested thought enhancement with ``shouldApply`` set becomes a
    synthetic ``enhanceThought`` action placed ahead of every gateway action.
    """
    raw_actions = result.get("actions")
    if raw_actions is None:
        raw_actions = []
    if not isinstance(raw_actions, list):
        raise GatewayResponseError("gateway result 'actions' must be a list")

    proposals: list[ProposedActionInput] = []
    enhancement = result.get("thoughtEnhancement")
    if isinstance(enhancement, Mapping) and enhancement.get("shouldApply"):
        try:
            payload = parse_action_payload(
                "enhanceThought",
                {
                    "improvedText": enhancement.get("improvedText"),
                    "changes": enhancement.get("changes"),
                },
            )
        except ActionPayloadError as exc:
            raise GatewayResponseError(f"thoughtEnhancement: {exc}") from exc
        proposals.append(
            ProposedActionInput(
                type="enhanceThought",
                tool=SYSTEM_TOOL,
                data=dump_action_payload(payload),
                reasoning=_optional_text(enhancement.get("changes")),
            )
        )

    for index, raw in enumerate(raw_actions):
        if not isinstance(raw, Mapping):
            raise GatewayResponseError(f"action {index} is not an object")
        action_type = raw.get("type")
        if not isinstance(action_type, str) or not action_type:
            raise GatewayResponseError(f"action {index} is missing a type")
        try:
            payload = parse_action_payload(action_type, raw.get("data"))
        except ActionPayloadError as exc:
            raise GatewayResponseError(f"action {index}: {exc}") from exc
        proposals.append(
            ProposedActionInput(
                type=action_type,
                tool=_optional_text(raw.get("tool")),
                data=dump_action_payload(payload),
                reasoning=_optional_text(raw.get("reasoning")),
                confidence=_optional_int(raw.get("confidence")),
            )
        )
    return proposals


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value: Any) -> int | None:
    try:
        return None if value is None else int(value)
    except (TypeError, ValueError):
        return None


__all__ = [
    "ACTION_PAYLOAD_MODELS",
    "ActionPayload",
    "AddTagPayload",
    "ChangeTypePayload",
    "CreateGoalPayload",
    "CreateMoodPayload",
    "CreateProjectPayload",
    "CreateTaskPayload",
    "EnhanceTaskPayload",
    "EnhanceThoughtPayload",
    "LinkToProjectPayload",
    "ProposedActionInput",
    "Recurrence",
    "SetIntensityPayload",
    "build_proposed_actions",
    "dump_action_payload",
    "parse_action_payload",
]
