"""Revert metadata captured for each processing attempt."""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from models import Thought
from thoughts.constants import PROCESSED_TAG


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class OriginalThought(_Model):
    """Thought fields as they were before processing."""

    text: str
    type: str | None = None
    tags: list[str] = Field(default_factory=list)
    intensity: int | None = None


class CreatedItems(_Model):
    """Identifiers of entities created as a side effect of approved actions."""

    task_ids: list[str] = Field(default_factory=list, alias="taskIds")
    note_ids: list[str] = Field(default_factory=list, alias="noteIds")
    project_ids: list[str] = Field(default_factory=list, alias="projectIds")
    goal_ids: list[str] = Field(default_factory=list, alias="goalIds")
    mood_ids: list[str] = Field(default_factory=list, alias="moodIds")


class ThoughtChanges(_Model):
    """Flags for thought fields changed by executed actions."""

    text_changed: bool = Field(default=False, alias="textChanged")
    type_changed: bool = Field(default=False, alias="typeChanged")
    intensity_changed: bool = Field(default=False, alias="intensityChanged")
    original_text: str | None = Field(default=None, alias="originalText")
    original_type: str | None = Field(default=None, alias="originalType")
    original_intensity: int | None = Field(default=None, alias="originalIntensity")


class RevertData(_Model):
    """Snapshot sufficient to reconstruct the pre-processing state."""

    original_thought: OriginalThought = Field(alias="originalThought")
    created_items: CreatedItems = Field(default_factory=CreatedItems, alias="createdItems")
    thought_changes: ThoughtChanges = Field(default_factory=ThoughtChanges, alias="thoughtChanges")
    added_tags: list[str] = Field(default_factory=list, alias="addedTags")
    linked_project_ids: list[str] = Field(default_factory=list, alias="linkedProjectIds")
    task_changes: dict[str, dict[str, Any]] = Field(default_factory=dict, alias="taskChanges")
    can_revert: bool = Field(default=True, alias="canRevert")

    def record_text_change(self, original: str) -> None:
        """Remember the pre-change text the first time it is overwritten."""
        if not self.thought_changes.text_changed:
            self.thought_changes.text_changed = True
            self.thought_changes.original_text = original

    def record_type_change(self, original: str | None) -> None:
        """Remember the pre-change type the first time it is overwritten."""
        if not self.thought_changes.type_changed:
            self.thought_changes.type_changed = True
            self.thought_changes.original_type = original

    def record_intensity_change(self, original: int | None) -> None:
        """Remember the pre-change intensity the first time it is overwritten."""
        if not self.thought_changes.intensity_changed:
            self.thought_changes.intensity_changed = True
            self.thought_changes.original_intensity = original

    def record_added_tag(self, tag: str) -> None:
        """Remember a tag added by processing."""
        if tag not in self.added_tags:
            self.added_tags.append(tag)

    def record_task_change(self, task_id: str, original_fields: Mapping[str, Any]) -> None:
        """Remember task fields before their first enhancement."""
        existing = self.task_changes.setdefault(task_id, {})
        for name, value in original_fields.items():
            existing.setdefault(name, value)


def build_revert_snapshot(thought: Thought) -> RevertData:
    """Capture the revert snapshot for a thought about to be processed."""
    return RevertData(
        original_thought=OriginalThought(
            text=thought.text,
            type=thought.type,
            tags=list(thought.tags or []),
            intensity=thought.intensity,
        )
    )


def load_revert_data(raw: Mapping[str, Any]) -> RevertData:
    """Parse stored revert metadata."""
    return RevertData.model_validate(dict(raw))


def dump_revert_data(data: RevertData) -> dict[str, Any]:
    """Serialize revert metadata to its camelCase storage form."""
    return data.model_dump(by_alias=True, mode="json")


def compute_thought_restore(
    revert_data: RevertData,
    current_tags: list[str] | None,
) -> dict[str, Any]:
    """Return the thought field values that undo a processing attempt.

    Tags added by processing and the processed marker are removed; text,
    type and intensity are restored only when an executed action changed
    them.
    """
    removed = set(revert_data.added_tags) | {PROCESSED_TAG}
    original_tags = revert_data.original_thought.tags
    updates: dict[str, Any] = {
        "tags": [
            tag for tag in (current_tags or []) if tag not in removed or tag in original_tags
        ],
    }
    changes = revert_data.thought_changes
    if changes.text_changed:
        updates["text"] = (
            changes.original_text
            if changes.original_text is not None
            else revert_data.original_thought.text
        )
    if changes.type_changed:
        updates["type"] = changes.original_type
    if changes.intensity_changed:
        updates["intensity"] = changes.original_intensity
    return updates
