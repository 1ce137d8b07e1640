"""Unit tests for the processing queue repository."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from models import ProcessAction
from thoughts.errors import ActionNotFound, QueueItemNotFound
from thoughts.queue_repository import (
    ActionCreateInput,
    ActionUpdateInput,
    ProcessQueueRepository,
    QueueItemCreateInput,
    QueueItemUpdateInput,
)
from thoughts.revert import OriginalThought, RevertData


def _create_input(thought_id: str = "t1", **overrides) -> QueueItemCreateInput:
    return QueueItemCreateInput(
        thought_id=thought_id,
        revert_data=RevertData(original_thought=OriginalThought(text="Buy milk", tags=["a"])),
        **overrides,
    )


def _action(action_type: str, **data) -> ActionCreateInput:
    return ActionCreateInput(type=action_type, thought_id="t1", data=data)


def test_add_to_queue_stores_pending_item(sqlite_session_factory: sessionmaker) -> None:
    """A new queue item starts pending with empty action bookkeeping."""
    repo = ProcessQueueRepository(sqlite_session_factory)

    queue_id = repo.add_to_queue(_create_input())
    item = repo.get_queue_item(queue_id)

    assert item is not None
    assert item.status == "pending"
    assert item.mode == "auto"
    assert item.actions == []
    assert item.approved_action_ids == []
    assert item.executed_action_ids == []
    assert item.revertible is True
    assert item.error is None
    assert item.revert_data["originalThought"] == {
        "text": "Buy milk",
        "type": None,
        "tags": ["a"],
        "intensity": None,
    }


def test_add_to_queue_generates_distinct_ids(sqlite_session_factory: sessionmaker) -> None:
    """Every attempt receives its own identifier."""
    repo = ProcessQueueRepository(sqlite_session_factory)

    first = repo.add_to_queue(_create_input("t1"))
    second = repo.add_to_queue(_create_input("t2"))

    assert first != second


def test_add_to_queue_rejects_unknown_mode(sqlite_session_factory: sessionmaker) -> None:
    """Only auto and manual modes are accepted."""
    repo = ProcessQueueRepository(sqlite_session_factory)

    with pytest.raises(ValueError, match="Unsupported queue mode"):
        repo.add_to_queue(_create_input(mode="batch"))


def test_update_queue_item_merges_only_provided_fields(sqlite_session_factory: sessionmaker) -> None:
    """Unset fields are left untouched by a partial update."""
    now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    repo = ProcessQueueRepository(sqlite_session_factory, now_provider=lambda: now)
    queue_id = repo.add_to_queue(_create_input())

    repo.update_queue_item(queue_id, QueueItemUpdateInput(status="processing"))
    repo.update_queue_item(queue_id, QueueItemUpdateInput(ai_response={"actions": []}))
    item = repo.get_queue_item(queue_id)

    assert item.status == "processing"
    assert item.ai_response == {"actions": []}
    assert item.error is None
    assert item.revertible is True


def test_update_queue_item_unknown_id_raises(sqlite_session_factory: sessionmaker) -> None:
    """Updating a missing queue item raises QueueItemNotFound."""
    repo = ProcessQueueRepository(sqlite_session_factory)

    with pytest.raises(QueueItemNotFound) as exc_info:
        repo.update_queue_item("missing", QueueItemUpdateInput(status="failed"))

    assert exc_info.value.queue_id == "missing"


def test_update_queue_item_rejects_unknown_status(sqlite_session_factory: sessionmaker) -> None:
    """Statuses outside the state machine are rejected and nothing is stored."""
    repo = ProcessQueueRepository(sqlite_session_factory)
    queue_id = repo.add_to_queue(_create_input())

    with pytest.raises(ValueError, match="Unsupported queue status"):
        repo.update_queue_item(queue_id, QueueItemUpdateInput(status="done"))

    assert repo.get_queue_item(queue_id).status == "pending"


def test_add_action_preserves_insertion_order(sqlite_session_factory: sessionmaker) -> None:
    """Actions are presented in the order they were appended."""
    repo = ProcessQueueRepository(sqlite_session_factory)
    queue_id = repo.add_to_queue(_create_input())

    ids = [
        repo.add_action(queue_id, _action("enhanceThought", improvedText="Buy oat milk")),
        repo.add_action(queue_id, _action("createTask", title="Buy milk")),
        repo.add_action(queue_id, _action("addTag", tag="tool-errands")),
    ]
    item = repo.get_queue_item(queue_id)

    assert [action.id for action in item.actions] == ids
    assert [action.type for action in item.actions] == ["enhanceThought", "createTask", "addTag"]
    assert [action.position for action in item.actions] == [0, 1, 2]
    assert all(action.status == "pending" for action in item.actions)


def test_add_action_unknown_queue_item_raises(sqlite_session_factory: sessionmaker) -> None:
    """Actions cannot be attached to a missing queue item."""
    repo = ProcessQueueRepository(sqlite_session_factory)

    with pytest.raises(QueueItemNotFound):
        repo.add_action("missing", _action("addTag", tag="x"))


def test_update_action_records_status_and_error(sqlite_session_factory: sessionmaker) -> None:
    """Action updates apply to the action on the given queue item."""
    repo = ProcessQueueRepository(sqlite_session_factory)
    queue_id = repo.add_to_queue(_create_input())
    action_id = repo.add_action(queue_id, _action("addTag", tag="x"))

    updated = repo.update_action(
        queue_id,
        action_id,
        ActionUpdateInput(status="failed", error="Thought not found"),
    )

    assert updated.status == "failed"
    assert updated.error == "Thought not found"


def test_update_action_on_other_queue_item_raises(sqlite_session_factory: sessionmaker) -> None:
    """An action id from another queue item is not found."""
    repo = ProcessQueueRepository(sqlite_session_factory)
    first = repo.add_to_queue(_create_input("t1"))
    second = repo.add_to_queue(_create_input("t2"))
    action_id = repo.add_action(first, _action("addTag", tag="x"))

    with pytest.raises(ActionNotFound):
        repo.update_action(second, action_id, ActionUpdateInput(status="approved"))


def test_list_and_find(sqlite_session_factory: sessionmaker) -> None:
    """Listing filters by status and find_by_thought matches the thought id."""
    clock = iter(datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=i) for i in range(10))
    repo = ProcessQueueRepository(sqlite_session_factory, now_provider=lambda: next(clock))
    first = repo.add_to_queue(_create_input("t1"))
    second = repo.add_to_queue(_create_input("t2"))
    repo.update_queue_item(second, QueueItemUpdateInput(status="failed", error="boom"))

    assert [item.id for item in repo.list_queue_items()] == [first, second]
    assert [item.id for item in repo.list_queue_items(status="failed")] == [second]
    assert [item.id for item in repo.find_by_thought("t1")] == [first]
    assert repo.queued_thought_ids() == {"t1", "t2"}


def test_remove_queue_item_deletes_actions(sqlite_session_factory: sessionmaker) -> None:
    """Removing a queue item deletes it with its actions."""
    repo = ProcessQueueRepository(sqlite_session_factory)
    queue_id = repo.add_to_queue(_create_input())
    repo.add_action(queue_id, _action("addTag", tag="x"))

    assert repo.remove_queue_item(queue_id) is True
    assert repo.remove_queue_item(queue_id) is False
    assert repo.get_queue_item(queue_id) is None
    with sqlite_session_factory() as session:
        assert session.query(ProcessAction).count() == 0
