"""Unit tests for applying approved actions and reverting attempts."""

from __future__ import annotations

import json

import pytest

from models import Goal, MoodEntry, Project, ProjectThoughtLink, Task, Thought
from thoughts.errors import QueueItemNotFound, RevertNotAllowed
from thoughts.executor import ActionExecutor
from thoughts.queue_repository import (
    ActionCreateInput,
    QueueItemCreateInput,
    QueueItemUpdateInput,
)
from thoughts.revert import build_revert_snapshot


@pytest.fixture
def enqueue(pipeline):
    """Return a helper that enqueues a thought with the given actions."""

    def _enqueue(thought_id: str, *actions: tuple[str, dict]) -> tuple[str, list[str]]:
        with pipeline.session_factory() as session:
            thought = session.get(Thought, thought_id)
            snapshot = build_revert_snapshot(thought)
        queue_id = pipeline.queue.add_to_queue(
            QueueItemCreateInput(thought_id=thought_id, revert_data=snapshot)
        )
        pipeline.queue.update_queue_item(queue_id, QueueItemUpdateInput(status="awaiting-approval"))
        action_ids = [
            pipeline.queue.add_action(
                queue_id,
                ActionCreateInput(type=action_type, thought_id=thought_id, data=data, reasoning="why"),
            )
            for action_type, data in actions
        ]
        return queue_id, action_ids

    return _enqueue


def _get(pipeline, model, entity_id):
    with pipeline.session_factory() as session:
        entity = session.get(model, entity_id)
        if entity is not None:
            session.expunge(entity)
        return entity


def _revert_data(pipeline, queue_id: str) -> dict:
    return pipeline.queue.get_queue_item(queue_id).revert_data


def test_add_tag_records_added_tag(pipeline, add_thought, enqueue) -> None:
    """New tags are appended once and remembered for revert."""
    thought_id = add_thought("Buy milk", tags=["errand"])
    queue_id, (first, second) = enqueue(
        thought_id,
        ("addTag", {"tag": "tool-errands"}),
        ("addTag", {"tag": "errand"}),
    )

    assert pipeline.executor.execute_action(queue_id, first).success is True
    assert pipeline.executor.execute_action(queue_id, second).success is True

    assert _get(pipeline, Thought, thought_id).tags == ["errand", "tool-errands"]
    assert _revert_data(pipeline, queue_id)["addedTags"] == ["tool-errands"]


def test_create_task_links_source_thought(pipeline, add_thought, enqueue) -> None:
    """Created tasks carry metadata about the originating attempt."""
    thought_id = add_thought("Buy milk")
    queue_id, (action_id,) = enqueue(
        thought_id,
        (
            "createTask",
            {
                "title": "Buy milk",
                "priority": "high",
                "recurrence": {"type": "weekly", "frequency": 1, "reasoning": "every week"},
            },
        ),
    )

    result = pipeline.executor.execute_action(queue_id, action_id)

    assert result.success is True
    task_ids = _revert_data(pipeline, queue_id)["createdItems"]["taskIds"]
    task = _get(pipeline, Task, task_ids[0])
    assert task.title == "Buy milk"
    assert task.priority == "high"
    assert task.source_thought_id == thought_id
    assert task.created_by == "thought-processor"
    assert task.recurrence == {"type": "weekly", "frequency": 1}
    metadata = json.loads(task.notes)
    assert metadata["processQueueId"] == queue_id
    assert metadata["aiReasoning"] == "why\nRecurrence: every week"
    action = pipeline.queue.get_queue_item(queue_id).actions[0]
    assert action.created_items == {"taskIds": task_ids}


def test_enhance_task_records_original_fields(pipeline, add_thought, enqueue) -> None:
    """Task enhancements append notes and keep the prior values for revert."""
    thought_id = add_thought("Mom prefers mornings")
    with pipeline.session_factory() as session:
        task = Task(title="Call mom", notes="Sunday", priority="low")
        session.add(task)
        session.commit()
        task_id = task.id
    queue_id, (action_id,) = enqueue(
        thought_id,
        ("enhanceTask", {"taskId": task_id, "notes": "Call before noon", "priority": "high"}),
    )

    assert pipeline.executor.execute_action(queue_id, action_id).success is True

    task = _get(pipeline, Task, task_id)
    assert task.notes == "Sunday\n\nCall before noon"
    assert task.priority == "high"
    assert task.ai_enhanced is True
    assert _revert_data(pipeline, queue_id)["taskChanges"] == {
        task_id: {"notes": "Sunday", "priority": "low", "ai_enhanced": False}
    }


def test_enhance_missing_task_fails(pipeline, add_thought, enqueue) -> None:
    """Unknown task ids fail the action without side effects."""
    thought_id = add_thought("Mom prefers mornings")
    queue_id, (action_id,) = enqueue(thought_id, ("enhanceTask", {"taskId": "nope", "notes": "x"}))

    result = pipeline.executor.execute_action(queue_id, action_id)

    assert result.success is False
    assert result.error == "Task nope not found"
    assert _revert_data(pipeline, queue_id)["taskChanges"] == {}


def test_create_project_and_goal(pipeline, add_thought, enqueue) -> None:
    """Projects link back to the thought and goals record their source."""
    thought_id = add_thought("Plan a vegetable garden")
    queue_id, (project_action, goal_action) = enqueue(
        thought_id,
        ("createProject", {"title": "Garden", "actionPlan": ["Buy seeds"]}),
        ("createGoal", {"title": "Grow food"}),
    )

    pipeline.executor.execute_action(queue_id, project_action)
    pipeline.executor.execute_action(queue_id, goal_action)

    created = _revert_data(pipeline, queue_id)["createdItems"]
    project = _get(pipeline, Project, created["projectIds"][0])
    assert project.objective == "AI-suggested project"
    assert project.action_plan == ["Buy seeds"]
    assert [link.thought_id for link in project.thought_links] == [thought_id]
    goal = _get(pipeline, Goal, created["goalIds"][0])
    assert goal.source_thought_id == thought_id


def test_create_mood_reclassifies_thought(pipeline, add_thought, enqueue) -> None:
    """Mood entries with a mood reclassify the thought as a feeling."""
    thought_id = add_thought("Feeling anxious about work", type="idea")
    queue_id, (action_id,) = enqueue(
        thought_id,
        ("createMood", {"mood": "anxious", "intensity": 70}),
    )

    assert pipeline.executor.execute_action(queue_id, action_id).success is True

    thought = _get(pipeline, Thought, thought_id)
    assert thought.type == "feeling-bad"
    assert thought.intensity == 70
    assert "mood" in thought.tags
    mood_id = _revert_data(pipeline, queue_id)["createdItems"]["moodIds"][0]
    mood = _get(pipeline, MoodEntry, mood_id)
    assert mood.value == 7
    assert mood.note == "anxious (from thought)"


def test_link_to_project_prefers_exact_title(pipeline, add_thought, enqueue) -> None:
    """Exact title matches win over partial matches."""
    thought_id = add_thought("Compost bins")
    with pipeline.session_factory() as session:
        session.add_all([Project(title="Garden Shed"), Project(title="garden")])
        session.commit()
    queue_id, (action_id,) = enqueue(thought_id, ("linkToProject", {"projectTitle": "Garden"}))

    assert pipeline.executor.execute_action(queue_id, action_id).success is True

    with pipeline.session_factory() as session:
        linked = (
            session.query(Project.title)
            .join(ProjectThoughtLink, ProjectThoughtLink.project_id == Project.id)
            .filter(ProjectThoughtLink.thought_id == thought_id)
            .all()
        )
    assert [row.title for row in linked] == ["garden"]


def test_link_to_unknown_project_fails(pipeline, add_thought, enqueue) -> None:
    """A title with no match fails the action."""
    thought_id = add_thought("Compost bins")
    queue_id, (action_id,) = enqueue(thought_id, ("linkToProject", {"projectTitle": "Kitchen"}))

    result = pipeline.executor.execute_action(queue_id, action_id)

    assert result.success is False
    assert result.error == 'Project "Kitchen" not found'


def test_failure_events_reach_log_hook(pipeline, add_thought, enqueue) -> None:
    """Execution events are forwarded to the hook after the attempt."""
    events = []
    executor = ActionExecutor(
        pipeline.session_factory,
        log_hook=lambda message, data: events.append((message, data)),
    )
    thought_id = add_thought("Buy milk")
    queue_id, (action_id,) = enqueue(thought_id, ("setIntensity", {"intensity": "loud"}))

    result = executor.execute_action(queue_id, action_id)

    assert result.success is False
    assert [message for message, _ in events] == ["Executing action", "Action execution failed"]


def test_execute_unknown_queue_item_raises(pipeline) -> None:
    """Lookup errors propagate to the caller."""
    with pytest.raises(QueueItemNotFound):
        pipeline.executor.execute_action("missing", "action")


def test_revert_restores_pre_processing_state(pipeline, add_thought, enqueue) -> None:
    """Reverting an approved attempt removes created entities and restores the thought."""
    thought_id = add_thought("X")
    queue_id, _ = enqueue(
        thought_id,
        ("enhanceThought", {"improvedText": "X, clarified", "changes": "clarified"}),
        ("addTag", {"tag": "tool-tasks"}),
        ("createTask", {"title": "Do X"}),
        ("setIntensity", {"intensity": 40}),
        ("changeType", {"type": "task"}),
    )
    result = pipeline.approval.approve_and_execute(queue_id)
    assert result.status == "completed"
    processed = _get(pipeline, Thought, thought_id)
    assert processed.text == "X, clarified"
    assert processed.tags == ["tool-tasks", "processed"]
    task_id = _revert_data(pipeline, queue_id)["createdItems"]["taskIds"][0]

    pipeline.executor.revert_processing(queue_id)

    thought = _get(pipeline, Thought, thought_id)
    assert thought.text == "X"
    assert thought.tags == []
    assert thought.type is None
    assert thought.intensity is None
    assert "[Reverted: " in thought.notes
    assert _get(pipeline, Task, task_id) is None
    item = pipeline.queue.get_queue_item(queue_id)
    assert item.status == "reverted"
    assert item.reverted_at is not None


def test_revert_restores_enhanced_task_and_links(pipeline, add_thought, enqueue) -> None:
    """Enhanced tasks and project links are undone."""
    thought_id = add_thought("Mom prefers mornings")
    with pipeline.session_factory() as session:
        task = Task(title="Call mom", notes=None, priority="low")
        project = Project(title="Family")
        session.add_all([task, project])
        session.commit()
        task_id, project_id = task.id, project.id
    queue_id, _ = enqueue(
        thought_id,
        ("enhanceTask", {"taskId": task_id, "notes": "Before noon"}),
        ("linkToProject", {"projectTitle": "family"}),
    )
    pipeline.approval.approve_and_execute(queue_id)

    pipeline.executor.revert_processing(queue_id)

    task = _get(pipeline, Task, task_id)
    assert task.notes is None
    assert task.ai_enhanced is False
    project = _get(pipeline, Project, project_id)
    assert project.thought_links == []


def test_revert_twice_is_rejected(pipeline, add_thought, enqueue) -> None:
    """An attempt can only be reverted once."""
    thought_id = add_thought("X")
    queue_id, _ = enqueue(thought_id, ("addTag", {"tag": "tool-notes"}))
    pipeline.approval.approve_and_execute(queue_id)
    pipeline.executor.revert_processing(queue_id)

    with pytest.raises(RevertNotAllowed):
        pipeline.executor.revert_processing(queue_id)


def test_revert_non_revertible_item(pipeline, add_thought, enqueue) -> None:
    """Items flagged as not revertible are left untouched."""
    thought_id = add_thought("X")
    queue_id, _ = enqueue(thought_id, ("addTag", {"tag": "tool-notes"}))
    pipeline.queue.update_queue_item(queue_id, QueueItemUpdateInput(revertible=False))

    with pytest.raises(RevertNotAllowed):
        pipeline.executor.revert_processing(queue_id)
    assert pipeline.queue.get_queue_item(queue_id).status == "awaiting-approval"
