"""Apply approved actions to the entity store and revert processing attempts.

Every mutation runs in a single transaction together with the revert
metadata update, so a failed action leaves neither a partial entity nor
stale revert data behind.
"""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
import json
import logging
import re
from typing import Any, Callable

from sqlalchemy.orm import Session

from models import (
    Goal,
    MoodEntry,
    Note,
    ProcessAction,
    ProcessQueueItem,
    Project,
    ProjectThoughtLink,
    Task,
    Thought,
)
from thoughts.actions import (
    AddTagPayload,
    ChangeTypePayload,
    CreateGoalPayload,
    CreateMoodPayload,
    CreateProjectPayload,
    CreateTaskPayload,
    EnhanceTaskPayload,
    EnhanceThoughtPayload,
    LinkToProjectPayload,
    SetIntensityPayload,
    parse_action_payload,
)
from thoughts.constants import PROCESSOR_ACTOR
from thoughts.errors import (
    ActionExecutionError,
    RevertNotAllowed,
    ThoughtNotFound,
    describe_error,
)
from thoughts.queue_repository import (
    QueueItemUpdateInput,
    apply_queue_update,
    fetch_action,
    fetch_queue_item,
)
from thoughts.revert import RevertData, compute_thought_restore, dump_revert_data, load_revert_data
from time_utils import isoformat_utc, utc_now

logger = logging.getLogger(__name__)

ExecutionLogHook = Callable[[str, dict[str, Any]], None]

MOOD_TAG = "mood"
_POSITIVE_MOOD = re.compile(r"(happy|joy|excited|amazing|great|wonderful|love|content)", re.I)
_NEGATIVE_MOOD = re.compile(
    r"(sad|depressed|anxious|stressed|frustrated|angry|worried|down|terrible|awful)",
    re.I,
)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of applying a single action."""

    success: bool
    error: str | None = None


@dataclass
class _ActionContext:
    session: Session
    item: ProcessQueueItem
    action: ProcessAction
    revert: RevertData
    now: datetime


class ActionExecutor:
    """Applies approved actions and reverses completed processing attempts."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        log_hook: ExecutionLogHook | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the executor with a session factory and optional log hook."""
        self._session_factory = session_factory
        self._log_hook = log_hook
        self._now_provider = now_provider or utc_now
        self._handlers: dict[str, Callable[[_ActionContext, Any], dict[str, list[str]] | None]] = {
            "addTag": self._add_tag,
            "createTask": self._create_task,
            "enhanceTask": self._enhance_task,
            "createProject": self._create_project,
            "createGoal": self._create_goal,
            "createMood": self._create_mood,
            "linkToProject": self._link_to_project,
            "enhanceThought": self._enhance_thought,
            "changeType": self._change_type,
            "setIntensity": self._set_intensity,
        }

    def set_log_hook(self, hook: ExecutionLogHook | None) -> None:
        """Register the hook that observes every execution event."""
        self._log_hook = hook

    def execute_action(self, queue_id: str, action_id: str) -> ExecutionResult:
        """Apply one action and record its revert data.

        Lookup errors for the queue item or action propagate; failures while
        applying the action are reported in the result.
        """
        events: list[tuple[str, dict[str, Any]]] = []
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            item = fetch_queue_item(session, queue_id)
            action = fetch_action(session, queue_id, action_id)
            action_type = action.type
            events.append(
                ("Executing action", {"action": action_type, "thoughtId": action.thought_id})
            )
            try:
                handler = self._handlers.get(action_type)
                if handler is None:
                    raise ActionExecutionError(f"Unknown action type: {action_type}")
                payload = parse_action_payload(action_type, action.data)
                context = _ActionContext(
                    session=session,
                    item=item,
                    action=action,
                    revert=load_revert_data(item.revert_data or {}),
                    now=self._now_provider(),
                )
                created = handler(context, payload)
                item.revert_data = dump_revert_data(context.revert)
                if created:
                    action.created_items = created
                session.commit()
            except Exception as exc:
                session.rollback()
                message = describe_error(exc)
                logger.warning(
                    "Action %s (%s) on queue item %s failed: %s",
                    action_id,
                    action_type,
                    queue_id,
                    message,
                )
                events.append(
                    ("Action execution failed", {"action": action_type, "error": message})
                )
                self._emit(events)
                return ExecutionResult(success=False, error=message)

        events.append(("Action executed successfully", {"action": action_type}))
        self._emit(events)
        return ExecutionResult(success=True)

    def revert_processing(self, queue_id: str) -> None:
        """Undo every recorded effect of a processing attempt."""
        events: list[tuple[str, dict[str, Any]]] = [("Starting revert", {"queueItemId": queue_id})]
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                item = fetch_queue_item(session, queue_id)
                if not item.revertible or item.status == "reverted":
                    raise RevertNotAllowed(f"Processing cannot be reverted: {queue_id}")
                revert = load_revert_data(item.revert_data or {})
                now = self._now_provider()
                events.extend(self._delete_created(session, revert))
                for project_id in revert.linked_project_ids:
                    session.query(ProjectThoughtLink).filter(
                        ProjectThoughtLink.project_id == project_id,
                        ProjectThoughtLink.thought_id == item.thought_id,
                    ).delete(synchronize_session=False)
                for task_id, original in revert.task_changes.items():
                    task = session.get(Task, task_id)
                    if task is None:
                        continue
                    for name, value in original.items():
                        setattr(task, name, value)
                    events.append(("Restored task", {"taskId": task_id}))

                thought = session.get(Thought, item.thought_id)
                if thought is not None:
                    for name, value in compute_thought_restore(revert, thought.tags).items():
                        setattr(thought, name, value)
                    thought.notes = _append_note(thought.notes, f"[Reverted: {isoformat_utc(now)}]")
                    events.append(("Thought restored", {"thoughtId": item.thought_id}))

                apply_queue_update(
                    item,
                    QueueItemUpdateInput(status="reverted", reverted_at=now),
                    now=now,
                )
                session.commit()
            except Exception as exc:
                session.rollback()
                events.append(("Revert failed", {"error": describe_error(exc)}))
                self._emit(events)
                raise

        events.append(("Revert completed", {"queueItemId": queue_id}))
        self._emit(events)
        logger.info("Reverted queue item %s", queue_id)

    def _delete_created(
        self,
        session: Session,
        revert: RevertData,
    ) -> list[tuple[str, dict[str, Any]]]:
        created = revert.created_items
        events = []
        for model, ids, label in (
            (Task, created.task_ids, "taskId"),
            (Project, created.project_ids, "projectId"),
            (Goal, created.goal_ids, "goalId"),
            (MoodEntry, created.mood_ids, "moodId"),
            (Note, created.note_ids, "noteId"),
        ):
            for entity_id in ids:
                entity = session.get(model, entity_id)
                if entity is not None:
                    session.delete(entity)
                    events.append((f"Deleted {model.__tablename__[:-1]}", {label: entity_id}))
        session.flush()
        return events

    def _thought(self, context: _ActionContext) -> Thought:
        thought = context.session.get(Thought, context.action.thought_id)
        if thought is None:
            raise ThoughtNotFound(context.action.thought_id)
        return thought

    def _metadata_note(self, context: _ActionContext, reasoning: str | None = None) -> str:
        return json.dumps(
            {
                "sourceThoughtId": context.action.thought_id,
                "createdBy": PROCESSOR_ACTOR,
                "processQueueId": context.item.id,
                "aiReasoning": reasoning if reasoning is not None else context.action.ai_reasoning,
                "processedAt": isoformat_utc(context.now),
            }
        )

    def _add_tag(self, context: _ActionContext, payload: AddTagPayload) -> None:
        thought = self._thought(context)
        tags = list(thought.tags or [])
        if payload.tag not in tags:
            thought.tags = [*tags, payload.tag]
            context.revert.record_added_tag(payload.tag)

    def _create_task(self, context: _ActionContext, payload: CreateTaskPayload) -> dict[str, list[str]]:
        recurrence = None
        reasoning = context.action.ai_reasoning
        if payload.recurrence is not None and payload.recurrence.type != "none":
            recurrence = {"type": payload.recurrence.type, "frequency": payload.recurrence.frequency}
            if payload.recurrence.reasoning:
                recurrence_note = f"Recurrence: {payload.recurrence.reasoning}"
                reasoning = f"{reasoning}\n{recurrence_note}" if reasoning else recurrence_note
        notes = self._metadata_note(context, reasoning)
        if payload.notes:
            notes = f"{payload.notes}\n\n{notes}"
        task = Task(
            title=payload.title,
            category=payload.category,
            priority=payload.priority,
            status="active",
            done=False,
            estimated_minutes=payload.estimated_time,
            recurrence=recurrence,
            notes=notes,
            source_thought_id=context.action.thought_id,
            created_by=PROCESSOR_ACTOR,
            created_at=context.now,
        )
        context.session.add(task)
        context.session.flush()
        context.revert.created_items.task_ids.append(task.id)
        return {"taskIds": [task.id]}

    def _enhance_task(self, context: _ActionContext, payload: EnhanceTaskPayload) -> None:
        task = context.session.get(Task, payload.task_id)
        if task is None:
            raise ActionExecutionError(f"Task {payload.task_id} not found")
        changes = payload.changes()
        context.revert.record_task_change(
            task.id,
            {name: getattr(task, name) for name in [*changes, "ai_enhanced"]},
        )
        for name, value in changes.items():
            if name == "notes":
                value = _append_note(task.notes, value)
            setattr(task, name, value)
        task.ai_enhanced = True

    def _create_project(
        self,
        context: _ActionContext,
        payload: CreateProjectPayload,
    ) -> dict[str, list[str]]:
        project = Project(
            title=payload.title,
            objective=payload.objective or payload.description or "AI-suggested project",
            description=payload.description,
            action_plan=list(payload.action_plan),
            timeframe=payload.timeframe,
            category=payload.category,
            priority=payload.priority,
            status="active",
            target_date=payload.target_date,
            progress=0,
            notes=self._metadata_note(context),
            source="ai",
            created_at=context.now,
        )
        project.thought_links.append(ProjectThoughtLink(thought_id=context.action.thought_id))
        context.session.add(project)
        context.session.flush()
        context.revert.created_items.project_ids.append(project.id)
        return {"projectIds": [project.id]}

    def _create_goal(self, context: _ActionContext, payload: CreateGoalPayload) -> dict[str, list[str]]:
        goal = Goal(
            title=payload.title,
            objective=payload.objective,
            status="active",
            source_thought_id=context.action.thought_id,
            created_by=PROCESSOR_ACTOR,
            created_at=context.now,
        )
        context.session.add(goal)
        context.session.flush()
        context.revert.created_items.goal_ids.append(goal.id)
        return {"goalIds": [goal.id]}

    def _create_mood(self, context: _ActionContext, payload: CreateMoodPayload) -> dict[str, list[str]]:
        thought = self._thought(context)
        if payload.mood or payload.intensity is not None:
            # Mood-bearing thoughts are reclassified as feelings.
            context.revert.record_type_change(thought.type)
            thought.type = _feeling_type(payload.mood or "")
            if payload.intensity is not None:
                context.revert.record_intensity_change(thought.intensity)
                thought.intensity = payload.intensity
            tags = list(thought.tags or [])
            if MOOD_TAG not in tags:
                thought.tags = [*tags, MOOD_TAG]
                context.revert.record_added_tag(MOOD_TAG)

        note = payload.note or (f"{payload.mood} (from thought)" if payload.mood else None)
        mood = MoodEntry(
            value=payload.mood_value(),
            note=note,
            source_thought_id=context.action.thought_id,
            created_by=PROCESSOR_ACTOR,
            created_at=context.now,
        )
        context.session.add(mood)
        context.session.flush()
        context.revert.created_items.mood_ids.append(mood.id)
        return {"moodIds": [mood.id]}

    def _link_to_project(self, context: _ActionContext, payload: LinkToProjectPayload) -> None:
        wanted = payload.project_title.strip().lower()
        projects = context.session.query(Project).order_by(Project.created_at.asc()).all()
        project = next((p for p in projects if p.title.lower() == wanted), None)
        if project is None:
            project = next((p for p in projects if wanted in p.title.lower()), None)
        if project is None:
            raise ActionExecutionError(f'Project "{payload.project_title}" not found')

        thought_id = context.action.thought_id
        if any(link.thought_id == thought_id for link in project.thought_links):
            return
        project.thought_links.append(ProjectThoughtLink(thought_id=thought_id))
        if project.id not in context.revert.linked_project_ids:
            context.revert.linked_project_ids.append(project.id)

    def _enhance_thought(self, context: _ActionContext, payload: EnhanceThoughtPayload) -> None:
        thought = self._thought(context)
        context.revert.record_text_change(thought.text)
        thought.text = payload.improved_text
        thought.notes = _append_note(thought.notes, f"[Enhancement: {payload.changes or 'AI rewrite'}]")

    def _change_type(self, context: _ActionContext, payload: ChangeTypePayload) -> None:
        thought = self._thought(context)
        context.revert.record_type_change(thought.type)
        thought.type = payload.type

    def _set_intensity(self, context: _ActionContext, payload: SetIntensityPayload) -> None:
        thought = self._thought(context)
        context.revert.record_intensity_change(thought.intensity)
        thought.intensity = payload.intensity

    def _emit(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        for message, data in events:
            logger.debug("[ActionExecutor] %s %s", message, data)
            if self._log_hook is None:
                continue
            try:
                self._log_hook(message, data)
            except Exception:
                logger.exception("Execution log hook failed for %r", message)


def _feeling_type(mood: str) -> str:
    if _POSITIVE_MOOD.search(mood):
        return "feeling-good"
    if _NEGATIVE_MOOD.search(mood):
        return "feeling-bad"
    return "neutral"


def _append_note(existing: str | None, note: str) -> str:
    return f"{existing}\n\n{note}" if existing else note
