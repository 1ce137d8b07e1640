"""Approval and rejection of proposed actions on a queue item."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Callable, Iterable

from sqlalchemy.orm import Session

from models import ProcessQueueItem, Thought
from thoughts.constants import PROCESSED_TAG, RESOLVED_ACTION_STATUSES
from thoughts.errors import ActionNotFound, QueueStateError
from thoughts.executor import ActionExecutor
from thoughts.queue_repository import (
    ActionUpdateInput,
    QueueItemUpdateInput,
    apply_action_update,
    apply_queue_update,
    fetch_queue_item,
)
from time_utils import isoformat_utc, utc_now

logger = logging.getLogger(__name__)

OPEN_QUEUE_STATUSES = frozenset({"processing", "awaiting-approval"})
DECIDABLE_ACTION_STATUSES = frozenset({"pending", "approved", "failed"})


@dataclass(frozen=True)
class ApprovalResult:
    """Summary of an approval or rejection request."""

    status: str
    executed: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Return True when no approved action failed."""
        return self.failed == 0


class ApprovalService:
    """Records decisions on proposed actions and completes finished items."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        executor: ActionExecutor,
        *,
        actor: str = "user",
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the service with a session factory and action executor."""
        self._session_factory = session_factory
        self._executor = executor
        self._actor = actor
        self._now_provider = now_provider or utc_now

    def approve_and_execute(
        self,
        queue_id: str,
        action_ids: Iterable[str] | None = None,
        *,
        actor: str | None = None,
    ) -> ApprovalResult:
        """Approve the chosen actions (all undecided ones by default) and execute them."""
        selected = None if action_ids is None else list(action_ids)

        def approve(session: Session) -> list[str]:
            item = _open_item(session, queue_id)
            targets = _select_actions(item, selected)
            approved = list(item.approved_action_ids or [])
            for action in targets:
                apply_action_update(action, ActionUpdateInput(status="approved", error=None))
                if action.id not in approved:
                    approved.append(action.id)
            apply_queue_update(
                item,
                QueueItemUpdateInput(approved_action_ids=approved),
                now=self._now_provider(),
            )
            return [action.id for action in targets]

        approved_ids = self._execute(approve)
        executed = 0
        errors: list[str] = []
        for action_id in approved_ids:
            result = self._executor.execute_action(queue_id, action_id)
            self._execute(lambda session: self._record_execution(session, queue_id, action_id, result))
            if result.success:
                executed += 1
            else:
                errors.append(result.error or "Unknown error")

        status = self._execute(lambda session: self._finalize(session, queue_id, actor))
        logger.info(
            "Queue item %s: executed %s action(s), %s failed, status %s",
            queue_id,
            executed,
            len(errors),
            status,
        )
        return ApprovalResult(status=status, executed=executed, failed=len(errors), errors=errors)

    def reject_actions(
        self,
        queue_id: str,
        action_ids: Iterable[str],
        *,
        actor: str | None = None,
    ) -> ApprovalResult:
        """Reject the given actions without applying them."""
        selected = list(action_ids)

        def reject(session: Session) -> str:
            item = _open_item(session, queue_id)
            for action in _select_actions(item, selected):
                apply_action_update(action, ActionUpdateInput(status="rejected"))
            session.flush()
            return self._finalize(session, queue_id, actor)

        status = self._execute(reject)
        logger.info("Queue item %s: rejected %s action(s), status %s", queue_id, len(selected), status)
        return ApprovalResult(status=status)

    def _record_execution(self, session: Session, queue_id: str, action_id: str, result) -> None:
        item = fetch_queue_item(session, queue_id)
        action = next(action for action in item.actions if action.id == action_id)
        if result.success:
            apply_action_update(action, ActionUpdateInput(status="executed", error=None))
            executed = list(item.executed_action_ids or [])
            if action_id not in executed:
                executed.append(action_id)
            apply_queue_update(
                item,
                QueueItemUpdateInput(executed_action_ids=executed),
                now=self._now_provider(),
            )
        else:
            apply_action_update(action, ActionUpdateInput(status="failed", error=result.error))

    def _finalize(self, session: Session, queue_id: str, actor: str | None) -> str:
        item = fetch_queue_item(session, queue_id)
        now = self._now_provider()
        if not all(action.status in RESOLVED_ACTION_STATUSES for action in item.actions):
            apply_queue_update(item, QueueItemUpdateInput(status="awaiting-approval"), now=now)
            return item.status

        thought = session.get(Thought, item.thought_id)
        if thought is not None:
            tags = list(thought.tags or [])
            if PROCESSED_TAG not in tags:
                thought.tags = [*tags, PROCESSED_TAG]
            note = (
                f"[Processed: {isoformat_utc(now)} by {actor or self._actor} "
                f"({item.mode} mode) - Queue: {item.id}]"
            )
            thought.notes = f"{thought.notes}\n\n{note}" if thought.notes else note
        apply_queue_update(
            item,
            QueueItemUpdateInput(status="completed", completed_at=now),
            now=now,
        )
        return item.status

    def _execute(self, handler):
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                result = handler(session)
                session.commit()
            except Exception:
                session.rollback()
                raise
        return result


def _open_item(session: Session, queue_id: str) -> ProcessQueueItem:
    item = fetch_queue_item(session, queue_id)
    if item.status not in OPEN_QUEUE_STATUSES:
        raise QueueStateError(f"queue item {queue_id} is {item.status}")
    return item


def _select_actions(item: ProcessQueueItem, action_ids: list[str] | None):
    by_id = {action.id: action for action in item.actions}
    if action_ids is None:
        return [action for action in item.actions if action.status in DECIDABLE_ACTION_STATUSES]
    selected = []
    for action_id in action_ids:
        action = by_id.get(action_id)
        if action is None:
            raise ActionNotFound(item.id, action_id)
        if action.status not in DECIDABLE_ACTION_STATUSES:
            raise QueueStateError(f"action {action_id} is already {action.status}")
        selected.append(action)
    return selected


__all__ = ["ApprovalResult", "ApprovalService"]
