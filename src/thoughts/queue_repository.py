"""Repository helpers for processing queue items and their proposed actions."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Any, Callable

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import ProcessAction, ProcessQueueItem
from thoughts.constants import ACTION_STATUSES, QUEUE_MODES, QUEUE_STATUSES
from thoughts.errors import ActionNotFound, QueueItemNotFound
from thoughts.revert import RevertData, dump_revert_data
from time_utils import ensure_utc, utc_now

UNSET = object()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueItemCreateInput:
    """Input payload for enqueuing a processing attempt."""

    thought_id: str
    revert_data: RevertData
    mode: str = "auto"
    revertible: bool = True


@dataclass(frozen=True)
class QueueItemUpdateInput:
    """Partial update for a queue item; fields left UNSET are untouched."""

    status: str | object = UNSET
    ai_response: dict[str, Any] | None | object = UNSET
    error: str | None | object = UNSET
    approved_action_ids: list[str] | object = UNSET
    executed_action_ids: list[str] | object = UNSET
    revertible: bool | object = UNSET
    revert_data: RevertData | object = UNSET
    completed_at: datetime | None | object = UNSET
    reverted_at: datetime | None | object = UNSET


@dataclass(frozen=True)
class ActionCreateInput:
    """Input payload for appending a proposed action to a queue item."""

    type: str
    thought_id: str
    data: dict[str, Any] = field(default_factory=dict)
    tool: str | None = None
    reasoning: str | None = None
    confidence: int | None = None


@dataclass(frozen=True)
class ActionUpdateInput:
    """Partial update for a proposed action."""

    status: str | object = UNSET
    error: str | None | object = UNSET
    created_items: dict[str, list[str]] | None | object = UNSET


class ProcessQueueRepository:
    """Repository for processing queue items and their actions."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory
        self._now_provider = now_provider or utc_now

    def add_to_queue(self, payload: QueueItemCreateInput) -> str:
        """Store a new pending queue item and return its identifier.

        The caller is responsible for having checked that the thought is not
        already enqueued.
        """
        if payload.mode not in QUEUE_MODES:
            raise ValueError(f"Unsupported queue mode: {payload.mode}")

        def handler(session: Session) -> str:
            timestamp = ensure_utc(self._now_provider())
            item = ProcessQueueItem(
                thought_id=payload.thought_id,
                mode=payload.mode,
                status="pending",
                approved_action_ids=[],
                executed_action_ids=[],
                revertible=payload.revertible,
                revert_data=dump_revert_data(payload.revert_data),
                created_at=timestamp,
                updated_at=timestamp,
            )
            session.add(item)
            session.flush()
            return item.id

        queue_id = self._execute(handler)
        logger.debug("Queued thought %s as %s", payload.thought_id, queue_id)
        return queue_id

    def update_queue_item(self, queue_id: str, payload: QueueItemUpdateInput) -> ProcessQueueItem:
        """Merge the provided fields into an existing queue item."""

        def handler(session: Session) -> ProcessQueueItem:
            item = fetch_queue_item(session, queue_id)
            apply_queue_update(item, payload, now=self._now_provider())
            session.flush()
            return item

        return self._execute(handler)

    def add_action(self, queue_id: str, payload: ActionCreateInput) -> str:
        """Append a pending action to the queue item and return its identifier."""

        def handler(session: Session) -> str:
            fetch_queue_item(session, queue_id)
            position = (
                session.query(func.count(ProcessAction.id))
                .filter(ProcessAction.queue_item_id == queue_id)
                .scalar()
            )
            action = ProcessAction(
                queue_item_id=queue_id,
                position=int(position or 0),
                type=payload.type,
                tool=payload.tool,
                thought_id=payload.thought_id,
                data=dict(payload.data),
                status="pending",
                ai_reasoning=payload.reasoning,
                confidence=payload.confidence,
                created_at=ensure_utc(self._now_provider()),
            )
            session.add(action)
            session.flush()
            return action.id

        return self._execute(handler)

    def update_action(
        self,
        queue_id: str,
        action_id: str,
        payload: ActionUpdateInput,
    ) -> ProcessAction:
        """Merge the provided fields into an action on the queue item."""

        def handler(session: Session) -> ProcessAction:
            action = fetch_action(session, queue_id, action_id)
            apply_action_update(action, payload)
            session.flush()
            return action

        return self._execute(handler)

    def get_queue_item(self, queue_id: str) -> ProcessQueueItem | None:
        """Return the queue item with its ordered actions, or None."""

        def handler(session: Session) -> ProcessQueueItem | None:
            return session.get(ProcessQueueItem, queue_id)

        return self._execute(handler)

    def list_queue_items(self, *, status: str | None = None) -> list[ProcessQueueItem]:
        """Return queue items oldest first, optionally filtered by status."""

        def handler(session: Session) -> list[ProcessQueueItem]:
            query = session.query(ProcessQueueItem)
            if status is not None:
                query = query.filter(ProcessQueueItem.status == status)
            return list(
                query.order_by(ProcessQueueItem.created_at.asc(), ProcessQueueItem.id.asc()).all()
            )

        return self._execute(handler)

    def find_by_thought(self, thought_id: str) -> list[ProcessQueueItem]:
        """Return every queue item referencing the thought."""

        def handler(session: Session) -> list[ProcessQueueItem]:
            return list(
                session.query(ProcessQueueItem)
                .filter(ProcessQueueItem.thought_id == thought_id)
                .order_by(ProcessQueueItem.created_at.asc())
                .all()
            )

        return self._execute(handler)

    def queued_thought_ids(self) -> set[str]:
        """Return the identifiers of every thought referenced by a queue item."""

        def handler(session: Session) -> set[str]:
            rows = session.query(ProcessQueueItem.thought_id).distinct().all()
            return {row.thought_id for row in rows}

        return self._execute(handler)

    def remove_queue_item(self, queue_id: str) -> bool:
        """Delete a queue item and its actions; its thought becomes eligible again."""

        def handler(session: Session) -> bool:
            item = session.get(ProcessQueueItem, queue_id)
            if item is None:
                return False
            session.delete(item)
            session.flush()
            return True

        removed = self._execute(handler)
        if removed:
            logger.info("Removed queue item %s", queue_id)
        return removed

    def _execute(self, handler):
        """Execute repository work inside a managed session."""
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                result = handler(session)
                session.commit()
            except Exception:
                session.rollback()
                raise
        return result


def fetch_queue_item(session: Session, queue_id: str) -> ProcessQueueItem:
    """Return the queue item or raise QueueItemNotFound."""
    item = session.get(ProcessQueueItem, queue_id)
    if item is None:
        raise QueueItemNotFound(queue_id)
    return item


def fetch_action(session: Session, queue_id: str, action_id: str) -> ProcessAction:
    """Return an action belonging to the queue item or raise ActionNotFound."""
    fetch_queue_item(session, queue_id)
    action = session.get(ProcessAction, action_id)
    if action is None or action.queue_item_id != queue_id:
        raise ActionNotFound(queue_id, action_id)
    return action


def apply_queue_update(
    item: ProcessQueueItem,
    payload: QueueItemUpdateInput,
    *,
    now: datetime,
) -> None:
    """Apply a partial update to a queue item inside an existing session."""
    if payload.status is not UNSET:
        if payload.status not in QUEUE_STATUSES:
            raise ValueError(f"Unsupported queue status: {payload.status}")
        item.status = payload.status
    if payload.ai_response is not UNSET:
        item.ai_response = payload.ai_response
    if payload.error is not UNSET:
        item.error = payload.error
    if payload.approved_action_ids is not UNSET:
        item.approved_action_ids = list(payload.approved_action_ids)
    if payload.executed_action_ids is not UNSET:
        item.executed_action_ids = list(payload.executed_action_ids)
    if payload.revertible is not UNSET:
        item.revertible = payload.revertible
    if payload.revert_data is not UNSET:
        item.revert_data = dump_revert_data(payload.revert_data)
    if payload.completed_at is not UNSET:
        item.completed_at = payload.completed_at
    if payload.reverted_at is not UNSET:
        item.reverted_at = payload.reverted_at
    item.updated_at = ensure_utc(now)


def apply_action_update(action: ProcessAction, payload: ActionUpdateInput) -> None:
    """Apply a partial update to an action inside an existing session."""
    if payload.status is not UNSET:
        if payload.status not in ACTION_STATUSES:
            raise ValueError(f"Unsupported action status: {payload.status}")
        action.status = payload.status
    if payload.error is not UNSET:
        action.error = payload.error
    if payload.created_items is not UNSET:
        action.created_items = payload.created_items
