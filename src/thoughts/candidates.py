"""Selection of thoughts eligible for a new processing attempt."""

from __future__ import annotations

from typing import Callable, Iterable, Protocol

from sqlalchemy.orm import Session

from models import ProcessQueueItem, Thought
from thoughts.constants import PROCESSED_TAG


class _Tagged(Protocol):
    id: str
    tags: list[str] | None


class _Queued(Protocol):
    thought_id: str


def select_processing_candidates(
    thoughts: Iterable[_Tagged],
    queue_items: Iterable[_Queued],
) -> list[_Tagged]:
    """Return thoughts without the processed tag and not referenced by the queue.

    Source order is preserved so callers can take the head of the list.
    """
    queued = {item.thought_id for item in queue_items}
    return [
        thought
        for thought in thoughts
        if PROCESSED_TAG not in (thought.tags or []) and thought.id not in queued
    ]


def load_processing_candidates(session_factory: Callable[[], Session]) -> list[Thought]:
    """Load thoughts and queue items, then select candidates oldest first."""
    with session_factory() as session:
        thoughts = (
            session.query(Thought)
            .order_by(Thought.created_at.asc().nulls_last(), Thought.id.asc())
            .all()
        )
        queue_items = session.query(ProcessQueueItem.thought_id).all()
        session.expunge_all()
    return select_processing_candidates(thoughts, queue_items)
