"""Bounded request/activity log for processing attempts and executor events."""

from __future__ import annotations

from contextlib import closing
from datetime import datetime
import logging
from typing import Any, Callable

from sqlalchemy.orm import Session

from config import settings
from models import ActivityLogEntry
from time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

REQUEST_STATUSES = frozenset({"pending", "completed", "failed"})


class ActivityLog:
    """Persisted activity log that keeps at most ``limit`` entries."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        limit: int | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the log with a session factory and retention limit."""
        self._session_factory = session_factory
        self._limit = limit if limit is not None else settings.thought_processing.request_log_limit
        self._now_provider = now_provider or utc_now

    def record_request(
        self,
        request_type: str,
        method: str,
        url: str,
        request: dict[str, Any] | None = None,
        *,
        status: str = "pending",
    ) -> int:
        """Append an entry and return its identifier, trimming the oldest."""
        if status not in REQUEST_STATUSES:
            raise ValueError(f"Unsupported request status: {status}")

        def handler(session: Session) -> int:
            timestamp = ensure_utc(self._now_provider())
            entry = ActivityLogEntry(
                request_type=request_type,
                method=method,
                url=url,
                status=status,
                request=request,
                created_at=timestamp,
                updated_at=timestamp,
            )
            session.add(entry)
            session.flush()
            self._trim(session)
            return entry.id

        return self._execute(handler)

    def record_event(self, message: str, data: dict[str, Any] | None = None) -> int:
        """Record a completed executor event."""
        return self.record_request("api", "ThoughtProcessor", message, data, status="completed")

    def update_request_status(
        self,
        entry_id: int,
        status: str,
        *,
        response: dict[str, Any] | None = None,
        error: str | None = None,
        status_code: int | None = None,
    ) -> bool:
        """Finalize an entry; returns False when it was already trimmed."""
        if status not in REQUEST_STATUSES:
            raise ValueError(f"Unsupported request status: {status}")

        def handler(session: Session) -> bool:
            entry = session.get(ActivityLogEntry, entry_id)
            if entry is None:
                return False
            entry.status = status
            if response is not None:
                entry.response = response
            if error is not None:
                entry.error = error
            if status_code is not None:
                entry.status_code = status_code
            entry.updated_at = ensure_utc(self._now_provider())
            return True

        updated = self._execute(handler)
        if not updated:
            logger.debug("Activity log entry %s no longer exists", entry_id)
        return updated

    def list_entries(self, *, limit: int | None = None) -> list[ActivityLogEntry]:
        """Return entries newest first."""

        def handler(session: Session) -> list[ActivityLogEntry]:
            query = session.query(ActivityLogEntry).order_by(ActivityLogEntry.id.desc())
            if limit is not None:
                query = query.limit(limit)
            return list(query.all())

        return self._execute(handler)

    def _trim(self, session: Session) -> None:
        stale_ids = [
            row.id
            for row in session.query(ActivityLogEntry.id)
            .order_by(ActivityLogEntry.id.desc())
            .offset(self._limit)
            .all()
        ]
        if stale_ids:
            session.query(ActivityLogEntry).filter(ActivityLogEntry.id.in_(stale_ids)).delete(
                synchronize_session=False
            )

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
