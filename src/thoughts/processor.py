"""Processing of a single thought into a queue item with proposed actions."""

from __future__ import annotations

import asyncio
from contextlib import closing
from dataclasses import dataclass, field
import logging
from typing import Any, Callable, Iterable, Mapping

from sqlalchemy.orm import Session

from config import settings
from models import ProcessQueueItem, Thought
from thoughts.actions import ProposedActionInput, build_proposed_actions
from thoughts.activity_log import ActivityLog
from thoughts.approval import ApprovalService
from thoughts.constants import ACTIVE_QUEUE_STATUSES, PROCESSOR_ACTOR, QUEUE_MODES
from thoughts.context import UserContext, gather_user_context
from thoughts.errors import GatewayResponseError, describe_error
from thoughts.gateway import API_KEY_MISSING_ERROR, GatewayRequest, ThoughtGateway, ThoughtSnapshot
from thoughts.queue_repository import (
    ActionCreateInput,
    ProcessQueueRepository,
    QueueItemCreateInput,
    QueueItemUpdateInput,
)
from thoughts.revert import build_revert_snapshot
from thoughts.settings_store import SettingsStore
from thoughts.tool_registry import get_tool_descriptions

logger = logging.getLogger(__name__)

THOUGHT_NOT_FOUND_ERROR = "Thought not found"
ALREADY_QUEUED_ERROR = "Thought already has an active queue item"


@dataclass(frozen=True)
class ProcessingOutcome:
    """Result of one processing attempt."""

    thought_id: str
    success: bool
    queue_id: str | None = None
    status: str | None = None
    error: str | None = None
    skipped: bool = False


@dataclass
class BatchResult:
    """Aggregate result of processing several thoughts."""

    successful: int = 0
    failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready summary."""
        return {"successful": self.successful, "failed": self.failed, "errors": list(self.errors)}


class ThoughtProcessor:
    """Drives a thought through the gateway and records the attempt.

    Every failure after the thought is loaded is contained here: the queue
    item is marked ``failed`` and an outcome is returned instead of raising.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        queue: ProcessQueueRepository,
        gateway: ThoughtGateway,
        settings_store: SettingsStore,
        activity_log: ActivityLog,
        approval: ApprovalService | None = None,
        context_provider: Callable[[], UserContext] | None = None,
        tool_descriptions: Callable[[], list[dict[str, Any]]] = get_tool_descriptions,
        auto_approve_threshold: float | None = None,
        batch_pause_seconds: float | None = None,
    ) -> None:
        """Initialize the processor with its collaborators."""
        config = settings.thought_processing
        self._session_factory = session_factory
        self._queue = queue
        self._gateway = gateway
        self._settings_store = settings_store
        self._activity_log = activity_log
        self._approval = approval
        self._context_provider = context_provider or (lambda: gather_user_context(session_factory))
        self._tool_descriptions = tool_descriptions
        self._auto_approve_threshold = (
            config.auto_approve_confidence_threshold
            if auto_approve_threshold is None
            else auto_approve_threshold
        )
        self._batch_pause_seconds = (
            config.batch_pause_seconds if batch_pause_seconds is None else batch_pause_seconds
        )

    async def process_thought(self, thought_id: str, *, mode: str = "auto") -> ProcessingOutcome:
        """Run one processing attempt for the thought.

        ``auto`` attempts always stop at ``awaiting-approval``; ``manual``
        attempts with a high enough confidence approve and execute every
        proposed action right away. A thought that already has an active
        queue item is not enqueued again. Database work runs in a worker
        thread so the event loop stays responsive.
        """
        if mode not in QUEUE_MODES:
            raise ValueError(f"Unsupported queue mode: {mode}")
        thought = await asyncio.to_thread(self._load_thought, thought_id)
        if thought is None:
            logger.warning("Thought %s not found, skipping", thought_id)
            return ProcessingOutcome(thought_id=thought_id, success=False, error=THOUGHT_NOT_FOUND_ERROR)

        active = await asyncio.to_thread(self._active_item, thought.id)
        if active is not None:
            logger.info(
                "Thought %s already has queue item %s (%s), skipping",
                thought.id,
                active.id,
                active.status,
            )
            return ProcessingOutcome(
                thought_id=thought.id,
                success=False,
                queue_id=active.id,
                status=active.status,
                error=ALREADY_QUEUED_ERROR,
                skipped=True,
            )

        preferences = await asyncio.to_thread(self._settings_store.get)
        api_key = preferences.resolved_api_key()
        if api_key is None:
            logger.warning("No API key configured, skipping thought %s", thought_id)
            return ProcessingOutcome(
                thought_id=thought_id,
                success=False,
                error=API_KEY_MISSING_ERROR,
                skipped=True,
            )

        request_id: int | None = None
        queue_id: str | None = None
        try:
            request_id = await asyncio.to_thread(
                self._activity_log.record_request,
                "api",
                "POST /api/process-thought",
                "Manual Thought Processing" if mode == "manual" else "Thought Processing",
                {"thoughtId": thought.id, "thoughtText": thought.text},
            )
            queue_id = await asyncio.to_thread(
                self._queue.add_to_queue,
                QueueItemCreateInput(
                    thought_id=thought.id,
                    mode=mode,
                    revert_data=build_revert_snapshot(thought),
                ),
            )
            await asyncio.to_thread(
                self._queue.update_queue_item, queue_id, QueueItemUpdateInput(status="processing")
            )
            logger.info("Processing thought %s as queue item %s", thought.id, queue_id)

            request = GatewayRequest(
                thought=ThoughtSnapshot.from_thought(thought),
                api_key=api_key,
                tool_descriptions=self._tool_descriptions(),
                context=await asyncio.to_thread(self._context_provider),
                model=preferences.ai_model,
            )
            body = await self._gateway.process_thought(request)
            if not isinstance(body, Mapping):
                raise GatewayResponseError("gateway response must be an object")

            error = body.get("error")
            if error:
                message = str(error)
                logger.error("Gateway error for thought %s: %s", thought.id, message)
                await asyncio.to_thread(self._record_failure, queue_id, request_id, message)
                return ProcessingOutcome(
                    thought_id=thought.id,
                    success=False,
                    queue_id=queue_id,
                    status="failed",
                    error=message,
                )

            result = body.get("result")
            if not isinstance(result, Mapping):
                raise GatewayResponseError("gateway response has no result")
            await asyncio.to_thread(
                self._queue.update_queue_item, queue_id, QueueItemUpdateInput(ai_response=dict(result))
            )
            proposals = build_proposed_actions(result)
            status = await asyncio.to_thread(
                self._store_actions, queue_id, thought.id, mode, result, proposals
            )
            await asyncio.to_thread(
                self._activity_log.update_request_status,
                request_id,
                "completed",
                response={"actions": len(proposals), "tools": result.get("suggestedTools")},
                status_code=200,
            )
            logger.info("Queue item %s is %s with %s action(s)", queue_id, status, len(proposals))
            return ProcessingOutcome(
                thought_id=thought.id,
                success=True,
                queue_id=queue_id,
                status=status,
            )
        except Exception as exc:
            message = describe_error(exc)
            logger.exception("Processing thought %s failed: %s", thought.id, message)
            await asyncio.to_thread(self._record_failure, queue_id, request_id, message)
            return ProcessingOutcome(
                thought_id=thought.id,
                success=False,
                queue_id=queue_id,
                status="failed" if queue_id else None,
                error=message,
            )

    async def process_many(self, thought_ids: Iterable[str], *, mode: str = "manual") -> BatchResult:
        """Process thoughts sequentially, pausing between attempts."""
        result = BatchResult()
        ids = list(thought_ids)
        for index, thought_id in enumerate(ids):
            outcome = await self.process_thought(thought_id, mode=mode)
            if outcome.success:
                result.successful += 1
            else:
                result.failed += 1
                result.errors.append(
                    {"thoughtId": thought_id, "error": outcome.error or "Unknown error"}
                )
            if index + 1 < len(ids) and self._batch_pause_seconds > 0:
                await asyncio.sleep(self._batch_pause_seconds)
        return result

    def _store_actions(
        self,
        queue_id: str,
        thought_id: str,
        mode: str,
        result: Mapping[str, Any],
        proposals: list[ProposedActionInput],
    ) -> str:
        for proposal in proposals:
            self._queue.add_action(
                queue_id,
                ActionCreateInput(
                    type=proposal.type,
                    thought_id=thought_id,
                    data=proposal.data,
                    tool=proposal.tool,
                    reasoning=proposal.reasoning,
                    confidence=proposal.confidence,
                ),
            )
        confidence = _confidence(result.get("confidence"))
        if (
            mode == "manual"
            and proposals
            and self._approval is not None
            and confidence >= self._auto_approve_threshold
        ):
            logger.info(
                "High confidence (%.1f%%) for queue item %s, auto-approving",
                confidence * 100,
                queue_id,
            )
            return self._approval.approve_and_execute(queue_id, actor=PROCESSOR_ACTOR).status
        self._queue.update_queue_item(queue_id, QueueItemUpdateInput(status="awaiting-approval"))
        return "awaiting-approval"

    def _record_failure(self, queue_id: str | None, request_id: int | None, message: str) -> None:
        if queue_id is not None:
            try:
                self._queue.update_queue_item(
                    queue_id,
                    QueueItemUpdateInput(status="failed", error=message),
                )
            except Exception:
                logger.exception("Could not mark queue item %s as failed", queue_id)
        if request_id is not None:
            try:
                self._activity_log.update_request_status(
                    request_id, "failed", error=message, status_code=0
                )
            except Exception:
                logger.exception("Could not update activity log entry %s", request_id)

    def _load_thought(self, thought_id: str) -> Thought | None:
        with closing(self._session_factory()) as session:
            thought = session.get(Thought, thought_id)
            if thought is not None:
                session.expunge(thought)
            return thought

    def _active_item(self, thought_id: str) -> ProcessQueueItem | None:
        for item in self._queue.find_by_thought(thought_id):
            if item.status in ACTIVE_QUEUE_STATUSES:
                return item
        return None


def _confidence(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0
