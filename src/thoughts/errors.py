"""Error types for thought processing, queue access, and action execution."""

from __future__ import annotations


class ThoughtNotFound(KeyError):
    """Raised when a thought cannot be located."""

    def __init__(self, thought_id: str) -> None:
        """Initialize the error with the missing thought identifier."""
        super().__init__(f"thought not found: {thought_id}")
        self.thought_id = thought_id


class QueueItemNotFound(KeyError):
    """Raised when a processing queue item cannot be located."""

    def __init__(self, queue_id: str) -> None:
        """Initialize the error with the missing queue item identifier."""
        super().__init__(f"queue item not found: {queue_id}")
        self.queue_id = queue_id


class ActionNotFound(KeyError):
    """Raised when a proposed action is not part of the given queue item."""

    def __init__(self, queue_id: str, action_id: str) -> None:
        """Initialize the error with the queue item and action identifiers."""
        super().__init__(f"action {action_id} not found on queue item {queue_id}")
        self.queue_id = queue_id
        self.action_id = action_id


class GatewayResponseError(ValueError):
    """Raised when the gateway returns a payload that breaks its contract."""


class ActionPayloadError(ValueError):
    """Raised when an action payload does not match its declared type."""

    def __init__(self, action_type: str, message: str) -> None:
        """Initialize the error with the offending action type."""
        super().__init__(f"invalid {action_type} action: {message}")
        self.action_type = action_type


class ActionExecutionError(RuntimeError):
    """Raised when an approved action cannot be applied to the entity store."""


class RevertNotAllowed(RuntimeError):
    """Raised when a queue item is not eligible for revert."""


class QueueStateError(RuntimeError):
    """Raised when a queue item or action is not in a state that allows the request."""


def describe_error(exc: BaseException) -> str:
    """Return a human-readable message, falling back to ``Unknown error``."""
    if isinstance(exc, KeyError) and exc.args:
        message = str(exc.args[0])
    else:
        message = str(exc)
    return message.strip() or "Unknown error"
