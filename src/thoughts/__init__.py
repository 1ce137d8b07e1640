"""Thought processing pipeline: candidate selection, queueing, approval and revert."""

from thoughts.constants import PROCESSED_TAG
from thoughts.errors import (
    ActionExecutionError,
    ActionNotFound,
    ActionPayloadError,
    GatewayResponseError,
    QueueItemNotFound,
    QueueStateError,
    RevertNotAllowed,
    ThoughtNotFound,
)

__all__ = [
    "ActionExecutionError",
    "ActionNotFound",
    "ActionPayloadError",
    "GatewayResponseError",
    "PROCESSED_TAG",
    "QueueItemNotFound",
    "QueueStateError",
    "RevertNotAllowed",
    "ThoughtNotFound",
]
