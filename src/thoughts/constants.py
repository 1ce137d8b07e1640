"""Shared constants for the thought-processing pipeline."""

from __future__ import annotations

from typing import Sequence

PROCESSED_TAG = "processed"
"""Tag marking a thought whose processing attempt has been completed."""

QUEUE_STATUSES: Sequence[str] = (
    "pending",
    "processing",
    "awaiting-approval",
    "failed",
    "completed",
    "reverted",
)
"""Every status a processing queue item can hold."""

ACTIVE_QUEUE_STATUSES = frozenset({"pending", "processing", "awaiting-approval"})
"""Statuses of an attempt that is still in progress or awaiting a decision."""

QUEUE_MODES = frozenset({"auto", "manual"})

ACTION_STATUSES: Sequence[str] = ("pending", "approved", "rejected", "executed", "failed")

RESOLVED_ACTION_STATUSES = frozenset({"executed", "rejected"})
"""Action statuses that need no further decision."""

SYSTEM_TOOL = "system"
"""Tool name attached to actions synthesized by the pipeline itself."""

PROCESSOR_ACTOR = "thought-processor"
"""``created_by`` marker stamped on entities created from approved actions."""
