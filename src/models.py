"""Data models for the thought-processing service."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

# SQLAlchemy base
Base = declarative_base()


def _new_id() -> str:
    """Generate a string identifier for new rows."""
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Processing enums
QueueStatusEnum = Enum(
    "pending",
    "processing",
    "awaiting-approval",
    "failed",
    "completed",
    "reverted",
    name="process_queue_status",
    native_enum=False,
)
QueueModeEnum = Enum(
    "auto",
    "manual",
    name="process_queue_mode",
    native_enum=False,
)
ActionStatusEnum = Enum(
    "pending",
    "approved",
    "rejected",
    "executed",
    "failed",
    name="process_action_status",
    native_enum=False,
)
RequestStatusEnum = Enum(
    "pending",
    "completed",
    "failed",
    name="activity_request_status",
    native_enum=False,
)


# Entity store
class Thought(Base):
    """User-authored free-text note."""

    __tablename__ = "thoughts"

    id = Column(String(64), primary_key=True, default=_new_id)
    text = Column(Text, nullable=False)
    type = Column(String(50), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    intensity = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Task(Base):
    """Actionable task, optionally created from a thought."""

    __tablename__ = "tasks"

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(Text, nullable=False)
    category = Column(String(50), nullable=True)
    priority = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default="active")
    done = Column(Boolean, nullable=False, default=False)
    estimated_minutes = Column(Integer, nullable=True)
    recurrence = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    source_thought_id = Column(String(64), nullable=True, index=True)
    created_by = Column(String(50), nullable=True)
    ai_enhanced = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Project(Base):
    """Longer-running project that thoughts can be linked to."""

    __tablename__ = "projects"

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(Text, nullable=False)
    objective = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    action_plan = Column(JSON, nullable=False, default=list)
    timeframe = Column(String(20), nullable=True)
    category = Column(String(50), nullable=True)
    priority = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default="active")
    target_date = Column(String(32), nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    source = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    thought_links = relationship(
        "ProjectThoughtLink",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class ProjectThoughtLink(Base):
    """Association between a project and a thought."""

    __tablename__ = "project_thought_links"
    __table_args__ = (UniqueConstraint("project_id", "thought_id", name="uq_project_thought"),)

    id = Column(Integer, primary_key=True)
    project_id = Column(String(64), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    thought_id = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Goal(Base):
    """Personal or professional goal."""

    __tablename__ = "goals"

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(Text, nullable=False)
    objective = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="active")
    source_thought_id = Column(String(64), nullable=True)
    created_by = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class MoodEntry(Base):
    """Mood tracker entry on a 1-10 scale."""

    __tablename__ = "moods"

    id = Column(String(64), primary_key=True, default=_new_id)
    value = Column(Integer, nullable=False)
    note = Column(Text, nullable=True)
    source_thought_id = Column(String(64), nullable=True)
    created_by = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Person(Base):
    """Relationship tracked by the user."""

    __tablename__ = "people"

    id = Column(String(64), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    relationship_type = Column(String(50), nullable=True)
    connection_strength = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Note(Base):
    """Reference note."""

    __tablename__ = "notes"

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(String(500), nullable=True)
    content = Column(Text, nullable=True)
    source_thought_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


# Processing queue
class ProcessQueueItem(Base):
    """One processing attempt for a single thought."""

    __tablename__ = "process_queue_items"

    id = Column(String(64), primary_key=True, default=_new_id)
    # Back-reference only: thoughts are never owned or deleted by the queue.
    thought_id = Column(String(64), nullable=False, index=True)
    mode = Column(QueueModeEnum, nullable=False, default="auto")
    status = Column(QueueStatusEnum, nullable=False, default="pending")
    approved_action_ids = Column(JSON, nullable=False, default=list)
    executed_action_ids = Column(JSON, nullable=False, default=list)
    revertible = Column(Boolean, nullable=False, default=True)
    revert_data = Column(JSON, nullable=False, default=dict)
    ai_response = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    reverted_at = Column(DateTime(timezone=True), nullable=True)

    actions = relationship(
        "ProcessAction",
        order_by="ProcessAction.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class ProcessAction(Base):
    """A single AI-proposed mutation awaiting approval."""

    __tablename__ = "process_actions"
    __table_args__ = (UniqueConstraint("queue_item_id", "position", name="uq_action_position"),)

    id = Column(String(64), primary_key=True, default=_new_id)
    queue_item_id = Column(
        String(64),
        ForeignKey("process_queue_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    type = Column(String(50), nullable=False)
    tool = Column(String(50), nullable=True)
    thought_id = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    status = Column(ActionStatusEnum, nullable=False, default="pending")
    ai_reasoning = Column(Text, nullable=True)
    confidence = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)
    created_items = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


# Auxiliary stores
class ActivityLogEntry(Base):
    """Request/activity log entry for processing attempts and executor events."""

    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True)
    request_type = Column(String(50), nullable=False)
    method = Column(String(200), nullable=False)
    url = Column(String(500), nullable=False)
    status = Column(RequestStatusEnum, nullable=False, default="pending")
    request = Column(JSON, nullable=True)
    response = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    status_code = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)


class UserSettings(Base):
    """Persisted settings blob for the single local user."""

    __tablename__ = "user_settings"

    id = Column(String(64), primary_key=True, default="default")
    data = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)
