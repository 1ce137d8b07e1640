"""Entity store, processing queue, activity log and settings tables.

Revision ID: 0001_thought_processing
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_thought_processing"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(length=64), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    """Create the entity, queue and auxiliary tables."""
    op.create_table(
        "thoughts",
        _id(),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("intensity", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "tasks",
        _id(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("priority", sa.String(length=20), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("done", sa.Boolean(), nullable=False),
        sa.Column("estimated_minutes", sa.Integer(), nullable=True),
        sa.Column("recurrence", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("source_thought_id", sa.String(length=64), nullable=True),
        sa.Column("created_by", sa.String(length=50), nullable=True),
        sa.Column("ai_enhanced", sa.Boolean(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_tasks_source_thought_id", "tasks", ["source_thought_id"])
    op.create_table(
        "projects",
        _id(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("objective", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("action_plan", sa.JSON(), nullable=False),
        sa.Column("timeframe", sa.String(length=20), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("priority", sa.String(length=20), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("target_date", sa.String(length=32), nullable=True),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=20), nullable=True),
        _created_at(),
    )
    op.create_table(
        "project_thought_links",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "project_id",
            sa.String(length=64),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("thought_id", sa.String(length=64), nullable=False),
        _created_at(),
        sa.UniqueConstraint("project_id", "thought_id", name="uq_project_thought"),
    )
    op.create_index(
        "ix_project_thought_links_thought_id", "project_thought_links", ["thought_id"]
    )
    op.create_table(
        "goals",
        _id(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("objective", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("source_thought_id", sa.String(length=64), nullable=True),
        sa.Column("created_by", sa.String(length=50), nullable=True),
        _created_at(),
    )
    op.create_table(
        "moods",
        _id(),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("source_thought_id", sa.String(length=64), nullable=True),
        sa.Column("created_by", sa.String(length=50), nullable=True),
        _created_at(),
    )
    op.create_table(
        "people",
        _id(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("relationship_type", sa.String(length=50), nullable=True),
        sa.Column("connection_strength", sa.Integer(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "notes",
        _id(),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("source_thought_id", sa.String(length=64), nullable=True),
        _created_at(),
    )
    op.create_table(
        "process_queue_items",
        _id(),
        sa.Column("thought_id", sa.String(length=64), nullable=False),
        sa.Column(
            "mode",
            sa.Enum("auto", "manual", name="process_queue_mode", native_enum=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "processing",
                "awaiting-approval",
                "failed",
                "completed",
                "reverted",
                name="process_queue_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("approved_action_ids", sa.JSON(), nullable=False),
        sa.Column("executed_action_ids", sa.JSON(), nullable=False),
        sa.Column("revertible", sa.Boolean(), nullable=False),
        sa.Column("revert_data", sa.JSON(), nullable=False),
        sa.Column("ai_response", sa.JSON(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reverted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_process_queue_items_thought_id", "process_queue_items", ["thought_id"])
    op.create_table(
        "process_actions",
        _id(),
        sa.Column(
            "queue_item_id",
            sa.String(length=64),
            sa.ForeignKey("process_queue_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("tool", sa.String(length=50), nullable=True),
        sa.Column("thought_id", sa.String(length=64), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "approved",
                "rejected",
                "executed",
                "failed",
                name="process_action_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("ai_reasoning", sa.Text(), nullable=True),
        sa.Column("confidence", sa.Integer(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_items", sa.JSON(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("queue_item_id", "position", name="uq_action_position"),
    )
    op.create_index("ix_process_actions_queue_item_id", "process_actions", ["queue_item_id"])
    op.create_table(
        "activity_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("request_type", sa.String(length=50), nullable=False),
        sa.Column("method", sa.String(length=200), nullable=False),
        sa.Column("url", sa.String(length=500), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "completed",
                "failed",
                name="activity_request_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("request", sa.JSON(), nullable=True),
        sa.Column("response", sa.JSON(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "user_settings",
        _id(),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_table("user_settings")
    op.drop_table("activity_log")
    op.drop_index("ix_process_actions_queue_item_id", table_name="process_actions")
    op.drop_table("process_actions")
    op.drop_index("ix_process_queue_items_thought_id", table_name="process_queue_items")
    op.drop_table("process_queue_items")
    op.drop_table("notes")
    op.drop_table("people")
    op.drop_table("moods")
    op.drop_table("goals")
    op.drop_index("ix_project_thought_links_thought_id", table_name="project_thought_links")
    op.drop_table("project_thought_links")
    op.drop_table("projects")
    op.drop_index("ix_tasks_source_thought_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("thoughts")
