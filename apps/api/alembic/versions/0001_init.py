"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _token_table(name: str) -> None:
  op.create_table(
    name,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("token", sa.String(), nullable=False),
    sa.Column("group_id", sa.String(36), sa.ForeignKey("groups.id"), nullable=False),
    sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=False),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index(f"ix_{name}_token", name, ["token"], unique=True)


def upgrade() -> None:
  op.create_table(
    "workspaces",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("logo_url", sa.String(), nullable=True),
    sa.Column("whatsapp_number", sa.String(), nullable=True),
    sa.Column("whatsapp_group_id", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )

  op.create_table(
    "groups",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_groups_workspace_id", "groups", ["workspace_id"], unique=False)

  op.create_table(
    "columns",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("group_id", sa.String(36), sa.ForeignKey("groups.id"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_columns_group_id", "columns", ["group_id"], unique=False)

  op.create_table(
    "tasks",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("group_id", sa.String(36), sa.ForeignKey("groups.id"), nullable=False),
    sa.Column("column_id", sa.String(36), sa.ForeignKey("columns.id"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=False, server_default=""),
    sa.Column("attachments", JSON, nullable=False),
    sa.Column("comments", JSON, nullable=False),
    sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("due_date", sa.Date(), nullable=True),
    sa.Column("due_time", sa.Time(), nullable=True),
    sa.Column("last_notified_2hr_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("last_notified_30min_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_tasks_group_id", "tasks", ["group_id"], unique=False)
  op.create_index("ix_tasks_column_id", "tasks", ["column_id"], unique=False)

  _token_table("public_approval_tokens")
  _token_table("public_client_dashboards")

  op.create_table(
    "instagram_insights",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=False),
    sa.Column("insight_date", sa.Date(), nullable=False),
    sa.Column("data", JSON, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_instagram_insights_workspace_id", "instagram_insights", ["workspace_id"], unique=False)

  op.create_table(
    "app_settings",
    sa.Column("id", sa.Integer(), primary_key=True),
    sa.Column("site_url", sa.String(), nullable=True),
    sa.Column("credentials_encrypted", sa.Text(), nullable=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )

  op.create_table(
    "audit_events",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=True),
    sa.Column("group_id", sa.String(36), sa.ForeignKey("groups.id"), nullable=True),
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=True),
    sa.Column("actor", sa.String(), nullable=True),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(), nullable=True),
    sa.Column("payload", JSON, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"], unique=False)


def downgrade() -> None:
  op.drop_table("audit_events")
  op.drop_table("app_settings")
  op.drop_table("instagram_insights")
  op.drop_table("public_client_dashboards")
  op.drop_table("public_approval_tokens")
  op.drop_table("tasks")
  op.drop_table("columns")
  op.drop_table("groups")
  op.drop_table("workspaces")
