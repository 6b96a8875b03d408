from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, String, Text, Time
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
  # Some backends (SQLite) hand back naive datetimes; everything is stored as UTC.
  if value is None:
    return None
  if value.tzinfo is None:
    return value.replace(tzinfo=timezone.utc)
  return value.astimezone(timezone.utc)


def _uuid() -> str:
  return str(uuid.uuid4())


class Base(DeclarativeBase):
  pass


class Workspace(Base):
  __tablename__ = "workspaces"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  name: Mapped[str] = mapped_column(String, nullable=False)
  logo_url: Mapped[str | None] = mapped_column(String, nullable=True)
  whatsapp_number: Mapped[str | None] = mapped_column(String, nullable=True)
  whatsapp_group_id: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Group(Base):
  __tablename__ = "groups"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  workspace_id: Mapped[str] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Column(Base):
  __tablename__ = "columns"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  group_id: Mapped[str] = mapped_column(String(36), ForeignKey("groups.id"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Task(Base):
  __tablename__ = "tasks"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  group_id: Mapped[str] = mapped_column(String(36), ForeignKey("groups.id"), nullable=False, index=True)
  column_id: Mapped[str] = mapped_column(String(36), ForeignKey("columns.id"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  attachments: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
  # Append-only audit log: [{id, text, author, created_at}]
  comments: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
  due_time: Mapped[time | None] = mapped_column(Time, nullable=True)
  last_notified_2hr_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  last_notified_30min_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class ApprovalToken(Base):
  __tablename__ = "public_approval_tokens"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  token: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  group_id: Mapped[str] = mapped_column(String(36), ForeignKey("groups.id"), nullable=False)
  workspace_id: Mapped[str] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=False)
  expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class DashboardToken(Base):
  __tablename__ = "public_client_dashboards"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  token: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  group_id: Mapped[str] = mapped_column(String(36), ForeignKey("groups.id"), nullable=False)
  workspace_id: Mapped[str] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=False)
  expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class InstagramInsight(Base):
  __tablename__ = "instagram_insights"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  workspace_id: Mapped[str] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
  insight_date: Mapped[date] = mapped_column(Date, nullable=False)
  data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class AppSettings(Base):
  __tablename__ = "app_settings"

  id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
  site_url: Mapped[str | None] = mapped_column(String, nullable=True)
  credentials_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class AuditEvent(Base):
  __tablename__ = "audit_events"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  workspace_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=True)
  group_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("groups.id"), nullable=True)
  task_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=True)
  actor: Mapped[str | None] = mapped_column(String, nullable=True)
  event_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
  entity_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
  payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
