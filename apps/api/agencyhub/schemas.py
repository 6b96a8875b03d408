from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class TokenIn(BaseModel):
  token: str | None = None


class ApprovalActionIn(BaseModel):
  # All optional so that missing fields surface as the domain error, not a schema error.
  token: str | None = None
  taskId: str | None = None
  action: str | None = None
  comment: str | None = None


class MessageOut(BaseModel):
  message: str


class WorkspacePublicOut(BaseModel):
  name: str
  logo_url: str | None = None


class ApprovalTaskOut(BaseModel):
  id: str
  title: str
  description: str = ""
  attachments: list[dict[str, Any]] = Field(default_factory=list)


class ApprovalTasksOut(BaseModel):
  workspace: WorkspacePublicOut
  tasks: list[ApprovalTaskOut]


class InstagramInsightOut(BaseModel):
  id: str
  insight_date: date
  data: dict[str, Any] = Field(default_factory=dict)


class KanbanTaskOut(BaseModel):
  id: str
  title: str
  description: str = ""
  due_date: date | None = None
  attachments: list[dict[str, Any]] = Field(default_factory=list)
  column_title: str | None = None


class KanbanColumnOut(BaseModel):
  id: str
  title: str


class DashboardOut(BaseModel):
  workspace: WorkspacePublicOut
  instagramInsights: InstagramInsightOut | None = None
  kanbanTasks: list[KanbanTaskOut]
  kanbanColumns: list[KanbanColumnOut]


class DeadlineCheckOut(BaseModel):
  message: str
  sent: int
  skipped: int
  failed: int


class TelegramSendIn(BaseModel):
  message: str = Field(min_length=1, max_length=4096)


class WhatsAppSendIn(BaseModel):
  to: str | None = Field(default=None, max_length=64)
  message: str = Field(min_length=1, max_length=4096)


class GatewaySendIn(BaseModel):
  to: str | None = Field(default=None, max_length=64)
  whatsappGroupId: str | None = Field(default=None, max_length=128)
  message: str = Field(min_length=1, max_length=4096)


class DeliveryOut(BaseModel):
  status: Literal["sent", "skipped", "failed", "copy_only"]
  backend: str | None = None
  detail: dict[str, Any] = Field(default_factory=dict)


class SendOut(BaseModel):
  message: str
  status: Literal["sent", "skipped", "failed"]
  backend: str


class LinkCreateIn(BaseModel):
  groupId: str = Field(min_length=1, max_length=64)
  workspaceId: str = Field(min_length=1, max_length=64)


class LinkOut(BaseModel):
  token: str
  url: str
  message: str
  expiresAt: datetime
  delivery: DeliveryOut


class LinkDeactivateOut(BaseModel):
  token: str
  isActive: bool


class MessagingSettingsIn(BaseModel):
  siteUrl: str | None = Field(default=None, max_length=500)
  telegramBotToken: str | None = None
  telegramChatId: str | None = None
  telegramDeadlinesBotToken: str | None = None
  telegramDeadlinesChatId: str | None = None
  whatsappApiToken: str | None = None
  whatsappPhoneNumberId: str | None = None
  evolutionApiUrl: str | None = None
  evolutionApiToken: str | None = None
  evolutionApiInstance: str | None = None


class MessagingSettingsOut(BaseModel):
  siteUrl: str | None = None
  hints: dict[str, str]
  configuredBackends: list[str]
  deadlineChannelConfigured: bool
