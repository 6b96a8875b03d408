from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.approvals.columns import WorkflowStages, resolve_column
from agencyhub.approvals.tokens import TokenKind, validate_token
from agencyhub.audit import write_audit
from agencyhub.errors import AppError, ErrorKind
from agencyhub.log import get_logger
from agencyhub.models import Task, Workspace
from agencyhub.notifications.relay import Backend, DeliveryResult, NotificationRelay, notify_safely

logger = get_logger(__name__)

ACTION_APPROVE = "approve"
ACTION_EDIT = "edit"

SUCCESS_MESSAGES = {
  ACTION_APPROVE: "Tarefa aprovada com sucesso!",
  ACTION_EDIT: "Tarefa enviada para edição com sucesso!",
}


@dataclass(frozen=True)
class ApprovalResult:
  message: str
  task_id: str
  column_id: str
  notification: DeliveryResult


def client_author(workspace_name: str) -> str:
  return f"{workspace_name} (Cliente)"


def _comment_id(existing: list[dict[str, Any]], now: datetime) -> str:
  # Millisecond timestamp, bumped until unique within the task.
  taken = {str(c.get("id")) for c in existing}
  ms = int(now.timestamp() * 1000)
  while str(ms) in taken:
    ms += 1
  return str(ms)


def approval_notification(action: str, *, workspace_name: str, task_title: str, comment: str | None = None) -> str:
  if action == ACTION_EDIT:
    return f'*{workspace_name}* solicitou edição para a tarefa *"{task_title}"*.\nComentário: _{comment}_'
  return f'*{workspace_name}* aprovou a tarefa *"{task_title}"*.'


async def process_action(
  db: AsyncSession,
  relay: NotificationRelay,
  *,
  token: str | None,
  task_id: str | None,
  action: str | None,
  comment: str | None = None,
  stages: WorkflowStages | None = None,
  now: datetime | None = None,
) -> ApprovalResult:
  """
  Apply a client decision coming from a public approval link.

  - `approve` moves the task to the approved stage whatever its current stage.
  - `edit` moves it to the needs-edit stage and appends the client's comment.

  Token check, task lookup and update share one transaction; the staff alert is sent after commit
  and its failure never undoes the move.
  """
  token = (token or "").strip()
  task_id = (task_id or "").strip()
  action = (action or "").strip()
  if not token or not task_id or not action:
    raise AppError(ErrorKind.VALIDATION_ERROR, "token, taskId e action são obrigatórios.")
  if action not in (ACTION_APPROVE, ACTION_EDIT):
    raise AppError(ErrorKind.VALIDATION_ERROR, f"Ação inválida: {action}.")
  text = (comment or "").strip()
  if action == ACTION_EDIT and not text:
    raise AppError(ErrorKind.MISSING_COMMENT, "O comentário é obrigatório para solicitar edição.")

  stages = stages or WorkflowStages.from_settings()
  now = now or datetime.now(timezone.utc)

  scope = await validate_token(db, token, kind=TokenKind.APPROVAL, now=now)

  res = await db.execute(select(Task).where(Task.id == task_id).with_for_update())
  task = res.scalar_one_or_none()
  if task is None or task.group_id != scope.group_id:
    raise AppError(ErrorKind.TASK_NOT_FOUND, "Tarefa não encontrada.")

  wres = await db.execute(select(Workspace).where(Workspace.id == scope.workspace_id))
  workspace = wres.scalar_one_or_none()
  if workspace is None:
    raise AppError(ErrorKind.NOT_FOUND, "Workspace não encontrado.")

  target_title = stages.approved if action == ACTION_APPROVE else stages.needs_edit
  column_id = await resolve_column(db, scope.group_id, target_title)

  previous_column_id = task.column_id
  task.column_id = column_id
  audit_payload: dict[str, Any] = {"action": action, "fromColumnId": previous_column_id, "toColumnId": column_id}
  if action == ACTION_EDIT:
    existing = list(task.comments or [])
    entry = {
      "id": _comment_id(existing, now),
      "text": text,
      "author": client_author(workspace.name),
      "created_at": now.isoformat(),
    }
    task.comments = [*existing, entry]
    audit_payload["commentId"] = entry["id"]

  await write_audit(
    db,
    event_type=f"approval.{action}",
    entity_type="Task",
    entity_id=task.id,
    workspace_id=scope.workspace_id,
    group_id=scope.group_id,
    task_id=task.id,
    actor=client_author(workspace.name),
    payload=audit_payload,
  )
  await db.commit()
  logger.info("approval.processed", action=action, task_id=task.id, group_id=scope.group_id, column_id=column_id)

  delivery = await notify_safely(
    relay,
    approval_notification(action, workspace_name=workspace.name, task_title=task.title, comment=text),
    backend=Backend.TELEGRAM,
  )
  return ApprovalResult(message=SUCCESS_MESSAGES[action], task_id=task.id, column_id=column_id, notification=delivery)
