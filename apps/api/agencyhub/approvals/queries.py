from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.approvals.columns import WorkflowStages, resolve_column
from agencyhub.approvals.tokens import TokenKind, validate_token
from agencyhub.errors import AppError, ErrorKind
from agencyhub.models import Column, InstagramInsight, Task, Workspace


async def _workspace_or_404(db: AsyncSession, workspace_id: str) -> Workspace:
  res = await db.execute(select(Workspace).where(Workspace.id == workspace_id))
  ws = res.scalar_one_or_none()
  if ws is None:
    raise AppError(ErrorKind.NOT_FOUND, "Workspace não encontrado.")
  return ws


def _workspace_public(ws: Workspace) -> dict[str, Any]:
  return {"name": ws.name, "logo_url": ws.logo_url}


async def list_tasks_for_approval(db: AsyncSession, token: str | None, *, stages: WorkflowStages | None = None) -> dict[str, Any]:
  stages = stages or WorkflowStages.from_settings()
  scope = await validate_token(db, token, kind=TokenKind.APPROVAL)
  ws = await _workspace_or_404(db, scope.workspace_id)
  column_id = await resolve_column(db, scope.group_id, stages.pending)
  res = await db.execute(select(Task).where(Task.column_id == column_id).order_by(Task.position.asc(), Task.created_at.asc()))
  tasks = [
    {"id": t.id, "title": t.title, "description": t.description, "attachments": list(t.attachments or [])}
    for t in res.scalars().all()
  ]
  return {"workspace": _workspace_public(ws), "tasks": tasks}


async def dashboard_data(db: AsyncSession, token: str | None) -> dict[str, Any]:
  scope = await validate_token(db, token, kind=TokenKind.DASHBOARD)
  ws = await _workspace_or_404(db, scope.workspace_id)

  ires = await db.execute(
    select(InstagramInsight)
    .where(InstagramInsight.workspace_id == scope.workspace_id)
    .order_by(InstagramInsight.insight_date.desc())
    .limit(1)
  )
  insight = ires.scalar_one_or_none()

  cres = await db.execute(select(Column).where(Column.group_id == scope.group_id).order_by(Column.position.asc()))
  columns = cres.scalars().all()
  titles = {c.id: c.title for c in columns}

  tasks: list[dict[str, Any]] = []
  if titles:
    tres = await db.execute(
      select(Task).where(Task.column_id.in_(list(titles.keys()))).order_by(Task.position.asc(), Task.created_at.asc())
    )
    for t in tres.scalars().all():
      tasks.append(
        {
          "id": t.id,
          "title": t.title,
          "description": t.description,
          "due_date": t.due_date,
          "attachments": list(t.attachments or []),
          "column_title": titles.get(t.column_id),
        }
      )

  return {
    "workspace": _workspace_public(ws),
    "instagramInsights": (
      {"id": insight.id, "insight_date": insight.insight_date, "data": dict(insight.data or {})} if insight else None
    ),
    "kanbanTasks": tasks,
    "kanbanColumns": [{"id": c.id, "title": c.title} for c in columns],
  }
