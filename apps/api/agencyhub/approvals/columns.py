from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.config import Settings, settings
from agencyhub.errors import AppError, ErrorKind
from agencyhub.models import Column


@dataclass(frozen=True)
class WorkflowStages:
  pending: str = "Para aprovação"
  in_production: str = "Em Produção"
  approved: str = "Aprovado"
  needs_edit: str = "Editar"

  @classmethod
  def from_settings(cls, cfg: Settings = settings) -> "WorkflowStages":
    return cls(
      pending=cfg.stage_pending,
      in_production=cfg.stage_in_production,
      approved=cfg.stage_approved,
      needs_edit=cfg.stage_needs_edit,
    )

  def ordered(self) -> list[str]:
    return [self.in_production, self.pending, self.needs_edit, self.approved]

  def closed(self) -> set[str]:
    # Stages the deadline scanner ignores.
    return {self.approved, self.pending}


async def resolve_column(db: AsyncSession, group_id: str, title: str) -> str:
  res = await db.execute(
    select(Column.id).where(Column.group_id == group_id, Column.title == title).order_by(Column.position.asc()).limit(1)
  )
  column_id = res.scalar_one_or_none()
  if not column_id:
    raise AppError(ErrorKind.COLUMN_NOT_FOUND, f"Coluna '{title}' não encontrada.")
  return column_id


async def ensure_group_columns(db: AsyncSession, *, group_id: str, stages: WorkflowStages | None = None) -> list[Column]:
  """Create missing canonical stage columns for a group (idempotent)."""
  stages = stages or WorkflowStages.from_settings()
  res = await db.execute(select(Column.title).where(Column.group_id == group_id))
  existing = set(res.scalars().all())
  pres = await db.execute(select(func.max(Column.position)).where(Column.group_id == group_id))
  max_pos = pres.scalar_one()
  pos = (max_pos + 1) if max_pos is not None else 0
  created: list[Column] = []
  for title in stages.ordered():
    if title in existing:
      continue
    c = Column(group_id=group_id, title=title, position=pos)
    db.add(c)
    created.append(c)
    pos += 1
  await db.flush()
  return created
