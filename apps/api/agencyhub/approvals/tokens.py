from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.errors import AppError, ErrorKind
from agencyhub.models import ApprovalToken, DashboardToken, as_utc
from agencyhub.security import new_public_token


class TokenKind(str, Enum):
  APPROVAL = "approval"
  DASHBOARD = "dashboard"


_MODELS: dict[TokenKind, type[ApprovalToken] | type[DashboardToken]] = {
  TokenKind.APPROVAL: ApprovalToken,
  TokenKind.DASHBOARD: DashboardToken,
}

INVALID_MESSAGES = {
  TokenKind.APPROVAL: "Link inválido ou expirado.",
  TokenKind.DASHBOARD: "Link do dashboard inválido ou expirado.",
}


@dataclass(frozen=True)
class TokenScope:
  group_id: str
  workspace_id: str
  expires_at: datetime


def _now() -> datetime:
  return datetime.now(timezone.utc)


async def create_token(
  db: AsyncSession,
  *,
  kind: TokenKind,
  group_id: str,
  workspace_id: str,
  ttl: timedelta,
  now: datetime | None = None,
) -> ApprovalToken | DashboardToken:
  model = _MODELS[kind]
  row = model(
    token=new_public_token(),
    group_id=group_id,
    workspace_id=workspace_id,
    expires_at=(now or _now()) + ttl,
    is_active=True,
  )
  db.add(row)
  await db.flush()
  return row


async def validate_token(
  db: AsyncSession,
  token: str | None,
  *,
  kind: TokenKind = TokenKind.APPROVAL,
  now: datetime | None = None,
) -> TokenScope:
  """
  Resolve a public token to its (group, workspace) scope.

  Tokens stay valid for repeated use until deactivated or expired.
  """
  t = (token or "").strip()
  if not t:
    raise AppError(ErrorKind.INVALID_TOKEN, INVALID_MESSAGES[kind])
  model = _MODELS[kind]
  res = await db.execute(select(model).where(model.token == t))
  row = res.scalar_one_or_none()
  if row is None or not row.is_active:
    raise AppError(ErrorKind.INVALID_TOKEN, INVALID_MESSAGES[kind])
  expires_at = as_utc(row.expires_at)
  if expires_at < (now or _now()):
    raise AppError(ErrorKind.INVALID_TOKEN, INVALID_MESSAGES[kind])
  return TokenScope(group_id=row.group_id, workspace_id=row.workspace_id, expires_at=expires_at)


async def deactivate_token(db: AsyncSession, token: str, *, kind: TokenKind) -> ApprovalToken | DashboardToken:
  model = _MODELS[kind]
  res = await db.execute(select(model).where(model.token == (token or "").strip()))
  row = res.scalar_one_or_none()
  if row is None:
    raise AppError(ErrorKind.NOT_FOUND, "Link não encontrado.")
  row.is_active = False
  return row
