from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.approvals.tokens import TokenKind, create_token, deactivate_token, validate_token
from agencyhub.errors import AppError, ErrorKind
from agencyhub.models import ApprovalToken

from conftest import seed_board


async def _approval_token(db: AsyncSession, board: dict, *, token: str, expires_at: datetime, is_active: bool = True) -> None:
  db.add(
    ApprovalToken(
      token=token,
      group_id=board["group_id"],
      workspace_id=board["workspace_id"],
      expires_at=expires_at,
      is_active=is_active,
    )
  )
  await db.commit()


@pytest.mark.anyio
async def test_valid_token_resolves_scope(db: AsyncSession) -> None:
  board = await seed_board()
  row = await create_token(
    db, kind=TokenKind.APPROVAL, group_id=board["group_id"], workspace_id=board["workspace_id"], ttl=timedelta(days=7)
  )
  await db.commit()

  scope = await validate_token(db, row.token)
  assert scope.group_id == board["group_id"]
  assert scope.workspace_id == board["workspace_id"]
  # Reusable until it expires or is deactivated.
  again = await validate_token(db, row.token)
  assert again == scope


@pytest.mark.anyio
async def test_expired_inactive_and_unknown_tokens_are_rejected(db: AsyncSession) -> None:
  board = await seed_board()
  now = datetime.now(timezone.utc)
  await _approval_token(db, board, token="abc123", expires_at=now - timedelta(days=1))
  await _approval_token(db, board, token="off", expires_at=now + timedelta(days=1), is_active=False)

  for token in ("abc123", "off", "nope", "", None):
    with pytest.raises(AppError) as exc:
      await validate_token(db, token)
    assert exc.value.kind is ErrorKind.INVALID_TOKEN
    assert exc.value.message == "Link inválido ou expirado."


@pytest.mark.anyio
async def test_expiry_is_strict(db: AsyncSession) -> None:
  board = await seed_board()
  expires = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
  await _approval_token(db, board, token="edge", expires_at=expires)

  scope = await validate_token(db, "edge", now=expires)
  assert scope.group_id == board["group_id"]
  with pytest.raises(AppError):
    await validate_token(db, "edge", now=expires + timedelta(seconds=1))


@pytest.mark.anyio
async def test_dashboard_tokens_do_not_unlock_approvals(db: AsyncSession) -> None:
  board = await seed_board()
  row = await create_token(
    db, kind=TokenKind.DASHBOARD, group_id=board["group_id"], workspace_id=board["workspace_id"], ttl=timedelta(days=30)
  )
  await db.commit()

  assert (await validate_token(db, row.token, kind=TokenKind.DASHBOARD)).group_id == board["group_id"]
  with pytest.raises(AppError) as exc:
    await validate_token(db, row.token, kind=TokenKind.APPROVAL)
  assert exc.value.kind is ErrorKind.INVALID_TOKEN


@pytest.mark.anyio
async def test_deactivate_token(db: AsyncSession) -> None:
  board = await seed_board()
  row = await create_token(
    db, kind=TokenKind.APPROVAL, group_id=board["group_id"], workspace_id=board["workspace_id"], ttl=timedelta(days=7)
  )
  await db.commit()

  await deactivate_token(db, row.token, kind=TokenKind.APPROVAL)
  await db.commit()
  with pytest.raises(AppError):
    await validate_token(db, row.token)

  with pytest.raises(AppError) as exc:
    await deactivate_token(db, "missing", kind=TokenKind.APPROVAL)
  assert exc.value.kind is ErrorKind.NOT_FOUND


@pytest.mark.anyio
async def test_action_with_expired_token_reports_invalid_link(client: AsyncClient, db: AsyncSession) -> None:
  board = await seed_board()
  await _approval_token(db, board, token="abc123", expires_at=datetime.now(timezone.utc) - timedelta(days=1))

  res = await client.post("/public/approval/action", json={"token": "abc123", "taskId": "t1", "action": "approve"})
  assert res.status_code == 400, res.text
  assert res.json() == {"error": "Link inválido ou expirado.", "kind": "INVALID_TOKEN"}
