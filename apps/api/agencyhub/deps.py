from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.db import SessionLocal
from agencyhub.notifications.relay import NotificationRelay
from agencyhub.notifications.store import load_relay_config
from agencyhub.security import internal_key_matches

INTERNAL_KEY_HEADER = "x-internal-key"


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


async def get_relay(db: AsyncSession = Depends(get_db)) -> NotificationRelay:
  return NotificationRelay(await load_relay_config(db))


def _provided_key(request: Request) -> str | None:
  key = request.headers.get(INTERNAL_KEY_HEADER)
  if key:
    return key
  auth = request.headers.get("authorization")
  if auth and auth.lower().startswith("bearer "):
    return auth.split(" ", 1)[1].strip() or None
  return None


async def require_internal_key(request: Request) -> None:
  if not internal_key_matches(_provided_key(request)):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid internal key")
