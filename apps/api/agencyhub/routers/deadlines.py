from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.deadlines.service import scan_deadlines
from agencyhub.deps import get_db, get_relay, require_internal_key
from agencyhub.notifications.relay import NotificationRelay
from agencyhub.schemas import DeadlineCheckOut

router = APIRouter(prefix="/deadlines", tags=["deadlines"], dependencies=[Depends(require_internal_key)])


@router.post("/check", response_model=DeadlineCheckOut)
async def check_deadlines(
  db: AsyncSession = Depends(get_db),
  relay: NotificationRelay = Depends(get_relay),
) -> DeadlineCheckOut:
  result = await scan_deadlines(db, relay)
  return DeadlineCheckOut(message=result.summary(), sent=result.sent, skipped=result.skipped, failed=result.failed)
