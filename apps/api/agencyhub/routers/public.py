from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.approvals.queries import dashboard_data, list_tasks_for_approval
from agencyhub.approvals.service import process_action
from agencyhub.deps import get_db, get_relay
from agencyhub.notifications.relay import NotificationRelay
from agencyhub.schemas import ApprovalActionIn, ApprovalTasksOut, DashboardOut, MessageOut, TokenIn

router = APIRouter(prefix="/public", tags=["public"])


@router.post("/approval/tasks", response_model=ApprovalTasksOut)
async def approval_tasks(payload: TokenIn, db: AsyncSession = Depends(get_db)) -> dict:
  return await list_tasks_for_approval(db, payload.token)


@router.post("/approval/action", response_model=MessageOut)
async def approval_action(
  payload: ApprovalActionIn,
  db: AsyncSession = Depends(get_db),
  relay: NotificationRelay = Depends(get_relay),
) -> MessageOut:
  result = await process_action(
    db,
    relay,
    token=payload.token,
    task_id=payload.taskId,
    action=payload.action,
    comment=payload.comment,
  )
  return MessageOut(message=result.message)


@router.post("/dashboard", response_model=DashboardOut)
async def dashboard(payload: TokenIn, db: AsyncSession = Depends(get_db)) -> dict:
  return await dashboard_data(db, payload.token)
