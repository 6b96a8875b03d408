from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.approvals.links import PublishedLink, publish_approval_link, publish_dashboard_link
from agencyhub.approvals.tokens import TokenKind, deactivate_token
from agencyhub.audit import write_audit
from agencyhub.deps import get_db, get_relay, require_internal_key
from agencyhub.notifications.relay import NotificationRelay
from agencyhub.schemas import DeliveryOut, LinkCreateIn, LinkDeactivateOut, LinkOut

router = APIRouter(tags=["links"], dependencies=[Depends(require_internal_key)])


def _link_out(link: PublishedLink) -> LinkOut:
  if link.delivery is None:
    delivery = DeliveryOut(status="copy_only")
  else:
    delivery = DeliveryOut(
      status=link.delivery.status,
      backend=(link.delivery.backend.value if link.delivery.backend else None),
      detail=link.delivery.detail,
    )
  return LinkOut(token=link.token, url=link.url, message=link.message, expiresAt=link.expires_at, delivery=delivery)


async def _deactivate(db: AsyncSession, token: str, kind: TokenKind) -> LinkDeactivateOut:
  row = await deactivate_token(db, token, kind=kind)
  await write_audit(
    db,
    event_type=f"{kind.value}_link.deactivated",
    entity_type=type(row).__name__,
    entity_id=row.id,
    workspace_id=row.workspace_id,
    group_id=row.group_id,
  )
  await db.commit()
  return LinkDeactivateOut(token=row.token, isActive=False)


@router.post("/approval-links", response_model=LinkOut)
async def create_approval_link(
  payload: LinkCreateIn,
  db: AsyncSession = Depends(get_db),
  relay: NotificationRelay = Depends(get_relay),
) -> LinkOut:
  link = await publish_approval_link(db, relay, group_id=payload.groupId, workspace_id=payload.workspaceId)
  return _link_out(link)


@router.post("/approval-links/{token}/deactivate", response_model=LinkDeactivateOut)
async def deactivate_approval_link(token: str, db: AsyncSession = Depends(get_db)) -> LinkDeactivateOut:
  return await _deactivate(db, token, TokenKind.APPROVAL)


@router.post("/dashboard-links", response_model=LinkOut)
async def create_dashboard_link(payload: LinkCreateIn, db: AsyncSession = Depends(get_db)) -> LinkOut:
  link = await publish_dashboard_link(db, group_id=payload.groupId, workspace_id=payload.workspaceId)
  return _link_out(link)


@router.post("/dashboard-links/{token}/deactivate", response_model=LinkDeactivateOut)
async def deactivate_dashboard_link(token: str, db: AsyncSession = Depends(get_db)) -> LinkDeactivateOut:
  return await _deactivate(db, token, TokenKind.DASHBOARD)
