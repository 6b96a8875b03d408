from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.approvals.tokens import TokenKind, create_token
from agencyhub.audit import write_audit
from agencyhub.config import settings
from agencyhub.errors import AppError, ErrorKind
from agencyhub.log import get_logger
from agencyhub.models import Group, Workspace, as_utc
from agencyhub.notifications.relay import Backend, DeliveryResult, NotificationRelay, RelayConfig, notify_safely
from agencyhub.notifications.store import resolve_site_url

logger = get_logger(__name__)


@dataclass(frozen=True)
class PublishedLink:
  token: str
  url: str
  message: str
  expires_at: datetime
  delivery: DeliveryResult | None


def approval_request_message(workspace_name: str, url: str) -> str:
  return (
    f"Olá! Os posts para o cliente *{workspace_name}* estão prontos para aprovação.\n\n"
    f"Por favor, acesse o link a seguir para revisar:\n{url}"
  )


def dashboard_message(workspace_name: str, url: str) -> str:
  return f"Olá! O painel do cliente *{workspace_name}* está disponível no link a seguir:\n{url}"


def client_destination(config: RelayConfig, ws: Workspace) -> tuple[Backend | None, str | None]:
  """Pick where a client-facing message goes; (None, None) means copy-only."""
  group_id = (ws.whatsapp_group_id or "").strip()
  if group_id and config.whatsapp_gateway is not None:
    return Backend.WHATSAPP_GATEWAY, group_id
  number = (ws.whatsapp_number or "").strip()
  if number:
    backend = config.client_backend()
    if backend is not None:
      return backend, number
  return None, None


async def _load_scope(db: AsyncSession, *, group_id: str, workspace_id: str) -> tuple[Group, Workspace]:
  wres = await db.execute(select(Workspace).where(Workspace.id == workspace_id))
  ws = wres.scalar_one_or_none()
  if ws is None:
    raise AppError(ErrorKind.NOT_FOUND, "Workspace não encontrado.")
  gres = await db.execute(select(Group).where(Group.id == group_id))
  group = gres.scalar_one_or_none()
  if group is None or group.workspace_id != ws.id:
    raise AppError(ErrorKind.NOT_FOUND, "Grupo não encontrado.")
  return group, ws


async def _require_site_url(db: AsyncSession) -> str:
  site_url = await resolve_site_url(db)
  if not site_url:
    raise AppError(ErrorKind.CONFIG_MISSING, "A 'URL do Site' não está configurada.")
  return site_url


async def publish_approval_link(
  db: AsyncSession,
  relay: NotificationRelay,
  *,
  group_id: str,
  workspace_id: str,
  now: datetime | None = None,
) -> PublishedLink:
  site_url = await _require_site_url(db)
  group, ws = await _load_scope(db, group_id=group_id, workspace_id=workspace_id)
  row = await create_token(
    db,
    kind=TokenKind.APPROVAL,
    group_id=group.id,
    workspace_id=ws.id,
    ttl=timedelta(days=settings.approval_token_ttl_days),
    now=now or datetime.now(timezone.utc),
  )
  url = f"{site_url}/approve/{row.token}"
  message = approval_request_message(ws.name, url)
  await write_audit(
    db,
    event_type="approval_link.created",
    entity_type="ApprovalToken",
    entity_id=row.id,
    workspace_id=ws.id,
    group_id=group.id,
    payload={"expiresAt": row.expires_at},
  )
  await db.commit()

  backend, target = client_destination(relay.config, ws)
  delivery = None
  if backend is not None:
    delivery = await notify_safely(relay, message, backend=backend, target=target)
  logger.info(
    "approval_link.published",
    workspace_id=ws.id,
    group_id=group.id,
    delivery=(delivery.status if delivery else "copy_only"),
  )
  return PublishedLink(token=row.token, url=url, message=message, expires_at=as_utc(row.expires_at), delivery=delivery)


async def publish_dashboard_link(
  db: AsyncSession,
  *,
  group_id: str,
  workspace_id: str,
  now: datetime | None = None,
) -> PublishedLink:
  site_url = await _require_site_url(db)
  group, ws = await _load_scope(db, group_id=group_id, workspace_id=workspace_id)
  row = await create_token(
    db,
    kind=TokenKind.DASHBOARD,
    group_id=group.id,
    workspace_id=ws.id,
    ttl=timedelta(days=settings.dashboard_token_ttl_days),
    now=now or datetime.now(timezone.utc),
  )
  url = f"{site_url}/client-dashboard/{row.token}"
  await write_audit(
    db,
    event_type="dashboard_link.created",
    entity_type="DashboardToken",
    entity_id=row.id,
    workspace_id=ws.id,
    group_id=group.id,
    payload={"expiresAt": row.expires_at},
  )
  await db.commit()
  return PublishedLink(
    token=row.token, url=url, message=dashboard_message(ws.name, url), expires_at=as_utc(row.expires_at), delivery=None
  )
