from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.config import Settings, settings
from agencyhub.errors import AppError
from agencyhub.log import get_logger
from agencyhub.models import AppSettings
from agencyhub.notifications.relay import RelayConfig
from agencyhub.notifications.service import (
  TelegramCredentials,
  WhatsAppBusinessCredentials,
  WhatsAppGatewayCredentials,
)
from agencyhub.security import decrypt_json, encrypt_json, secret_hint

CREDENTIAL_FIELDS = (
  "telegram_bot_token",
  "telegram_chat_id",
  "telegram_deadlines_bot_token",
  "telegram_deadlines_chat_id",
  "whatsapp_api_token",
  "whatsapp_phone_number_id",
  "evolution_api_url",
  "evolution_api_token",
  "evolution_api_instance",
)

SETTINGS_ROW_ID = 1

logger = get_logger(__name__)


def _clean(v: Any) -> str:
  return str(v or "").strip()


def env_credentials(cfg: Settings = settings) -> dict[str, str]:
  return {k: _clean(getattr(cfg, k, None)) for k in CREDENTIAL_FIELDS}


async def get_app_settings(db: AsyncSession) -> AppSettings | None:
  res = await db.execute(select(AppSettings).where(AppSettings.id == SETTINGS_ROW_ID))
  return res.scalar_one_or_none()


async def effective_credentials(db: AsyncSession) -> dict[str, str]:
  values = env_credentials()
  row = await get_app_settings(db)
  if row is not None:
    for k, v in decrypt_json(row.credentials_encrypted).items():
      if k in CREDENTIAL_FIELDS and _clean(v):
        values[k] = _clean(v)
  return values


def build_relay_config(values: dict[str, str], *, cfg: Settings = settings) -> RelayConfig:
  telegram = None
  if values.get("telegram_bot_token") and values.get("telegram_chat_id"):
    telegram = TelegramCredentials(bot_token=values["telegram_bot_token"], chat_id=values["telegram_chat_id"])

  telegram_deadlines = None
  if values.get("telegram_deadlines_bot_token") and values.get("telegram_deadlines_chat_id"):
    telegram_deadlines = TelegramCredentials(
      bot_token=values["telegram_deadlines_bot_token"], chat_id=values["telegram_deadlines_chat_id"]
    )

  whatsapp_business = None
  if values.get("whatsapp_api_token") and values.get("whatsapp_phone_number_id"):
    whatsapp_business = WhatsAppBusinessCredentials(
      api_token=values["whatsapp_api_token"],
      phone_number_id=values["whatsapp_phone_number_id"],
      api_version=cfg.whatsapp_api_version,
    )

  whatsapp_gateway = None
  if values.get("evolution_api_url") and values.get("evolution_api_token") and values.get("evolution_api_instance"):
    whatsapp_gateway = WhatsAppGatewayCredentials(
      base_url=values["evolution_api_url"],
      api_token=values["evolution_api_token"],
      instance=values["evolution_api_instance"],
    )

  return RelayConfig(
    telegram=telegram,
    telegram_deadlines=telegram_deadlines,
    whatsapp_business=whatsapp_business,
    whatsapp_gateway=whatsapp_gateway,
    default_country_code=cfg.default_country_code,
    timeout_seconds=float(cfg.notification_timeout_seconds),
  )


async def load_relay_config(db: AsyncSession) -> RelayConfig:
  # Reloaded on every request / scan so saved settings apply without a restart.
  try:
    values = await effective_credentials(db)
  except AppError as exc:
    # Sends fall back to env credentials; GET /settings/messaging still reports the error.
    logger.error("relay.config.stored_credentials_unreadable", kind=exc.kind.value, error=exc.message)
    values = env_credentials()
  return build_relay_config(values)


async def resolve_site_url(db: AsyncSession) -> str | None:
  row = await get_app_settings(db)
  url = _clean(row.site_url if row else None) or _clean(settings.site_url)
  return url.rstrip("/") or None


async def save_messaging_settings(db: AsyncSession, *, changes: dict[str, str | None], site_url: str | None = None) -> AppSettings:
  """Apply partial changes; `None` keeps the stored value, an empty string clears it."""
  row = await get_app_settings(db)
  if row is None:
    row = AppSettings(id=SETTINGS_ROW_ID)
    db.add(row)
  stored = decrypt_json(row.credentials_encrypted)
  for k, v in changes.items():
    if k not in CREDENTIAL_FIELDS or v is None:
      continue
    if _clean(v):
      stored[k] = _clean(v)
    else:
      stored.pop(k, None)
  row.credentials_encrypted = encrypt_json(stored)
  if site_url is not None:
    row.site_url = _clean(site_url) or None
  await db.flush()
  return row


async def messaging_settings_public(db: AsyncSession) -> dict[str, Any]:
  values = await effective_credentials(db)
  config = build_relay_config(values)
  return {
    "siteUrl": await resolve_site_url(db),
    "hints": {k: secret_hint(v) for k, v in values.items()},
    "configuredBackends": [b.value for b in config.configured_backends()],
    "deadlineChannelConfigured": config.telegram_deadlines is not None,
  }
