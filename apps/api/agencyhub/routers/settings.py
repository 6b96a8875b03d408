from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.audit import write_audit
from agencyhub.deps import get_db, require_internal_key
from agencyhub.notifications.store import messaging_settings_public, save_messaging_settings
from agencyhub.schemas import MessagingSettingsIn, MessagingSettingsOut

router = APIRouter(prefix="/settings", tags=["settings"], dependencies=[Depends(require_internal_key)])

# camelCase payload field -> stored credential key
_FIELD_MAP = {
  "telegramBotToken": "telegram_bot_token",
  "telegramChatId": "telegram_chat_id",
  "telegramDeadlinesBotToken": "telegram_deadlines_bot_token",
  "telegramDeadlinesChatId": "telegram_deadlines_chat_id",
  "whatsappApiToken": "whatsapp_api_token",
  "whatsappPhoneNumberId": "whatsapp_phone_number_id",
  "evolutionApiUrl": "evolution_api_url",
  "evolutionApiToken": "evolution_api_token",
  "evolutionApiInstance": "evolution_api_instance",
}


@router.get("/messaging", response_model=MessagingSettingsOut)
async def get_messaging_settings(db: AsyncSession = Depends(get_db)) -> dict:
  return await messaging_settings_public(db)


@router.put("/messaging", response_model=MessagingSettingsOut)
async def update_messaging_settings(payload: MessagingSettingsIn, db: AsyncSession = Depends(get_db)) -> dict:
  data = payload.model_dump(exclude_unset=True)
  changes = {_FIELD_MAP[k]: v for k, v in data.items() if k in _FIELD_MAP}
  await save_messaging_settings(db, changes=changes, site_url=data.get("siteUrl"))
  await write_audit(
    db,
    event_type="settings.messaging.updated",
    entity_type="AppSettings",
    entity_id="1",
    # Only field names; values are secrets.
    payload={"fields": sorted(data.keys())},
  )
  await db.commit()
  return await messaging_settings_public(db)
