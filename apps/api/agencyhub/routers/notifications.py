from __future__ import annotations

from fastapi import APIRouter, Depends

from agencyhub.deps import get_relay, require_internal_key
from agencyhub.notifications.relay import Backend, DeliveryResult, NotificationRelay
from agencyhub.schemas import GatewaySendIn, SendOut, TelegramSendIn, WhatsAppSendIn

router = APIRouter(prefix="/notifications", tags=["notifications"], dependencies=[Depends(require_internal_key)])

_MESSAGES = {
  Backend.TELEGRAM: ("Notificação enviada com sucesso!", "Configurações do Telegram não encontradas."),
  Backend.WHATSAPP_BUSINESS: (
    "Mensagem enviada com sucesso!",
    "Configurações da API do WhatsApp não encontradas. Mensagem não enviada.",
  ),
  Backend.WHATSAPP_GATEWAY: (
    "Mensagem WhatsApp enviada com sucesso via Evolution API!",
    "Configurações da Evolution API não encontradas. Mensagem não enviada.",
  ),
}


def _out(result: DeliveryResult, backend: Backend) -> SendOut:
  ok, missing = _MESSAGES[backend]
  return SendOut(message=ok if result.delivered else missing, status=result.status, backend=backend.value)


@router.post("/telegram", response_model=SendOut)
async def send_telegram(payload: TelegramSendIn, relay: NotificationRelay = Depends(get_relay)) -> SendOut:
  result = await relay.send(payload.message, backend=Backend.TELEGRAM)
  return _out(result, Backend.TELEGRAM)


@router.post("/whatsapp", response_model=SendOut)
async def send_whatsapp(payload: WhatsAppSendIn, relay: NotificationRelay = Depends(get_relay)) -> SendOut:
  result = await relay.send(payload.message, backend=Backend.WHATSAPP_BUSINESS, target=payload.to)
  return _out(result, Backend.WHATSAPP_BUSINESS)


@router.post("/whatsapp-gateway", response_model=SendOut)
async def send_whatsapp_gateway(payload: GatewaySendIn, relay: NotificationRelay = Depends(get_relay)) -> SendOut:
  target = (payload.whatsappGroupId or "").strip() or payload.to
  result = await relay.send(payload.message, backend=Backend.WHATSAPP_GATEWAY, target=target)
  return _out(result, Backend.WHATSAPP_GATEWAY)
