"""
Outbound notification relay.

The relay is built from an explicit `RelayConfig` (see `agencyhub.notifications.store.load_relay_config`)
and never reads settings on its own. Callers pick the backend:

- staff alerts go to Telegram (`Channel.ALERTS` or `Channel.DEADLINES` credentials);
- client-facing messages go to `RelayConfig.client_backend()` (WhatsApp Business, then the gateway).

A backend without credentials yields a `skipped` result instead of an error. Provider failures raise
`NotificationError`; use `notify_safely` where a failed send must not affect the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from agencyhub.errors import AppError, ErrorKind, NotificationError
from agencyhub.log import get_logger
from agencyhub.notifications.service import (
  MessagingProvider,
  TelegramCredentials,
  TelegramProvider,
  WhatsAppBusinessCredentials,
  WhatsAppBusinessProvider,
  WhatsAppGatewayCredentials,
  WhatsAppGatewayProvider,
  is_group_target,
  normalize_phone,
)

logger = get_logger(__name__)


class Backend(str, Enum):
  TELEGRAM = "telegram"
  WHATSAPP_BUSINESS = "whatsapp_business"
  WHATSAPP_GATEWAY = "whatsapp_gateway"


class Channel(str, Enum):
  ALERTS = "alerts"
  DEADLINES = "deadlines"


@dataclass(frozen=True)
class RelayConfig:
  telegram: TelegramCredentials | None = None
  telegram_deadlines: TelegramCredentials | None = None
  whatsapp_business: WhatsAppBusinessCredentials | None = None
  whatsapp_gateway: WhatsAppGatewayCredentials | None = None
  default_country_code: str = "55"
  timeout_seconds: float = 5.0

  def credentials_for(self, backend: Backend, channel: Channel = Channel.ALERTS) -> Any:
    if backend is Backend.TELEGRAM:
      if channel is Channel.DEADLINES:
        return self.telegram_deadlines or self.telegram
      return self.telegram
    if backend is Backend.WHATSAPP_BUSINESS:
      return self.whatsapp_business
    return self.whatsapp_gateway

  def client_backend(self) -> Backend | None:
    if self.whatsapp_business is not None:
      return Backend.WHATSAPP_BUSINESS
    if self.whatsapp_gateway is not None:
      return Backend.WHATSAPP_GATEWAY
    return None

  def configured_backends(self) -> list[Backend]:
    return [b for b in Backend if self.credentials_for(b) is not None]


@dataclass(frozen=True)
class DeliveryResult:
  status: str  # sent | skipped | failed
  backend: Backend | None
  detail: dict[str, Any] = field(default_factory=dict)

  @property
  def delivered(self) -> bool:
    return self.status == "sent"


_PROVIDERS: dict[Backend, MessagingProvider] = {
  Backend.TELEGRAM: TelegramProvider(),
  Backend.WHATSAPP_BUSINESS: WhatsAppBusinessProvider(),
  Backend.WHATSAPP_GATEWAY: WhatsAppGatewayProvider(),
}


class NotificationRelay:
  def __init__(self, config: RelayConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self.config = config
    self._transport = transport

  def _resolve_target(self, backend: Backend, target: str | None) -> str | None:
    t = (target or "").strip()
    if backend is Backend.TELEGRAM:
      return t or None
    if not t:
      raise AppError(ErrorKind.VALIDATION_ERROR, "Número de destino (to) é obrigatório.")
    if backend is Backend.WHATSAPP_GATEWAY and is_group_target(t):
      return t
    try:
      return normalize_phone(t, country_code=self.config.default_country_code)
    except ValueError as exc:
      raise AppError(ErrorKind.VALIDATION_ERROR, "Número de telefone inválido.") from exc

  async def send(
    self,
    message: str,
    *,
    backend: Backend,
    target: str | None = None,
    channel: Channel = Channel.ALERTS,
  ) -> DeliveryResult:
    if not (message or "").strip():
      raise AppError(ErrorKind.VALIDATION_ERROR, "A mensagem é obrigatória.")

    credentials = self.config.credentials_for(backend, channel)
    if credentials is None:
      logger.warning("notification.skipped", backend=backend.value, channel=channel.value, reason="not_configured")
      return DeliveryResult(status="skipped", backend=backend, detail={"reason": "not_configured"})

    resolved = self._resolve_target(backend, target)
    provider = _PROVIDERS[backend]
    async with httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self._transport) as client:
      try:
        detail = await provider.send(client, credentials=credentials, target=resolved, message=message)
      except NotificationError as exc:
        logger.error(
          "notification.failed",
          backend=backend.value,
          channel=channel.value,
          status_code=exc.status_code,
          error=exc.message,
          response=exc.details.get("response"),
        )
        raise
    logger.info("notification.sent", backend=backend.value, channel=channel.value)
    return DeliveryResult(status="sent", backend=backend, detail=detail)


async def notify_safely(
  relay: NotificationRelay,
  message: str,
  *,
  backend: Backend,
  target: str | None = None,
  channel: Channel = Channel.ALERTS,
) -> DeliveryResult:
  """Send without ever raising; failures come back as a `failed` result and are logged."""
  try:
    return await relay.send(message, backend=backend, target=target, channel=channel)
  except AppError as exc:
    logger.warning("notification.suppressed", backend=backend.value, kind=exc.kind.value, error=exc.message)
    return DeliveryResult(status="failed", backend=backend, detail={"error": exc.message, "kind": exc.kind.value})
  except Exception as exc:
    # The caller's change is already committed; never turn it into a 500.
    logger.exception("notification.unexpected_error", backend=backend.value)
    return DeliveryResult(
      status="failed",
      backend=backend,
      detail={"error": f"{exc.__class__.__name__}: {exc}", "kind": ErrorKind.UPSTREAM_ERROR.value},
    )
