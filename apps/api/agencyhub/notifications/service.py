from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from agencyhub.errors import NotificationError

TELEGRAM_API_BASE = "https://api.telegram.org"
WHATSAPP_GRAPH_BASE = "https://graph.facebook.com"

_NON_DIGITS_RE = re.compile(r"\D")


@dataclass(frozen=True)
class TelegramCredentials:
  bot_token: str
  chat_id: str


@dataclass(frozen=True)
class WhatsAppBusinessCredentials:
  api_token: str
  phone_number_id: str
  api_version: str = "v19.0"


@dataclass(frozen=True)
class WhatsAppGatewayCredentials:
  base_url: str
  api_token: str
  instance: str


def normalize_phone(raw: str, *, country_code: str = "55") -> str:
  digits = _NON_DIGITS_RE.sub("", raw or "")
  if not digits:
    raise ValueError("phone number has no digits")
  cc = _NON_DIGITS_RE.sub("", country_code or "")
  if cc and not digits.startswith(cc):
    digits = cc + digits
  return digits


def is_group_target(target: str) -> bool:
  # WhatsApp group ids look like "1203630…@g.us"; they are sent verbatim.
  return "@" in (target or "")


def _error_body(r: httpx.Response) -> Any:
  try:
    return r.json()
  except ValueError:
    return (r.text or "")[:800]


def _provider_message(payload: Any, default: str) -> str:
  if isinstance(payload, dict):
    if isinstance(payload.get("description"), str):
      return payload["description"]
    err = payload.get("error")
    if isinstance(err, dict) and isinstance(err.get("message"), str):
      return err["message"]
    if isinstance(payload.get("message"), str):
      return payload["message"]
  if isinstance(payload, str) and payload.strip():
    return payload.strip()[:300]
  return default


async def _post_json(client: httpx.AsyncClient, provider: str, url: str, **kwargs: Any) -> dict[str, Any]:
  try:
    r = await client.post(url, **kwargs)
  except (httpx.HTTPError, httpx.InvalidURL) as exc:
    raise NotificationError(provider=provider, message=f"{provider} request failed: {exc.__class__.__name__}") from exc
  if r.status_code >= 400:
    payload = _error_body(r)
    raise NotificationError(
      provider=provider,
      status_code=r.status_code,
      message=_provider_message(payload, f"{provider} request failed"),
      details={"response": payload},
    )
  data = _error_body(r) if r.content else {}
  return data if isinstance(data, dict) else {"raw": data}


class MessagingProvider(Protocol):
  name: str

  async def send(self, client: httpx.AsyncClient, *, credentials: Any, target: str | None, message: str) -> dict[str, Any]: ...


class TelegramProvider:
  name = "telegram"

  async def send(
    self,
    client: httpx.AsyncClient,
    *,
    credentials: TelegramCredentials,
    target: str | None,
    message: str,
  ) -> dict[str, Any]:
    payload = {"chat_id": target or credentials.chat_id, "text": message, "parse_mode": "Markdown"}
    return await _post_json(client, self.name, f"{TELEGRAM_API_BASE}/bot{credentials.bot_token}/sendMessage", json=payload)


class WhatsAppBusinessProvider:
  name = "whatsapp_business"

  async def send(
    self,
    client: httpx.AsyncClient,
    *,
    credentials: WhatsAppBusinessCredentials,
    target: str | None,
    message: str,
  ) -> dict[str, Any]:
    if not target:
      raise ValueError("WhatsApp Business messages need a destination number")
    url = f"{WHATSAPP_GRAPH_BASE}/{credentials.api_version}/{credentials.phone_number_id}/messages"
    payload = {"messaging_product": "whatsapp", "to": target, "type": "text", "text": {"body": message}}
    headers = {"Authorization": f"Bearer {credentials.api_token}"}
    return await _post_json(client, self.name, url, json=payload, headers=headers)


class WhatsAppGatewayProvider:
  name = "whatsapp_gateway"

  async def send(
    self,
    client: httpx.AsyncClient,
    *,
    credentials: WhatsAppGatewayCredentials,
    target: str | None,
    message: str,
  ) -> dict[str, Any]:
    if not target:
      raise ValueError("WhatsApp gateway messages need a number or group id")
    base = credentials.base_url.strip().rstrip("/")
    url = f"{base}/message/sendText/{credentials.instance}"
    payload = {"number": target, "textMessage": {"text": message}}
    return await _post_json(client, self.name, url, json=payload, headers={"apikey": credentials.api_token})
