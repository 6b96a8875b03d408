from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from agencyhub.config import settings
from agencyhub.db import SessionLocal
from agencyhub.models import AppSettings, ApprovalToken

from conftest import INTERNAL_HEADERS, seed_board


async def _set_site_url(client: AsyncClient, url: str = "https://app.agencia.com.br/") -> None:
  res = await client.put("/settings/messaging", json={"siteUrl": url}, headers=INTERNAL_HEADERS)
  assert res.status_code == 200, res.text


@pytest.mark.anyio
async def test_internal_endpoints_reject_missing_or_wrong_key(client: AsyncClient) -> None:
  calls = [
    ("get", "/settings/messaging", None),
    ("put", "/settings/messaging", {}),
    ("post", "/approval-links", {"groupId": "g", "workspaceId": "w"}),
    ("post", "/dashboard-links", {"groupId": "g", "workspaceId": "w"}),
    ("post", "/notifications/telegram", {"message": "oi"}),
    ("post", "/deadlines/check", None),
  ]
  for method, path, body in calls:
    for headers in ({}, {"X-Internal-Key": "wrong"}, {"Authorization": "Bearer wrong"}):
      res = await client.request(method.upper(), path, json=body, headers=headers)
      assert res.status_code == 401, f"{method} {path}: {res.text}"

  ok = await client.get("/settings/messaging", headers={"Authorization": "Bearer test-internal-key"})
  assert ok.status_code == 200, ok.text


@pytest.mark.anyio
async def test_messaging_settings_are_write_only(client: AsyncClient) -> None:
  res = await client.put(
    "/settings/messaging",
    json={
      "siteUrl": "https://app.agencia.com.br/",
      "telegramBotToken": "123456:ABCDEF-secret",
      "telegramChatId": "-100200300",
      "evolutionApiUrl": "https://evo.example.com",
      "evolutionApiToken": "evo-key-0001",
      "evolutionApiInstance": "agency",
    },
    headers=INTERNAL_HEADERS,
  )
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["siteUrl"] == "https://app.agencia.com.br"
  assert body["hints"]["telegram_bot_token"] == "…cret"
  assert body["hints"]["whatsapp_api_token"] == ""
  assert "123456:ABCDEF-secret" not in res.text
  assert set(body["configuredBackends"]) == {"telegram", "whatsapp_gateway"}
  assert body["deadlineChannelConfigured"] is False

  async with SessionLocal() as db:
    row = (await db.execute(select(AppSettings))).scalar_one()
  assert "ABCDEF" not in (row.credentials_encrypted or "")

  # Omitted fields are kept, empty strings clear.
  res = await client.put("/settings/messaging", json={"evolutionApiToken": ""}, headers=INTERNAL_HEADERS)
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["configuredBackends"] == ["telegram"]
  assert body["siteUrl"] == "https://app.agencia.com.br"


@pytest.mark.anyio
async def test_saved_settings_drive_notification_endpoints(client: AsyncClient, providers) -> None:
  res = await client.post("/notifications/telegram", json={"message": "Teste"}, headers=INTERNAL_HEADERS)
  assert res.status_code == 200, res.text
  assert res.json() == {"message": "Configurações do Telegram não encontradas.", "status": "skipped", "backend": "telegram"}

  await client.put(
    "/settings/messaging",
    json={"telegramBotToken": "123:alerts", "telegramChatId": "-1001"},
    headers=INTERNAL_HEADERS,
  )
  res = await client.post("/notifications/telegram", json={"message": "Teste"}, headers=INTERNAL_HEADERS)
  assert res.status_code == 200, res.text
  assert res.json()["status"] == "sent"
  assert providers.bodies() == [{"chat_id": "-1001", "text": "Teste", "parse_mode": "Markdown"}]


@pytest.mark.anyio
async def test_notification_endpoint_surfaces_provider_errors(client: AsyncClient, providers, monkeypatch) -> None:
  monkeypatch.setattr(settings, "whatsapp_api_token", "EAAG-token")
  monkeypatch.setattr(settings, "whatsapp_phone_number_id", "10987")
  providers.fail("graph.facebook.com", 400, {"error": {"message": "Recipient phone number not in allowed list"}})

  res = await client.post("/notifications/whatsapp", json={"to": "11999998888", "message": "Oi"}, headers=INTERNAL_HEADERS)
  assert res.status_code == 400, res.text
  assert res.json() == {"error": "Recipient phone number not in allowed list", "kind": "UPSTREAM_ERROR"}

  res = await client.post("/notifications/whatsapp", json={"message": "Oi"}, headers=INTERNAL_HEADERS)
  assert res.status_code == 400, res.text
  assert res.json()["kind"] == "VALIDATION_ERROR"

  res = await client.post("/notifications/whatsapp", json={"to": "11999998888"}, headers=INTERNAL_HEADERS)
  assert res.status_code == 400, res.text
  assert res.json()["kind"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_gateway_endpoint_prefers_group_id(client: AsyncClient, providers, monkeypatch) -> None:
  monkeypatch.setattr(settings, "evolution_api_url", "https://evo.example.com")
  monkeypatch.setattr(settings, "evolution_api_token", "evo-key")
  monkeypatch.setattr(settings, "evolution_api_instance", "agency")

  res = await client.post(
    "/notifications/whatsapp-gateway",
    json={"to": "11999998888", "whatsappGroupId": "120363041234567890@g.us", "message": "Oi"},
    headers=INTERNAL_HEADERS,
  )
  assert res.status_code == 200, res.text
  assert res.json()["message"] == "Mensagem WhatsApp enviada com sucesso via Evolution API!"
  assert providers.bodies() == [{"number": "120363041234567890@g.us", "textMessage": {"text": "Oi"}}]


@pytest.mark.anyio
async def test_approval_link_requires_site_url(client: AsyncClient) -> None:
  board = await seed_board()
  res = await client.post(
    "/approval-links", json={"groupId": board["group_id"], "workspaceId": board["workspace_id"]}, headers=INTERNAL_HEADERS
  )
  assert res.status_code == 400, res.text
  assert res.json()["kind"] == "CONFIG_MISSING"


@pytest.mark.anyio
async def test_approval_link_copy_only_without_whatsapp(client: AsyncClient, providers) -> None:
  await _set_site_url(client)
  board = await seed_board(workspace_name="Padaria Sol", whatsapp_number="11999998888")

  res = await client.post(
    "/approval-links", json={"groupId": board["group_id"], "workspaceId": board["workspace_id"]}, headers=INTERNAL_HEADERS
  )
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["url"] == f"https://app.agencia.com.br/approve/{body['token']}"
  assert body["message"] == (
    "Olá! Os posts para o cliente *Padaria Sol* estão prontos para aprovação.\n\n"
    f"Por favor, acesse o link a seguir para revisar:\n{body['url']}"
  )
  assert body["delivery"]["status"] == "copy_only"
  assert providers.requests == []

  expires = datetime.fromisoformat(body["expiresAt"].replace("Z", "+00:00"))
  assert timedelta(days=6, hours=23) < expires - datetime.now(timezone.utc) <= timedelta(days=7)

  # The new link works on the public endpoint.
  listed = await client.post("/public/approval/tasks", json={"token": body["token"]})
  assert listed.status_code == 200, listed.text


@pytest.mark.anyio
async def test_approval_link_sent_over_whatsapp_business(client: AsyncClient, providers, monkeypatch) -> None:
  monkeypatch.setattr(settings, "whatsapp_api_token", "EAAG-token")
  monkeypatch.setattr(settings, "whatsapp_phone_number_id", "10987")
  await _set_site_url(client)
  board = await seed_board(workspace_name="Padaria Sol", whatsapp_number="(11) 99999-8888")

  res = await client.post(
    "/approval-links", json={"groupId": board["group_id"], "workspaceId": board["workspace_id"]}, headers=INTERNAL_HEADERS
  )
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["delivery"]["status"] == "sent"
  assert body["delivery"]["backend"] == "whatsapp_business"
  sent = providers.bodies()[0]
  assert sent["to"] == "5511999998888"
  assert sent["text"]["body"] == body["message"]


@pytest.mark.anyio
async def test_failed_link_delivery_keeps_the_link(client: AsyncClient, providers, monkeypatch) -> None:
  monkeypatch.setattr(settings, "evolution_api_url", "https://evo.example.com")
  monkeypatch.setattr(settings, "evolution_api_token", "evo-key")
  monkeypatch.setattr(settings, "evolution_api_instance", "agency")
  providers.fail("evo.example.com", 500, {"message": "instance disconnected"})
  await _set_site_url(client)
  board = await seed_board(whatsapp_group_id="120363041234567890@g.us")

  res = await client.post(
    "/approval-links", json={"groupId": board["group_id"], "workspaceId": board["workspace_id"]}, headers=INTERNAL_HEADERS
  )
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["delivery"]["status"] == "failed"
  assert body["delivery"]["detail"]["error"] == "instance disconnected"
  assert providers.bodies()[0]["number"] == "120363041234567890@g.us"

  async with SessionLocal() as db:
    row = (await db.execute(select(ApprovalToken).where(ApprovalToken.token == body["token"]))).scalar_one()
  assert row.is_active is True


@pytest.mark.anyio
async def test_link_for_foreign_group_is_not_found(client: AsyncClient) -> None:
  await _set_site_url(client)
  board = await seed_board()
  other = await seed_board(workspace_name="Outro")
  res = await client.post(
    "/approval-links", json={"groupId": other["group_id"], "workspaceId": board["workspace_id"]}, headers=INTERNAL_HEADERS
  )
  assert res.status_code == 400, res.text
  assert res.json()["kind"] == "NOT_FOUND"


@pytest.mark.anyio
async def test_deactivated_links_stop_working(client: AsyncClient) -> None:
  await _set_site_url(client)
  board = await seed_board()
  ids = {"groupId": board["group_id"], "workspaceId": board["workspace_id"]}

  approval = (await client.post("/approval-links", json=ids, headers=INTERNAL_HEADERS)).json()
  dashboard = (await client.post("/dashboard-links", json=ids, headers=INTERNAL_HEADERS)).json()
  assert dashboard["url"] == f"https://app.agencia.com.br/client-dashboard/{dashboard['token']}"
  assert dashboard["delivery"]["status"] == "copy_only"

  res = await client.post(f"/approval-links/{approval['token']}/deactivate", headers=INTERNAL_HEADERS)
  assert res.status_code == 200, res.text
  assert res.json() == {"token": approval["token"], "isActive": False}
  res = await client.post(f"/dashboard-links/{dashboard['token']}/deactivate", headers=INTERNAL_HEADERS)
  assert res.status_code == 200, res.text

  res = await client.post("/public/approval/tasks", json={"token": approval["token"]})
  assert res.json() == {"error": "Link inválido ou expirado.", "kind": "INVALID_TOKEN"}
  res = await client.post("/public/dashboard", json={"token": dashboard["token"]})
  assert res.json() == {"error": "Link do dashboard inválido ou expirado.", "kind": "INVALID_TOKEN"}

  res = await client.post("/approval-links/unknown/deactivate", headers=INTERNAL_HEADERS)
  assert res.status_code == 400, res.text
  assert res.json()["kind"] == "NOT_FOUND"


@pytest.mark.anyio
async def test_malformed_gateway_url_does_not_fail_link_creation(client: AsyncClient, providers, monkeypatch) -> None:
  monkeypatch.setattr(settings, "evolution_api_url", "https://evo.example.com:abc")
  monkeypatch.setattr(settings, "evolution_api_token", "evo-key")
  monkeypatch.setattr(settings, "evolution_api_instance", "agency")
  await _set_site_url(client)
  board = await seed_board(whatsapp_number="11999998888")

  res = await client.post(
    "/approval-links", json={"groupId": board["group_id"], "workspaceId": board["workspace_id"]}, headers=INTERNAL_HEADERS
  )
  assert res.status_code == 200, res.text
  assert res.json()["delivery"]["status"] == "failed"
  assert providers.requests == []
