from __future__ import annotations

import json
import os
import sys
import tempfile
from dataclasses import dataclass, field
from datetime import date, time
from pathlib import Path
from typing import Any

import httpx
import pytest
from cryptography.fernet import Fernet
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

# Settings are read at import time; point them at a throwaway SQLite test database first.
_TMP = Path(tempfile.mkdtemp(prefix="agencyhub-"))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP / 'agencyhub_test.db'}")
os.environ.setdefault("FERNET_KEY", Fernet.generate_key().decode("utf-8"))
os.environ.setdefault("INTERNAL_API_KEY", "test-internal-key")
os.environ.setdefault("LOG_FORMAT", "console")

from agencyhub.approvals.columns import WorkflowStages
from agencyhub.config import settings
from agencyhub.db import SessionLocal, engine
from agencyhub.deps import get_db, get_relay
from agencyhub.main import app
from agencyhub.models import Base, Column, Group, Task, Workspace
from agencyhub.notifications.relay import NotificationRelay
from agencyhub.notifications.store import load_relay_config

INTERNAL_HEADERS = {"X-Internal-Key": "test-internal-key"}


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  await engine.dispose()


@pytest.fixture
async def clean_db() -> None:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  if "test" not in db_name:
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. agencyhub_test)."
    )
  await _reset_db()
  yield
  await engine.dispose()


@dataclass
class FakeProviders:
  """Stands in for Telegram / WhatsApp endpoints; replies per host."""

  requests: list[httpx.Request] = field(default_factory=list)
  responses: dict[str, tuple[int, dict[str, Any]]] = field(default_factory=dict)

  def handler(self, request: httpx.Request) -> httpx.Response:
    self.requests.append(request)
    status, body = self.responses.get(request.url.host, (200, {"ok": True}))
    return httpx.Response(status, json=body)

  @property
  def transport(self) -> httpx.MockTransport:
    return httpx.MockTransport(self.handler)

  def fail(self, host: str, status: int, body: dict[str, Any]) -> None:
    self.responses[host] = (status, body)

  def bodies(self) -> list[dict[str, Any]]:
    return [json.loads(r.content) for r in self.requests]

  def relay_for(self, config) -> NotificationRelay:
    return NotificationRelay(config, transport=self.transport)


@pytest.fixture
def providers() -> FakeProviders:
  fake = FakeProviders()

  async def _relay(db: AsyncSession = Depends(get_db)) -> NotificationRelay:
    return fake.relay_for(await load_relay_config(db))

  app.dependency_overrides[get_relay] = _relay
  yield fake
  app.dependency_overrides.pop(get_relay, None)


@pytest.fixture
async def client(clean_db, providers) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


@pytest.fixture
async def db(clean_db) -> AsyncSession:
  async with SessionLocal() as session:
    yield session


@pytest.fixture
def telegram_configured(monkeypatch) -> None:
  monkeypatch.setattr(settings, "telegram_bot_token", "123:alerts")
  monkeypatch.setattr(settings, "telegram_chat_id", "-1001")


async def seed_board(
  *,
  workspace_name: str = "Acme",
  whatsapp_number: str | None = None,
  whatsapp_group_id: str | None = None,
  columns: list[str] | None = None,
) -> dict[str, Any]:
  """Workspace with one group and its stage columns; returns ids keyed by column title."""
  titles = columns if columns is not None else WorkflowStages().ordered()
  async with SessionLocal() as session:
    ws = Workspace(name=workspace_name, whatsapp_number=whatsapp_number, whatsapp_group_id=whatsapp_group_id)
    session.add(ws)
    await session.flush()
    group = Group(workspace_id=ws.id, name="Posts")
    session.add(group)
    await session.flush()
    cols: dict[str, str] = {}
    for i, title in enumerate(titles):
      c = Column(group_id=group.id, title=title, position=i)
      session.add(c)
      await session.flush()
      cols[title] = c.id
    await session.commit()
    return {"workspace_id": ws.id, "group_id": group.id, "columns": cols}


async def add_task(
  board: dict[str, Any],
  column_title: str,
  *,
  title: str = "Post de lançamento",
  position: int = 0,
  due_date: date | None = None,
  due_time: time | None = None,
  **extra: Any,
) -> str:
  async with SessionLocal() as session:
    t = Task(
      group_id=board["group_id"],
      column_id=board["columns"][column_title],
      title=title,
      position=position,
      due_date=due_date,
      due_time=due_time,
      **extra,
    )
    session.add(t)
    await session.commit()
    return t.id
