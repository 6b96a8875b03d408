from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://agencyhub:agencyhub@db:5432/agencyhub"
  fernet_key: str = "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA="
  internal_api_key: str | None = None
  app_version: str = "v2026-10-19"
  build_sha: str = "dev"
  api_docs_enabled: bool = False

  log_level: str = "INFO"
  log_format: str = "json"  # json | console

  cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):5173$"
  trusted_hosts: str = "localhost,127.0.0.1,api,test"

  site_url: str | None = None
  approval_token_ttl_days: int = 7
  dashboard_token_ttl_days: int = 30

  stage_pending: str = "Para aprovação"
  stage_in_production: str = "Em Produção"
  stage_approved: str = "Aprovado"
  stage_needs_edit: str = "Editar"

  deadline_timezone: str = "America/Sao_Paulo"
  deadline_scan_enabled: bool = False
  deadline_scan_interval_seconds: int = 300

  notification_timeout_seconds: float = 5.0
  default_country_code: str = "55"

  # Defaults for the messaging backends; values saved through /settings/messaging win.
  telegram_bot_token: str | None = None
  telegram_chat_id: str | None = None
  telegram_deadlines_bot_token: str | None = None
  telegram_deadlines_chat_id: str | None = None
  whatsapp_api_token: str | None = None
  whatsapp_phone_number_id: str | None = None
  whatsapp_api_version: str = "v19.0"
  evolution_api_url: str | None = None
  evolution_api_token: str | None = None
  evolution_api_instance: str | None = None

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]


settings = Settings()
