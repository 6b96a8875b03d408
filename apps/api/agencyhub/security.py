from __future__ import annotations

import base64
import json
import secrets
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from agencyhub.config import settings
from agencyhub.errors import AppError, ErrorKind


def _fernet() -> Fernet:
  key = settings.fernet_key
  # accept raw strings as well as urlsafe base64 keys
  try:
    return Fernet(key.encode("utf-8"))
  except ValueError:
    b = base64.urlsafe_b64encode(key.encode("utf-8").ljust(32, b"\0")[:32])
    return Fernet(b)


def encrypt_secret(value: str) -> str:
  return _fernet().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_secret(value: str) -> str:
  return _fernet().decrypt(value.encode("utf-8")).decode("utf-8")


def encrypt_json(data: dict[str, Any]) -> str:
  return encrypt_secret(json.dumps(data))


def decrypt_json(value: str | None) -> dict[str, Any]:
  if not value:
    return {}
  try:
    raw = decrypt_secret(value)
  except InvalidToken as exc:
    raise AppError(
      ErrorKind.CONFIG_MISSING,
      "Stored messaging credentials cannot be decrypted with the current key; save them again.",
    ) from exc
  obj = json.loads(raw)
  return obj if isinstance(obj, dict) else {}


def new_public_token() -> str:
  return secrets.token_urlsafe(32)


def secret_hint(value: str | None) -> str:
  s = (value or "").strip()
  if not s:
    return ""
  if len(s) <= 6:
    return "****"
  return f"…{s[-4:]}"


def internal_key_matches(provided: str | None) -> bool:
  expected = (settings.internal_api_key or "").strip()
  if not expected or not provided:
    return False
  return secrets.compare_digest(provided.strip().encode("utf-8"), expected.encode("utf-8"))
