from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
  INVALID_TOKEN = "INVALID_TOKEN"
  MISSING_COMMENT = "MISSING_COMMENT"
  TASK_NOT_FOUND = "TASK_NOT_FOUND"
  COLUMN_NOT_FOUND = "COLUMN_NOT_FOUND"
  NOT_FOUND = "NOT_FOUND"
  CONFIG_MISSING = "CONFIG_MISSING"
  UPSTREAM_ERROR = "UPSTREAM_ERROR"
  VALIDATION_ERROR = "VALIDATION_ERROR"


class AppError(RuntimeError):
  """Domain failure surfaced to callers as `{"error": message, "kind": kind}`."""

  def __init__(self, kind: ErrorKind, message: str, *, details: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.kind = kind
    self.message = message
    self.details = details or {}


class NotificationError(AppError):
  def __init__(
    self,
    *,
    provider: str,
    message: str,
    status_code: int | None = None,
    details: dict[str, Any] | None = None,
  ) -> None:
    super().__init__(ErrorKind.UPSTREAM_ERROR, message, details=details)
    self.provider = provider
    self.status_code = status_code
