"""
Structured logging.

Call `setup_logging()` once at process start, then `get_logger(__name__)` per module.
Extra context is passed as keyword arguments: `logger.info("deadline.alert.sent", task_id=...)`.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def setup_logging(level: str = "INFO", format_type: str = "json") -> None:
  shared_processors: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
  ]

  structlog.configure(
    processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
  )

  if format_type == "console":
    renderer: Any = structlog.dev.ConsoleRenderer(colors=False)
  else:
    renderer = structlog.processors.JSONRenderer()

  handler = logging.StreamHandler(sys.stdout)
  handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors))

  root = logging.getLogger()
  for h in root.handlers[:]:
    root.removeHandler(h)
  root.addHandler(handler)
  root.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))

  logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
  logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
  logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
  return structlog.get_logger(name)
