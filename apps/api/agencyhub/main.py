from __future__ import annotations

import asyncio

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.trustedhost import TrustedHostMiddleware

from agencyhub.config import settings
from agencyhub.db import SessionLocal
from agencyhub.deadlines.service import scan_deadlines
from agencyhub.errors import AppError, ErrorKind
from agencyhub.log import get_logger, setup_logging
from agencyhub.notifications.relay import NotificationRelay
from agencyhub.notifications.store import load_relay_config
from agencyhub.routers.deadlines import router as deadlines_router
from agencyhub.routers.links import router as links_router
from agencyhub.routers.notifications import router as notifications_router
from agencyhub.routers.public import router as public_router
from agencyhub.routers.settings import router as settings_router

setup_logging(settings.log_level, settings.log_format)
logger = get_logger(__name__)

app = FastAPI(
  title="AgencyHub API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(AppError)
async def _app_error_handler(_, exc: AppError) -> JSONResponse:
  if exc.kind is ErrorKind.UPSTREAM_ERROR:
    logger.warning("request.upstream_error", error=exc.message, details=exc.details)
  return JSONResponse(status_code=400, content={"error": exc.message, "kind": exc.kind.value})


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_, exc: RequestValidationError) -> JSONResponse:
  errors = exc.errors()
  first = errors[0] if errors else {}
  loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
  msg = first.get("msg", "Invalid request")
  return JSONResponse(
    status_code=400,
    content={"error": f"{loc}: {msg}" if loc else msg, "kind": ErrorKind.VALIDATION_ERROR.value},
  )


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(public_router)
app.include_router(deadlines_router)
app.include_router(notifications_router)
app.include_router(links_router)
app.include_router(settings_router)


@app.middleware("http")
async def _security_headers_middleware(request, call_next):
  response = await call_next(request)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


_deadline_loop_task: asyncio.Task | None = None


def _is_test_db() -> bool:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  return "test" in db_name


async def _deadline_scan_loop() -> None:
  while True:
    await asyncio.sleep(max(30, int(settings.deadline_scan_interval_seconds)))
    async with SessionLocal() as db:
      try:
        relay = NotificationRelay(await load_relay_config(db))
        result = await scan_deadlines(db, relay)
        logger.info("deadline.scan.done", sent=result.sent, skipped=result.skipped, failed=result.failed)
      except Exception:
        # Keep polling; the next tick retries unmarked tasks.
        logger.exception("deadline.scan.error")


@app.on_event("startup")
async def _startup() -> None:
  global _deadline_loop_task
  if _is_test_db():
    return
  if not settings.fernet_key or settings.fernet_key.strip() in {"AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA=", "REPLACE_WITH_FERNET_KEY"}:
    raise RuntimeError("FERNET_KEY is required and must not be a placeholder")
  if not (settings.internal_api_key or "").strip():
    logger.warning("startup.internal_key_missing", detail="internal endpoints will reject every request")
  if settings.deadline_scan_enabled and _deadline_loop_task is None:
    _deadline_loop_task = asyncio.create_task(_deadline_scan_loop())
