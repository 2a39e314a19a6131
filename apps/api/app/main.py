from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, OperationalError

from app.config import settings
from app.logs import attach_file_sink, get_logger
from app.routers.activity import router as activity_router
from app.routers.auth import router as auth_router
from app.routers.cron import router as cron_router
from app.routers.mail import router as mail_router
from app.routers.projects import router as projects_router
from app.routers.stats import router as stats_router
from app.routers.tasks import router as tasks_router
from app.routers.users import router as users_router

logger = get_logger("app.main")

app = FastAPI(title="TaskFlow API", version=settings.app_version)


@app.exception_handler(OperationalError)
@app.exception_handler(DBAPIError)
async def _db_error_handler(_, exc: DBAPIError) -> JSONResponse:
  logger.error("Database error: %s", exc)
  return JSONResponse(status_code=500, content={"success": False, "error": "Database connection failed"})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(projects_router)
app.include_router(tasks_router)
app.include_router(activity_router)
app.include_router(stats_router)
app.include_router(mail_router)
app.include_router(cron_router)


@app.middleware("http")
async def _security_headers_middleware(request, call_next):
  response = await call_next(request)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version}


@app.on_event("startup")
async def _startup() -> None:
  attach_file_sink("app.notifications", settings.notification_log_file)
  attach_file_sink("app.digest", settings.digest_log_file)
