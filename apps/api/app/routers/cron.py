from __future__ import annotations

import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.deps import get_composer, get_db, get_dispatcher
from app.digest.service import run_daily_digest
from app.notifications.composer import NotificationComposer
from app.notifications.dispatcher import MailDispatcher

router = APIRouter(prefix="/cron", tags=["cron"])


def _check_cron_secret(provided: str | None) -> None:
  expected = (settings.cron_secret or "").strip()
  if not expected:
    return
  if not provided or not secrets.compare_digest(provided.strip(), expected):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid cron secret")


@router.get("/daily-digest")
async def daily_digest(
  test: bool = False,
  user_id: int | None = Query(default=None),
  x_cron_secret: str | None = Header(default=None),
  db: AsyncSession = Depends(get_db),
  composer: NotificationComposer = Depends(get_composer),
  dispatcher: MailDispatcher = Depends(get_dispatcher),
) -> dict:
  _check_cron_secret(x_cron_secret)
  summary = await run_daily_digest(
    db,
    composer=composer,
    dispatcher=dispatcher,
    user_id=user_id,
    test_mode=test,
    lock=settings.digest_lock_enabled,
    tz_name=settings.digest_timezone,
  )
  return {"success": True, "summary": summary.as_dict()}
