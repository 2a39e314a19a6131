from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db import SessionLocal
from app.models import User
from app.notifications.composer import NotificationComposer
from app.notifications.dispatcher import MailDispatcher
from app.notifications.pipeline import MentionNotifier, NotificationPolicy
from app.security import InvalidTokenError, verify_access_token


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
  auth = request.headers.get("authorization")
  if not auth or not auth.lower().startswith("bearer "):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
  token = auth.split(" ", 1)[1].strip()
  try:
    claims = verify_access_token(token)
  except InvalidTokenError:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

  res = await db.execute(select(User).where(User.id == int(claims["id"])))
  u = res.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  if not bool(u.is_active):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User disabled")
  return u


def require_admin(user: User) -> None:
  if user.role != "admin":
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin required")


def get_composer() -> NotificationComposer:
  return NotificationComposer(locale=settings.mail_locale, app_name=settings.app_name)


def get_dispatcher() -> MailDispatcher:
  return MailDispatcher(endpoint=settings.mail_endpoint_url, timeout=settings.mail_timeout_seconds, secret=settings.mail_secret)


def get_notifier(
  composer: NotificationComposer = Depends(get_composer),
  dispatcher: MailDispatcher = Depends(get_dispatcher),
) -> MentionNotifier:
  policy = NotificationPolicy(notify_self=settings.notify_self, dedupe_assignee_mention=settings.dedupe_assignee_mention)
  return MentionNotifier(composer=composer, dispatcher=dispatcher, policy=policy)
