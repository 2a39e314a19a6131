from __future__ import annotations

import secrets

from fastapi import APIRouter, Header, HTTPException, status

from app.config import settings
from app.logs import get_logger
from app.notifications.senders import OutboundMail, sender_for
from app.schemas import MailSendIn, MailSendOut

router = APIRouter(prefix="/mail", tags=["mail"])
logger = get_logger("app.notifications.mail")

DEFAULT_SUBJECT = "No Subject"


def _check_mail_secret(provided: str | None) -> None:
  expected = (settings.mail_secret or "").strip()
  if not expected:
    return
  if not provided or not secrets.compare_digest(provided.strip(), expected):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid mail secret")


@router.post("/send", response_model=MailSendOut)
async def send_mail(payload: MailSendIn, x_mail_secret: str | None = Header(default=None)) -> MailSendOut:
  """
  Mail-sending endpoint used by the dispatcher.

  Answers 200 for every authorized request; callers read `success` to learn
  whether the mail went out. With `MAIL_SECRET` set, a missing or wrong
  `X-Mail-Secret` header is rejected with 401.
  """
  _check_mail_secret(x_mail_secret)
  to = payload.to.strip()
  if not to or not payload.message:
    return MailSendOut(success=False, message="Missing required fields: to, message")
  if "@" not in to:
    return MailSendOut(success=False, message="Invalid recipient address")

  mail = OutboundMail(
    to=to,
    subject=(payload.subject or "").strip() or DEFAULT_SUBJECT,
    html=payload.message,
    reply_to=(payload.replyTo or "").strip() or to,
  )
  result = await sender_for(settings).send(mail)
  if not result.get("success"):
    logger.error("Mail to %s failed: %s", to, result.get("message"))
  return MailSendOut(success=bool(result.get("success")), message=str(result.get("message") or ""))
