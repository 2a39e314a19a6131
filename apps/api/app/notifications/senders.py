from __future__ import annotations

import asyncio
import re
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from email.utils import formataddr
from typing import Any, Protocol

from app.config import Settings
from app.logs import get_logger

logger = get_logger("app.notifications.senders")

_TAG_RE = re.compile(r"<[^>]*>")


@dataclass(frozen=True)
class OutboundMail:
  to: str
  subject: str
  html: str
  reply_to: str


class MailSender(Protocol):
  async def send(self, mail: OutboundMail) -> dict[str, Any]: ...


class LocalMailSender:
  async def send(self, mail: OutboundMail) -> dict[str, Any]:
    logger.info("local mail: to=%s subject=%r (%d bytes)", mail.to, mail.subject, len(mail.html))
    return {"success": True, "message": "Email sent successfully"}


class SmtpMailSender:
  def __init__(self, *, host: str | None, port: int, username: str | None, password: str | None, from_addr: str | None, from_name: str, starttls: bool) -> None:
    self.host = (host or "").strip()
    self.port = int(port or 587)
    self.username = (username or "").strip()
    self.password = password or ""
    self.from_addr = (from_addr or "").strip()
    self.from_name = from_name
    self.starttls = bool(starttls)

  async def send(self, mail: OutboundMail) -> dict[str, Any]:
    if not self.host or not self.from_addr:
      return {"success": False, "message": "SMTP sender missing host/from"}

    def _send_sync() -> None:
      m = MimeMessage()
      m["Subject"] = mail.subject
      m["From"] = formataddr((self.from_name, self.from_addr))
      m["To"] = mail.to
      m["Reply-To"] = mail.reply_to
      m.set_content(_TAG_RE.sub("", mail.html))
      m.add_alternative(mail.html, subtype="html")
      with smtplib.SMTP(host=self.host, port=self.port, timeout=15) as s:
        s.ehlo()
        if self.starttls:
          s.starttls()
          s.ehlo()
        if self.username and self.password:
          s.login(self.username, self.password)
        s.send_message(m)

    try:
      await asyncio.to_thread(_send_sync)
    except (smtplib.SMTPException, OSError) as e:
      logger.error("Mail error: %s", e)
      return {"success": False, "message": f"Mail error: {e}"}
    return {"success": True, "message": "Email sent successfully"}


def sender_for(cfg: Settings) -> MailSender:
  if cfg.mail_provider == "smtp":
    return SmtpMailSender(
      host=cfg.smtp_host,
      port=cfg.smtp_port,
      username=cfg.smtp_username,
      password=cfg.smtp_password,
      from_addr=cfg.smtp_from,
      from_name=cfg.smtp_from_name,
      starttls=cfg.smtp_starttls,
    )
  return LocalMailSender()
