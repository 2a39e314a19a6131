from __future__ import annotations

import httpx

from app.logs import get_logger
from app.notifications.types import EmailMessage

logger = get_logger("app.notifications.dispatcher")


class MailDispatcher:
  """
  Hands composed messages to the mail-sending service over HTTP.

  `send` never raises: transport errors, non-2xx responses, unreadable bodies
  and `{"success": false}` payloads all come back as False.
  """

  def __init__(
    self,
    *,
    endpoint: str,
    timeout: float = 15.0,
    secret: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
  ) -> None:
    self.endpoint = endpoint
    self.timeout = timeout
    self._secret = (secret or "").strip() or None
    self._transport = transport

  async def send(self, message: EmailMessage) -> bool:
    logger.info("Sending email to %s via %s (subject=%r)", message.to, self.endpoint, message.subject)
    headers = {"X-Mail-Secret": self._secret} if self._secret else None
    try:
      async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
        r = await client.post(self.endpoint, json=message.payload(), headers=headers)
    except httpx.HTTPError as e:
      logger.error("Mail transport error for %s: %s", message.to, e)
      return False

    if not r.is_success:
      logger.error("Mail request for %s failed with HTTP %s", message.to, r.status_code)
      return False

    try:
      data = r.json()
    except ValueError:
      logger.error("Mail service returned a non-JSON body for %s: %s", message.to, r.text[:500])
      return False

    ok = isinstance(data, dict) and data.get("success") is True
    if ok:
      logger.info("Email to %s: SUCCESS", message.to)
    else:
      detail = data.get("message") if isinstance(data, dict) else None
      logger.error("Email to %s: FAILED%s", message.to, f" ({detail})" if detail else "")
    return ok
