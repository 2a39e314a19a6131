from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from app.logs import get_logger
from app.notifications.composer import NotificationComposer
from app.notifications.dispatcher import MailDispatcher
from app.notifications.mentions import extract_mentions, resolve_mentioned_users
from app.notifications.types import AssignmentContext, EmailMessage, MentionResult, NotificationContext, ResolvedUser

logger = get_logger("app.notifications.pipeline")


@dataclass(frozen=True)
class NotificationPolicy:
  # notify_self: deliver mention/assignment mail when the actor is the recipient.
  # dedupe_assignee_mention: a write that assigns a task and mentions the assignee sends only the assignment mail.
  notify_self: bool = False
  dedupe_assignee_mention: bool = False


class MentionNotifier:
  def __init__(self, *, composer: NotificationComposer, dispatcher: MailDispatcher, policy: NotificationPolicy | None = None) -> None:
    self.composer = composer
    self.dispatcher = dispatcher
    self.policy = policy or NotificationPolicy()

  async def _deliver(self, user: ResolvedUser, build) -> bool:
    try:
      msg: EmailMessage = build()
    except Exception as e:
      logger.error("Failed to compose email for %s: %s", user.email, e)
      return False
    return await self.dispatcher.send(msg)

  async def process_mentions(
    self,
    db: AsyncSession,
    content: str | None,
    ctx: NotificationContext,
    *,
    actor_id: int | None = None,
    exclude_user_ids: Iterable[int] = (),
  ) -> MentionResult:
    logger.info("Processing mentions: type=%s title=%r project=%r by=%r", ctx.entity_type.value, ctx.title, ctx.project_name, ctx.actor_name)
    candidates = extract_mentions(content)
    if not candidates:
      logger.info("No mentions found")
      return MentionResult()

    users = await resolve_mentioned_users(db, candidates)
    skip = set(exclude_user_ids)
    if actor_id is not None and not self.policy.notify_self:
      skip.add(actor_id)
    users = [u for u in users if u.id not in skip]
    if not users:
      logger.info("No mentioned users to notify")
      return MentionResult()

    sent = 0
    recipients: list[str] = []
    for user in users:
      ok = await self._deliver(user, lambda u=user: self.composer.compose_mention(u, ctx))
      if ok:
        sent += 1
        recipients.append(user.email)
      else:
        logger.error("Failed to send mention email to %s", user.email)

    logger.info("Mention emails sent: %d/%d", sent, len(users))
    return MentionResult(resolved=len(users), sent=sent, recipients=recipients)

  async def notify_assignment(self, user: ResolvedUser, ctx: AssignmentContext, *, actor_id: int | None = None) -> bool:
    if actor_id is not None and actor_id == user.id and not self.policy.notify_self:
      logger.info("Skipping assignment email to %s (self-assignment)", user.email)
      return False
    logger.info("Sending assignment email to %s: task=%r by=%r", user.email, ctx.title, ctx.actor_name)
    ok = await self._deliver(user, lambda: self.composer.compose_assignment(user, ctx))
    if not ok:
      logger.error("Failed to send assignment email to %s", user.email)
    return ok
