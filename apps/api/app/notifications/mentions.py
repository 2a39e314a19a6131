"""
@mention extraction and resolution.

Content comes from the rich-text editor as serialized HTML. Mentions inserted
through the picker carry `data-user-id="<id>"`; anything typed by hand is
only visible as a plain `@handle` token. Both are scanned with regexes rather
than an HTML parser, so arbitrary or broken markup never raises.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.logs import get_logger
from app.models import User
from app.notifications.types import MentionCandidate, ResolvedUser, UserIdMention, UsernameMention

logger = get_logger("app.notifications.mentions")

_USER_ID_ATTR_RE = re.compile(r"""data-user-id=["'](\d+)["']""")
_HANDLE_RE = re.compile(r"@(\w+)")


def _unique(values: Iterable) -> list:
  seen: set = set()
  out: list = []
  for v in values:
    if v in seen:
      continue
    seen.add(v)
    out.append(v)
  return out


def extract_mentions(content: str | None) -> list[MentionCandidate]:
  if not content:
    return []

  ids = _unique(int(m) for m in _USER_ID_ATTR_RE.findall(content))
  if ids:
    logger.info("Found user IDs from data-user-id: %s", ", ".join(str(i) for i in ids))
    return [UserIdMention(user_id=i) for i in ids]

  handles = _unique(_HANDLE_RE.findall(content))
  if handles:
    logger.info("Found usernames: %s", ", ".join(handles))
  return [UsernameMention(username=h) for h in handles]


def _resolved(u: User) -> ResolvedUser:
  return ResolvedUser(id=u.id, email=u.email, display_name=(u.full_name or u.username), username=u.username)


async def resolve_mentioned_users(db: AsyncSession, candidates: Sequence[MentionCandidate]) -> list[ResolvedUser]:
  """
  Look up mentioned users with a single query.

  Candidates that do not match a user are dropped. Results follow candidate order.
  """
  if not candidates:
    return []

  if all(isinstance(c, UserIdMention) for c in candidates):
    ids = [c.user_id for c in candidates]
    res = await db.execute(select(User).where(User.id.in_(ids)))
    by_key = {u.id: u for u in res.scalars().all()}
    ordered = [by_key[i] for i in ids if i in by_key]
    logger.info("Found %d users by ID", len(ordered))
  elif all(isinstance(c, UsernameMention) for c in candidates):
    names = [c.username for c in candidates]
    res = await db.execute(select(User).where(User.username.in_(names)))
    by_key = {u.username: u for u in res.scalars().all()}
    ordered = [by_key[n] for n in names if n in by_key]
    logger.info("Found %d users by username", len(ordered))
  else:
    raise ValueError("mention candidates must be all user IDs or all usernames")

  return [_resolved(u) for u in ordered]
