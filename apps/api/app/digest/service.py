from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.digest.buckets import DigestTaskItem, bucket_counts, bucket_tasks
from app.logs import get_logger
from app.models import DigestRun, Project, Task, User
from app.notifications.composer import NotificationComposer
from app.notifications.dispatcher import MailDispatcher
from app.notifications.types import ResolvedUser

logger = get_logger("app.digest")

PRIORITY_RANK = {"urgent": 4, "high": 3, "medium": 2, "low": 1}


@dataclass
class DigestSummary:
  user_id: int
  total_open_tasks: int
  counts_by_bucket: dict[str, int]
  sent: bool = False

  def as_dict(self) -> dict[str, Any]:
    return {"userId": self.user_id, "totalOpenTasks": self.total_open_tasks, "countsByBucket": dict(self.counts_by_bucket), "sent": self.sent}


@dataclass
class DigestRunSummary:
  users_processed: int = 0
  emails_sent: int = 0
  emails_failed: int = 0
  users_skipped: int = 0
  test_mode: bool = False
  already_ran: bool = False
  digests: list[DigestSummary] = field(default_factory=list)

  def as_dict(self) -> dict[str, Any]:
    return {
      "usersProcessed": self.users_processed,
      "emailsSent": self.emails_sent,
      "emailsFailed": self.emails_failed,
      "usersSkipped": self.users_skipped,
      "testMode": self.test_mode,
      "alreadyRan": self.already_ran,
      "digests": [d.as_dict() for d in self.digests],
    }


def today_in(tz_name: str | None) -> date:
  try:
    return datetime.now(ZoneInfo(tz_name or "UTC")).date()
  except ZoneInfoNotFoundError:
    logger.warning("Unknown digest timezone %r; using UTC", tz_name)
    return datetime.now(timezone.utc).date()


async def fetch_incomplete_tasks(db: AsyncSession, *, user_id: int, today: date) -> list[DigestTaskItem]:
  priority_rank = case(PRIORITY_RANK, value=Task.priority, else_=0)
  urgency = case(
    (Task.due_date.is_not(None) & (Task.due_date < today), 1),
    (Task.due_date == today, 2),
    (Task.priority == "urgent", 3),
    (Task.priority == "high", 4),
    else_=5,
  )
  res = await db.execute(
    select(Task, Project.name)
    .join(Project, Project.id == Task.project_id, isouter=True)
    .where(Task.assigned_to == user_id, Task.status != "done")
    .order_by(urgency.asc(), Task.due_date.asc().nulls_last(), priority_rank.desc(), Task.id.asc())
  )
  return [
    DigestTaskItem(id=t.id, title=t.title, status=t.status, priority=t.priority, due_date=t.due_date, project_name=project_name)
    for t, project_name in res.all()
  ]


async def _claim_run(db: AsyncSession, run_date: date) -> DigestRun | None:
  run = DigestRun(run_date=run_date)
  db.add(run)
  try:
    await db.commit()
  except IntegrityError:
    await db.rollback()
    return None
  return run


async def _release_run(db: AsyncSession, run_id: int) -> None:
  try:
    await db.rollback()
    await db.execute(delete(DigestRun).where(DigestRun.id == run_id))
    await db.commit()
  except SQLAlchemyError as e:
    logger.error("Could not release digest run %s: %s", run_id, e)
  else:
    logger.warning("Digest run %s aborted; claim released", run_id)


async def _send_digests(
  db: AsyncSession,
  summary: DigestRunSummary,
  *,
  composer: NotificationComposer,
  dispatcher: MailDispatcher,
  user_id: int | None,
  today: date,
) -> None:
  q = select(User).where(User.is_active.is_(True)).order_by(User.id.asc())
  if user_id is not None:
    q = q.where(User.id == user_id)
  users = (await db.execute(q)).scalars().all()
  summary.users_processed = len(users)
  logger.info("Found %d active user(s) to process", len(users))

  for u in users:
    logger.info("Processing user: %s (%s)", u.username, u.email)
    tasks = await fetch_incomplete_tasks(db, user_id=u.id, today=today)
    if not tasks:
      logger.info("User has no incomplete tasks, skipping")
      summary.users_skipped += 1
      continue

    buckets = bucket_tasks(tasks, today)
    digest = DigestSummary(user_id=u.id, total_open_tasks=len(tasks), counts_by_bucket=bucket_counts(buckets))
    logger.info("User has %d incomplete tasks: %s", len(tasks), digest.counts_by_bucket)

    recipient = ResolvedUser(id=u.id, email=u.email, display_name=(u.full_name or u.username), username=u.username)
    try:
      msg = composer.compose_digest(recipient, buckets, sent_at=datetime.now(timezone.utc))
      digest.sent = await dispatcher.send(msg)
    except Exception as e:
      logger.error("Failed to build digest for %s: %s", u.email, e)
      digest.sent = False

    if digest.sent:
      summary.emails_sent += 1
      logger.info("Sent digest to %s", u.email)
    else:
      summary.emails_failed += 1
      logger.error("Failed to send digest to %s", u.email)
    summary.digests.append(digest)


async def run_daily_digest(
  db: AsyncSession,
  *,
  composer: NotificationComposer,
  dispatcher: MailDispatcher,
  user_id: int | None = None,
  test_mode: bool = False,
  today: date | None = None,
  lock: bool = True,
  tz_name: str | None = None,
) -> DigestRunSummary:
  """
  Send one digest email per active user with open assigned tasks.

  - Users without open tasks are skipped, not failed.
  - A failed send is counted and the run moves on to the next user.
  - A full run (no `user_id`, not test mode, with `lock`) claims the day in
    `digest_runs`; a second full run on the same date returns with `already_ran` set.
  - If the run raises, the claim is released so a retry can go ahead.
  """
  today = today or today_in(tz_name)
  summary = DigestRunSummary(test_mode=test_mode)
  logger.info("=== DAILY TASK DIGEST STARTED (%s%s) ===", today.isoformat(), ", test mode" if test_mode else "")

  run_id: int | None = None
  if lock and not test_mode and user_id is None:
    run = await _claim_run(db, today)
    if run is None:
      logger.warning("Digest for %s already ran; skipping", today.isoformat())
      summary.already_ran = True
      return summary
    run_id = run.id

  try:
    await _send_digests(db, summary, composer=composer, dispatcher=dispatcher, user_id=user_id, today=today)
  except Exception:
    if run_id is not None:
      await _release_run(db, run_id)
    raise

  if run_id is not None:
    await db.execute(
      update(DigestRun)
      .where(DigestRun.id == run_id)
      .values(finished_at=datetime.now(timezone.utc), emails_sent=summary.emails_sent, emails_failed=summary.emails_failed)
    )
    await db.commit()

  logger.info(
    "=== DAILY TASK DIGEST COMPLETED: users=%d sent=%d failed=%d skipped=%d ===",
    summary.users_processed,
    summary.emails_sent,
    summary.emails_failed,
    summary.users_skipped,
  )
  return summary
