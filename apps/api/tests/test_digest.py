from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.digest import service
from app.digest.buckets import DigestBucket, DigestTaskItem, bucket_counts, bucket_for, bucket_tasks
from app.digest.service import fetch_incomplete_tasks, run_daily_digest, today_in
from app.models import DigestRun, Project, Task, User
from app.notifications.composer import NotificationComposer
from app.security import hash_password
from conftest import MailOutbox

TODAY = date(2026, 3, 10)


def test_due_today_never_lands_in_overdue_or_this_week() -> None:
  assert bucket_for(TODAY, TODAY) == DigestBucket.DUE_TODAY


@pytest.mark.parametrize(
  "offset,bucket",
  [
    (-30, DigestBucket.OVERDUE),
    (-1, DigestBucket.OVERDUE),
    (1, DigestBucket.THIS_WEEK),
    (7, DigestBucket.THIS_WEEK),
    (8, DigestBucket.NO_DUE_DATE),
  ],
)
def test_bucket_boundaries(offset: int, bucket: DigestBucket) -> None:
  assert bucket_for(TODAY + timedelta(days=offset), TODAY) == bucket


def test_bucket_tasks_is_a_partition() -> None:
  tasks = [DigestTaskItem(id=i, title=f"t{i}", status="not_started", priority="medium", due_date=(TODAY + timedelta(days=i - 5) if i % 3 else None)) for i in range(20)]
  buckets = bucket_tasks(tasks, TODAY)
  placed = [t.id for items in buckets.values() for t in items]
  assert sorted(placed) == list(range(20))
  assert sum(bucket_counts(buckets).values()) == 20


async def _user(db: AsyncSession, username: str, *, active: bool = True) -> User:
  u = User(username=username, email=f"{username}@taskflow.local", full_name=username.title(), password_hash=hash_password("x" * 8), is_active=active)
  db.add(u)
  await db.commit()
  return u


async def _project(db: AsyncSession, owner: User, name: str = "Launch") -> Project:
  p = Project(name=name, owner_id=owner.id)
  db.add(p)
  await db.commit()
  return p


async def _task(db: AsyncSession, project: Project, assignee: User, title: str, *, due: date | None = None, status: str = "not_started", priority: str = "medium") -> Task:
  t = Task(project_id=project.id, title=title, status=status, priority=priority, assigned_to=assignee.id, created_by=project.owner_id, due_date=due)
  db.add(t)
  await db.commit()
  return t


@pytest.mark.anyio
async def test_digest_counts_and_sections_for_mixed_user(db: AsyncSession) -> None:
  dana = await _user(db, "dana")
  p = await _project(db, dana)
  for i in range(3):
    await _task(db, p, dana, f"late {i}", due=TODAY - timedelta(days=i + 1))
  await _task(db, p, dana, "today", due=TODAY)
  await _task(db, p, dana, "someday 1")
  await _task(db, p, dana, "someday 2")
  await _task(db, p, dana, "finished", due=TODAY - timedelta(days=2), status="done")

  box = MailOutbox()
  summary = await run_daily_digest(db, composer=NotificationComposer(), dispatcher=box.dispatcher(), user_id=dana.id, test_mode=True, today=TODAY)

  assert summary.users_processed == 1
  assert summary.emails_sent == 1
  assert summary.emails_failed == 0
  digest = summary.digests[0]
  assert digest.total_open_tasks == 6
  assert digest.counts_by_bucket == {"overdue": 3, "dueToday": 1, "thisWeek": 0, "noDueDate": 2}

  body = box.to("dana@taskflow.local")[0]["message"]
  assert 'data-section="overdue"' in body
  assert 'data-section="dueToday"' in body
  assert 'data-section="noDueDate"' in body
  assert 'data-section="thisWeek"' not in body
  assert "finished" not in body


@pytest.mark.anyio
async def test_users_without_open_tasks_are_skipped_and_failures_counted(db: AsyncSession) -> None:
  a = await _user(db, "alice")
  b = await _user(db, "bob")
  gone = await _user(db, "gone", active=False)
  p = await _project(db, a)
  await _task(db, p, a, "a1", due=TODAY)
  await _task(db, p, b, "b1")
  await _task(db, p, gone, "g1")

  box = MailOutbox()
  box.fail_for.add("bob@taskflow.local")
  summary = await run_daily_digest(db, composer=NotificationComposer(), dispatcher=box.dispatcher(), test_mode=True, today=TODAY)

  # admin, member, alice, bob are active; the seeded accounts have no tasks.
  assert summary.users_processed == 4
  assert summary.users_skipped == 2
  assert summary.emails_sent == 1
  assert summary.emails_failed == 1
  assert box.to("gone@taskflow.local") == []
  assert summary.as_dict()["emailsFailed"] == 1


@pytest.mark.anyio
async def test_second_run_on_the_same_day_is_refused(db: AsyncSession) -> None:
  a = await _user(db, "alice")
  p = await _project(db, a)
  await _task(db, p, a, "a1")
  box = MailOutbox()

  first = await run_daily_digest(db, composer=NotificationComposer(), dispatcher=box.dispatcher(), today=TODAY)
  assert first.emails_sent == 1
  assert first.already_ran is False

  second = await run_daily_digest(db, composer=NotificationComposer(), dispatcher=box.dispatcher(), today=TODAY)
  assert second.already_ran is True
  assert second.emails_sent == 0
  assert len(box.sent) == 1

  run = (await db.execute(select(DigestRun).where(DigestRun.run_date == TODAY))).scalar_one()
  assert run.emails_sent == 1
  assert run.finished_at is not None

  # Test mode ignores the daily claim.
  again = await run_daily_digest(db, composer=NotificationComposer(), dispatcher=box.dispatcher(), today=TODAY, test_mode=True)
  assert again.emails_sent == 1


@pytest.mark.anyio
async def test_open_tasks_are_ordered_by_urgency(db: AsyncSession) -> None:
  a = await _user(db, "alice")
  p = await _project(db, a)
  await _task(db, p, a, "low someday", priority="low")
  await _task(db, p, a, "urgent someday", priority="urgent")
  await _task(db, p, a, "due today", due=TODAY)
  await _task(db, p, a, "late", due=TODAY - timedelta(days=4))
  await _task(db, p, a, "next week", due=TODAY + timedelta(days=3), priority="low")

  items = await fetch_incomplete_tasks(db, user_id=a.id, today=TODAY)
  assert [t.title for t in items] == ["late", "due today", "urgent someday", "next week", "low someday"]
  assert items[0].project_name == "Launch"


@pytest.mark.anyio
async def test_failed_run_releases_the_day_for_a_retry(db: AsyncSession, monkeypatch) -> None:
  a = await _user(db, "alice")
  p = await _project(db, a)
  await _task(db, p, a, "a1")
  box = MailOutbox()

  async def db_down(*args, **kwargs):
    raise OperationalError("SELECT tasks", {}, Exception("db down"))

  monkeypatch.setattr(service, "fetch_incomplete_tasks", db_down)
  with pytest.raises(OperationalError):
    await run_daily_digest(db, composer=NotificationComposer(), dispatcher=box.dispatcher(), today=TODAY)
  assert (await db.execute(select(func.count(DigestRun.id)))).scalar_one() == 0

  monkeypatch.undo()
  retry = await run_daily_digest(db, composer=NotificationComposer(), dispatcher=box.dispatcher(), today=TODAY)
  assert retry.already_ran is False
  assert retry.emails_sent == 1
  assert len(box.to("alice@taskflow.local")) == 1


def test_unknown_timezone_falls_back_to_utc(caplog) -> None:
  before = datetime.now(timezone.utc).date()
  with caplog.at_level("WARNING", logger="app.digest"):
    day = today_in("Mars/Olympus")
  assert day in {before, datetime.now(timezone.utc).date()}
  assert "Unknown digest timezone 'Mars/Olympus'" in caplog.text
