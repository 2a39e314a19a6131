from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable

WEEK_WINDOW_DAYS = 7


class DigestBucket(str, Enum):
  OVERDUE = "overdue"
  DUE_TODAY = "dueToday"
  THIS_WEEK = "thisWeek"
  NO_DUE_DATE = "noDueDate"


# Render order of digest sections.
BUCKET_ORDER = (DigestBucket.OVERDUE, DigestBucket.DUE_TODAY, DigestBucket.THIS_WEEK, DigestBucket.NO_DUE_DATE)


@dataclass(frozen=True)
class DigestTaskItem:
  id: int
  title: str
  status: str
  priority: str
  due_date: date | None = None
  project_name: str | None = None


def bucket_for(due_date: date | None, today: date) -> DigestBucket:
  # A missing due date never reaches the date comparisons.
  if due_date is None:
    return DigestBucket.NO_DUE_DATE
  if due_date < today:
    return DigestBucket.OVERDUE
  if due_date == today:
    return DigestBucket.DUE_TODAY
  if due_date <= today + timedelta(days=WEEK_WINDOW_DAYS):
    return DigestBucket.THIS_WEEK
  return DigestBucket.NO_DUE_DATE


def bucket_tasks(tasks: Iterable[DigestTaskItem], today: date) -> dict[DigestBucket, list[DigestTaskItem]]:
  out: dict[DigestBucket, list[DigestTaskItem]] = {b: [] for b in BUCKET_ORDER}
  for t in tasks:
    out[bucket_for(t.due_date, today)].append(t)
  return out


def bucket_counts(buckets: dict[DigestBucket, list[DigestTaskItem]]) -> dict[str, int]:
  return {b.value: len(buckets.get(b, [])) for b in BUCKET_ORDER}
