from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import TaskActivity


def _as_text(value: Any) -> str | None:
  if value is None:
    return None
  return str(value)


async def write_activity(
  db: AsyncSession,
  *,
  task_id: int,
  user_id: int,
  action_type: str,
  old_value: Any = None,
  new_value: Any = None,
) -> None:
  db.add(
    TaskActivity(
      task_id=task_id,
      user_id=user_id,
      action_type=action_type,
      old_value=_as_text(old_value),
      new_value=_as_text(new_value),
    )
  )
