from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import get_current_user, get_db
from app.models import Project, Task, TaskActivity, User
from app.schemas import ActivityOut

router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("", response_model=list[ActivityOut])
async def list_activity(
  task_id: int | None = None,
  project_id: int | None = None,
  limit: int = Query(default=50, ge=1, le=500),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[ActivityOut]:
  q = (
    select(TaskActivity, Task.title, Project.name, User.full_name)
    .join(Task, Task.id == TaskActivity.task_id)
    .join(Project, Project.id == Task.project_id)
    .join(User, User.id == TaskActivity.user_id)
  )
  if task_id is not None:
    q = q.where(TaskActivity.task_id == task_id)
  elif project_id is not None:
    q = q.where(Task.project_id == project_id)
  else:
    q = q.where(Project.is_archived.is_(False))
  q = q.order_by(TaskActivity.created_at.desc(), TaskActivity.id.desc()).limit(limit)
  res = await db.execute(q)
  out = []
  for ev, task_title, project_name, user_name in res.all():
    out.append(
      ActivityOut(
        id=ev.id,
        taskId=ev.task_id,
        taskTitle=task_title,
        projectName=project_name,
        userId=ev.user_id,
        userName=user_name,
        actionType=ev.action_type,
        oldValue=ev.old_value,
        newValue=ev.new_value,
        createdAt=ev.created_at,
      )
    )
  return out
