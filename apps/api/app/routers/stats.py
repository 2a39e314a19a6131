from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import get_current_user, get_db
from app.models import Project, Task, User

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("")
async def dashboard_stats(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  today = date.today()
  live = (
    select(Task)
    .join(Project, Project.id == Task.project_id)
    .where(Project.is_archived.is_(False))
    .subquery()
  )

  res = await db.execute(
    select(
      func.count(live.c.id),
      func.sum(case(((live.c.status != "done") & live.c.due_date.is_not(None) & (live.c.due_date < today), 1), else_=0)),
      func.sum(case(((live.c.status != "done") & (live.c.due_date == today), 1), else_=0)),
      func.sum(case(((live.c.status != "done") & (live.c.assigned_to == user.id), 1), else_=0)),
    )
  )
  total, overdue, due_today, mine = res.one()

  by_status_res = await db.execute(select(live.c.status, func.count()).group_by(live.c.status))
  by_priority_res = await db.execute(select(live.c.priority, func.count()).group_by(live.c.priority))
  projects = await db.execute(select(func.count(Project.id)).where(Project.is_archived.is_(False)))
  users = await db.execute(select(func.count(User.id)).where(User.is_active.is_(True)))

  return {
    "totalProjects": int(projects.scalar_one() or 0),
    "totalTasks": int(total or 0),
    "activeUsers": int(users.scalar_one() or 0),
    "byStatus": {s: int(n) for s, n in by_status_res.all()},
    "byPriority": {p: int(n) for p, n in by_priority_res.all()},
    "overdueTasks": int(overdue or 0),
    "dueTodayTasks": int(due_today or 0),
    "myOpenTasks": int(mine or 0),
  }
