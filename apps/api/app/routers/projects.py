from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import get_current_user, get_db
from app.models import Project, Task, User
from app.schemas import ProjectIn, ProjectOut, ProjectUpdateIn

router = APIRouter(prefix="/projects", tags=["projects"])


def _stats_query():
  total = func.count(Task.id)
  done = func.sum(case((Task.status == "done", 1), else_=0))
  in_progress = func.sum(case((Task.status == "in_progress", 1), else_=0))
  return (
    select(Project, User.full_name, total, done, in_progress)
    .join(User, User.id == Project.owner_id, isouter=True)
    .join(Task, Task.project_id == Project.id, isouter=True)
    .where(Project.is_archived.is_(False))
    .group_by(Project.id, User.full_name)
  )


def _project_out(p: Project, owner_name: str | None = None, total: int | None = 0, done: int | None = 0, in_progress: int | None = 0) -> ProjectOut:
  return ProjectOut(
    id=p.id,
    name=p.name,
    description=p.description or "",
    color=p.color,
    ownerId=p.owner_id,
    ownerName=owner_name,
    isArchived=bool(p.is_archived),
    totalTasks=int(total or 0),
    completedTasks=int(done or 0),
    inProgressTasks=int(in_progress or 0),
    createdAt=p.created_at,
  )


async def _get_project_or_404(db: AsyncSession, project_id: int) -> Project:
  res = await db.execute(select(Project).where(Project.id == project_id, Project.is_archived.is_(False)))
  p = res.scalar_one_or_none()
  if not p:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
  return p


def _require_owner_or_admin(p: Project, user: User) -> None:
  if p.owner_id != user.id and user.role != "admin":
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the owner or an admin can change this project")


@router.get("", response_model=list[ProjectOut])
async def list_projects(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[ProjectOut]:
  res = await db.execute(_stats_query().order_by(Project.created_at.desc()))
  return [_project_out(*row) for row in res.all()]


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(project_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ProjectOut:
  res = await db.execute(_stats_query().where(Project.id == project_id))
  row = res.first()
  if not row:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
  return _project_out(*row)


@router.post("", response_model=ProjectOut)
async def create_project(payload: ProjectIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ProjectOut:
  if user.role == "viewer":
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Viewers cannot create projects")
  p = Project(name=payload.name.strip(), description=payload.description or "", color=payload.color, owner_id=user.id)
  db.add(p)
  await db.commit()
  return _project_out(p, owner_name=user.full_name)


@router.patch("/{project_id}", response_model=ProjectOut)
async def update_project(project_id: int, payload: ProjectUpdateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ProjectOut:
  p = await _get_project_or_404(db, project_id)
  _require_owner_or_admin(p, user)
  fields_set = payload.model_fields_set
  if "name" in fields_set and payload.name:
    p.name = payload.name.strip()
  if "description" in fields_set:
    p.description = payload.description or ""
  if "color" in fields_set:
    p.color = payload.color
  await db.commit()
  return await get_project(project_id, user, db)


@router.delete("/{project_id}")
async def archive_project(project_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  p = await _get_project_or_404(db, project_id)
  _require_owner_or_admin(p, user)
  p.is_archived = True
  await db.commit()
  return {"success": True}
