from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.audit import write_activity
from app.deps import get_current_user, get_db, get_notifier
from app.logs import get_logger
from app.models import Project, Task, TaskComment, User
from app.notifications.pipeline import MentionNotifier
from app.notifications.types import AssignmentContext, EntityType, NotificationContext, ResolvedUser
from app.schemas import CommentIn, CommentOut, TaskCreateIn, TaskOut, TaskUpdateIn

router = APIRouter(tags=["tasks"])
logger = get_logger("app.notifications.hooks")

Assignee = aliased(User)
Creator = aliased(User)


def _actor_name(u: User) -> str:
  return u.full_name or u.username


def _resolved(u: User) -> ResolvedUser:
  return ResolvedUser(id=u.id, email=u.email, display_name=_actor_name(u), username=u.username)


def _require_writer(user: User) -> None:
  if user.role == "viewer":
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Viewers cannot modify tasks")


async def _best_effort(db: AsyncSession, label: str, op: Awaitable[Any]) -> Any:
  # Notification problems never fail the write that triggered them.
  # The rollback expires loaded ORM objects; callers read what they need first.
  try:
    return await op
  except Exception as e:
    logger.error("%s failed: %s", label, e)
    await db.rollback()
    return None


def _task_query():
  comment_count = (
    select(func.count(TaskComment.id)).where(TaskComment.task_id == Task.id).correlate(Task).scalar_subquery()
  )
  return (
    select(Task, Project.name, Assignee.full_name, Creator.full_name, comment_count)
    .join(Project, Project.id == Task.project_id, isouter=True)
    .join(Assignee, Assignee.id == Task.assigned_to, isouter=True)
    .join(Creator, Creator.id == Task.created_by, isouter=True)
  )


def _task_out(t: Task, project_name: str | None = None, assignee_name: str | None = None, creator_name: str | None = None, comment_count: int | None = 0) -> TaskOut:
  return TaskOut(
    id=t.id,
    projectId=t.project_id,
    projectName=project_name,
    title=t.title,
    description=t.description or "",
    status=t.status,
    priority=t.priority,
    assignedTo=t.assigned_to,
    assignedToName=assignee_name,
    createdBy=t.created_by,
    createdByName=creator_name,
    dueDate=t.due_date,
    position=t.position,
    commentCount=int(comment_count or 0),
    completedAt=t.completed_at,
    createdAt=t.created_at,
    updatedAt=t.updated_at,
  )


async def _load_task_out(db: AsyncSession, task_id: int) -> TaskOut:
  res = await db.execute(_task_query().where(Task.id == task_id))
  row = res.first()
  if not row:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
  return _task_out(*row)


async def _get_task_or_404(db: AsyncSession, task_id: int) -> Task:
  res = await db.execute(select(Task).where(Task.id == task_id))
  t = res.scalar_one_or_none()
  if not t:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
  return t


async def _project_name(db: AsyncSession, project_id: int) -> str | None:
  res = await db.execute(select(Project.name).where(Project.id == project_id))
  return res.scalar_one_or_none()


async def _active_user(db: AsyncSession, user_id: int) -> User | None:
  res = await db.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
  return res.scalar_one_or_none()


async def _notify_task_write(
  db: AsyncSession,
  notifier: MentionNotifier,
  *,
  task: Task,
  project_name: str | None,
  actor: User,
  description: str | None,
  assignee: User | None,
) -> None:
  actor_id = actor.id
  exclude: set[int] = set()
  sends_assignment = assignee is not None and (notifier.policy.notify_self or assignee.id != actor_id)
  if sends_assignment and notifier.policy.dedupe_assignee_mention:
    exclude.add(assignee.id)

  ctx = NotificationContext(
    entity_type=EntityType.TASK,
    title=task.title,
    actor_name=_actor_name(actor),
    project_name=project_name,
    content_excerpt=description,
  )
  recipient = _resolved(assignee) if assignee is not None else None
  actx = AssignmentContext(
    title=task.title,
    actor_name=_actor_name(actor),
    project_name=project_name,
    priority=task.priority,
    due_date=task.due_date,
  )

  if description:
    await _best_effort(db, "task mention notifications", notifier.process_mentions(db, description, ctx, actor_id=actor_id, exclude_user_ids=exclude))

  if recipient is not None:
    await _best_effort(db, "assignment notification", notifier.notify_assignment(recipient, actx, actor_id=actor_id))


@router.get("/tasks", response_model=list[TaskOut])
async def list_tasks(
  project_id: int | None = None,
  status_: str | None = Query(default=None, alias="status"),
  assigned_to: int | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[TaskOut]:
  q = _task_query()
  if project_id is not None:
    q = q.where(Task.project_id == project_id)
  if status_:
    q = q.where(Task.status == status_)
  if assigned_to is not None:
    q = q.where(Task.assigned_to == assigned_to)
  q = q.order_by(Task.position.asc(), Task.created_at.desc())
  res = await db.execute(q)
  return [_task_out(*row) for row in res.all()]


@router.get("/tasks/{task_id}", response_model=TaskOut)
async def get_task(task_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  return await _load_task_out(db, task_id)


@router.post("/tasks", response_model=TaskOut)
async def create_task(
  payload: TaskCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  notifier: MentionNotifier = Depends(get_notifier),
) -> TaskOut:
  _require_writer(user)
  pres = await db.execute(select(Project).where(Project.id == payload.projectId, Project.is_archived.is_(False)))
  project = pres.scalar_one_or_none()
  if not project:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid projectId")

  assignee: User | None = None
  if payload.assignedTo:
    assignee = await _active_user(db, payload.assignedTo)
    if not assignee:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid assignedTo")

  pos = await db.execute(select(func.coalesce(func.max(Task.position), 0) + 1).where(Task.project_id == project.id))
  t = Task(
    project_id=project.id,
    title=payload.title.strip(),
    description=payload.description or "",
    status=payload.status,
    priority=payload.priority,
    assigned_to=assignee.id if assignee else None,
    created_by=user.id,
    due_date=payload.dueDate,
    position=int(pos.scalar_one()),
  )
  if t.status == "done":
    t.completed_at = datetime.now(timezone.utc)
  db.add(t)
  await db.flush()
  await write_activity(db, task_id=t.id, user_id=user.id, action_type="created", new_value=t.title)
  await db.commit()

  new_id = t.id
  await _notify_task_write(db, notifier, task=t, project_name=project.name, actor=user, description=t.description, assignee=assignee)
  return await _load_task_out(db, new_id)


@router.patch("/tasks/{task_id}", response_model=TaskOut)
async def update_task(
  task_id: int,
  payload: TaskUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  notifier: MentionNotifier = Depends(get_notifier),
) -> TaskOut:
  _require_writer(user)
  t = await _get_task_or_404(db, task_id)
  fields_set = payload.model_fields_set
  if not fields_set:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

  old_description = t.description
  old_assignee = t.assigned_to
  new_assignee: User | None = None

  if "status" in fields_set and payload.status and payload.status != t.status:
    await write_activity(db, task_id=t.id, user_id=user.id, action_type="status_changed", old_value=t.status, new_value=payload.status)
    if payload.status == "done":
      t.completed_at = datetime.now(timezone.utc)
    t.status = payload.status

  if "assignedTo" in fields_set:
    target = payload.assignedTo or None
    if target is not None:
      new_assignee = await _active_user(db, target)
      if not new_assignee:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid assignedTo")
    if target != old_assignee:
      await write_activity(db, task_id=t.id, user_id=user.id, action_type="assigned", old_value=old_assignee, new_value=target)
    t.assigned_to = target

  if "title" in fields_set and payload.title:
    t.title = payload.title.strip()
  if "description" in fields_set:
    t.description = payload.description or ""
  if "priority" in fields_set and payload.priority:
    t.priority = payload.priority
  if "dueDate" in fields_set:
    t.due_date = payload.dueDate
  if "position" in fields_set and payload.position is not None:
    t.position = payload.position

  await write_activity(db, task_id=t.id, user_id=user.id, action_type="updated")
  await db.commit()

  description_changed = "description" in fields_set and t.description != old_description
  assignee_changed = new_assignee is not None and new_assignee.id != old_assignee
  if description_changed or assignee_changed:
    await _notify_task_write(
      db,
      notifier,
      task=t,
      project_name=await _project_name(db, t.project_id),
      actor=user,
      description=t.description if description_changed else None,
      assignee=new_assignee if assignee_changed else None,
    )
  return await _load_task_out(db, task_id)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  _require_writer(user)
  await _get_task_or_404(db, task_id)
  await db.execute(delete(Task).where(Task.id == task_id))
  await db.commit()
  return {"success": True}


def _comment_out(c: TaskComment, author: User | None) -> CommentOut:
  return CommentOut(
    id=c.id,
    taskId=c.task_id,
    userId=c.user_id,
    userName=author.full_name if author else None,
    userAvatar=author.avatar_url if author else None,
    comment=c.comment,
    isEdited=bool(c.is_edited),
    createdAt=c.created_at,
  )


@router.get("/tasks/{task_id}/comments", response_model=list[CommentOut])
async def list_comments(task_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[CommentOut]:
  await _get_task_or_404(db, task_id)
  res = await db.execute(
    select(TaskComment, User)
    .join(User, User.id == TaskComment.user_id)
    .where(TaskComment.task_id == task_id)
    .order_by(TaskComment.created_at.asc(), TaskComment.id.asc())
  )
  return [_comment_out(c, u) for c, u in res.all()]


@router.post("/tasks/{task_id}/comments", response_model=CommentOut)
async def create_comment(
  task_id: int,
  payload: CommentIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  notifier: MentionNotifier = Depends(get_notifier),
) -> CommentOut:
  _require_writer(user)
  t = await _get_task_or_404(db, task_id)
  c = TaskComment(task_id=t.id, user_id=user.id, comment=payload.comment)
  db.add(c)
  await write_activity(db, task_id=t.id, user_id=user.id, action_type="commented")
  await db.commit()

  ctx = NotificationContext(
    entity_type=EntityType.COMMENT,
    title=t.title,
    actor_name=_actor_name(user),
    project_name=await _project_name(db, t.project_id),
    content_excerpt=payload.comment,
  )
  out = _comment_out(c, user)
  await _best_effort(db, "comment mention notifications", notifier.process_mentions(db, payload.comment, ctx, actor_id=out.userId))
  return out


@router.patch("/comments/{comment_id}", response_model=CommentOut)
async def update_comment(comment_id: int, payload: CommentIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CommentOut:
  res = await db.execute(select(TaskComment).where(TaskComment.id == comment_id))
  c = res.scalar_one_or_none()
  if not c:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
  if c.user_id != user.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized to edit this comment")
  c.comment = payload.comment
  c.is_edited = True
  await db.commit()
  return _comment_out(c, user)


@router.delete("/comments/{comment_id}")
async def delete_comment(comment_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  res = await db.execute(select(TaskComment).where(TaskComment.id == comment_id))
  c = res.scalar_one_or_none()
  if not c:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
  if c.user_id != user.id and user.role != "admin":
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized to delete this comment")
  await db.execute(delete(TaskComment).where(TaskComment.id == comment_id))
  await db.commit()
  return {"success": True}
