from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

Role = Literal["admin", "member", "viewer"]
TaskStatus = Literal["backlog", "not_started", "in_progress", "review", "done"]
TaskPriority = Literal["low", "medium", "high", "urgent"]


class LoginIn(BaseModel):
  username: str = Field(min_length=1, max_length=320)
  password: str = Field(min_length=1, max_length=200)


class UserOut(BaseModel):
  id: int
  username: str
  email: str
  fullName: str
  role: Role
  avatarUrl: str | None = None
  isActive: bool = True
  lastLogin: datetime | None = None
  createdAt: datetime | None = None


class LoginOut(BaseModel):
  token: str
  user: UserOut


class UserCreateIn(BaseModel):
  username: str = Field(min_length=1, max_length=64, pattern=r"^\w+$")
  email: str = Field(min_length=3, max_length=320)
  fullName: str = Field(min_length=1, max_length=120)
  role: Role = "member"
  password: str = Field(min_length=8, max_length=200)
  avatarUrl: str | None = None

  @field_validator("email")
  @classmethod
  def _email_shape(cls, v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
      raise ValueError("Invalid email")
    return v


class UserUpdateIn(BaseModel):
  email: str | None = Field(default=None, min_length=3, max_length=320)
  fullName: str | None = Field(default=None, min_length=1, max_length=120)
  role: Role | None = None
  avatarUrl: str | None = None
  isActive: bool | None = None
  password: str | None = Field(default=None, min_length=8, max_length=200)


class ProjectIn(BaseModel):
  name: str = Field(min_length=1, max_length=200)
  description: str = ""
  color: str | None = Field(default=None, max_length=16)


class ProjectUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=200)
  description: str | None = None
  color: str | None = Field(default=None, max_length=16)


class ProjectOut(BaseModel):
  id: int
  name: str
  description: str
  color: str | None = None
  ownerId: int
  ownerName: str | None = None
  isArchived: bool = False
  totalTasks: int = 0
  completedTasks: int = 0
  inProgressTasks: int = 0
  createdAt: datetime | None = None


class TaskCreateIn(BaseModel):
  projectId: int
  title: str = Field(min_length=1, max_length=255)
  description: str = ""
  status: TaskStatus = "not_started"
  priority: TaskPriority = "medium"
  assignedTo: int | None = None
  dueDate: date | None = None


class TaskUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=255)
  description: str | None = None
  status: TaskStatus | None = None
  priority: TaskPriority | None = None
  assignedTo: int | None = None
  dueDate: date | None = None
  position: int | None = None


class TaskOut(BaseModel):
  id: int
  projectId: int
  projectName: str | None = None
  title: str
  description: str
  status: str
  priority: str
  assignedTo: int | None = None
  assignedToName: str | None = None
  createdBy: int
  createdByName: str | None = None
  dueDate: date | None = None
  position: int = 0
  commentCount: int = 0
  completedAt: datetime | None = None
  createdAt: datetime | None = None
  updatedAt: datetime | None = None


class CommentIn(BaseModel):
  comment: str = Field(min_length=1, max_length=20000)


class CommentOut(BaseModel):
  id: int
  taskId: int
  userId: int
  userName: str | None = None
  userAvatar: str | None = None
  comment: str
  isEdited: bool = False
  createdAt: datetime | None = None


class ActivityOut(BaseModel):
  id: int
  taskId: int
  taskTitle: str | None = None
  projectName: str | None = None
  userId: int
  userName: str | None = None
  actionType: str
  oldValue: str | None = None
  newValue: str | None = None
  createdAt: datetime | None = None


class MailSendIn(BaseModel):
  to: str = ""
  subject: str | None = None
  message: str = ""
  replyTo: str | None = None


class MailSendOut(BaseModel):
  success: bool
  message: str
