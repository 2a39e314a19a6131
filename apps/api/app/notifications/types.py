from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class EntityType(str, Enum):
  TASK = "task"
  COMMENT = "comment"


@dataclass(frozen=True)
class UserIdMention:
  user_id: int


@dataclass(frozen=True)
class UsernameMention:
  username: str


MentionCandidate = UserIdMention | UsernameMention


@dataclass(frozen=True)
class ResolvedUser:
  id: int
  email: str
  display_name: str
  username: str


@dataclass(frozen=True)
class NotificationContext:
  entity_type: EntityType
  title: str
  actor_name: str
  project_name: str | None = None
  content_excerpt: str | None = None


@dataclass(frozen=True)
class AssignmentContext:
  title: str
  actor_name: str
  project_name: str | None = None
  priority: str = "medium"
  due_date: date | None = None


@dataclass(frozen=True)
class EmailMessage:
  to: str
  subject: str
  html_body: str
  reply_to: str

  def payload(self) -> dict[str, str]:
    return {"to": self.to, "subject": self.subject, "message": self.html_body, "replyTo": self.reply_to}


@dataclass(frozen=True)
class MentionResult:
  resolved: int = 0
  sent: int = 0
  recipients: list[str] = field(default_factory=list)
