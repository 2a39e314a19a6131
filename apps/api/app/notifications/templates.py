from __future__ import annotations

from dataclasses import dataclass
from typing import Any

PRIORITY_COLORS = {
  "low": "#10b981",
  "medium": "#f59e0b",
  "high": "#f97316",
  "urgent": "#ef4444",
}
DEFAULT_PRIORITY = "medium"

# (background, accent, heading color) per digest section
SECTION_STYLES = {
  "overdue": ("#fef2f2", "#ef4444", "#991b1b"),
  "dueToday": ("#fffbeb", "#f59e0b", "#92400e"),
  "thisWeek": ("#eff6ff", "#3b82f6", "#1e40af"),
  "noDueDate": ("#f9fafb", "#9ca3af", "#374151"),
}

STRINGS: dict[str, dict[str, Any]] = {
  "en": {
    "dir": "ltr",
    "side": "left",
    "mention_heading": "👋 You were mentioned!",
    "mention_subject_task": "You were mentioned in a task: {title}",
    "mention_subject_comment": "You were mentioned in a comment on: {title}",
    "mention_lead_task": "mentioned you in a task:",
    "mention_lead_comment": "mentioned you in a comment:",
    "project": "Project",
    "assign_heading": "📋 New task",
    "assign_subject": "A new task was assigned to you: {title}",
    "assign_lead": "assigned you a new task:",
    "assign_cta": "💡 Sign in to start working on the task",
    "priority": "Priority",
    "due_date": "Due date",
    "digest_heading": "📊 Daily task summary",
    "digest_subject": "Daily summary: you have {count} open tasks",
    "digest_greeting": "Hi {name}, here are your open tasks",
    "digest_total": "Total open tasks",
    "digest_overdue_total": "Overdue tasks",
    "digest_section_overdue": "🚨 Overdue tasks",
    "digest_section_overdue_note": "These tasks are past their due date!",
    "digest_section_dueToday": "⚠️ Due today",
    "digest_section_thisWeek": "📅 Due this week",
    "digest_section_noDueDate": "📋 No due date",
    "digest_cta": "💡 Sign in to {app} to update your tasks",
    "digest_sent_at": "This summary was sent on {when}",
    "footer": "This is an automated notification from {app}. Please do not reply to this email.",
    "priorities": {"low": "Low", "medium": "Medium", "high": "High", "urgent": "Urgent"},
    "statuses": {"backlog": "Backlog", "not_started": "Not started", "in_progress": "In progress", "review": "In review"},
  },
  "he": {
    "dir": "rtl",
    "side": "right",
    "mention_heading": "👋 אוזכרת!",
    "mention_subject_task": "אוזכרת במשימה: {title}",
    "mention_subject_comment": "אוזכרת בתגובה על: {title}",
    "mention_lead_task": "אזכר אותך במשימה:",
    "mention_lead_comment": "אזכר אותך בתגובה:",
    "project": "פרויקט",
    "assign_heading": "📋 משימה חדשה",
    "assign_subject": "משימה חדשה הוקצתה לך: {title}",
    "assign_lead": "הקצה לך משימה חדשה:",
    "assign_cta": "💡 היכנס למערכת כדי להתחיל לעבוד על המשימה",
    "priority": "עדיפות",
    "due_date": "תאריך יעד",
    "digest_heading": "📊 סיכום משימות יומי",
    "digest_subject": "סיכום יומי: יש לך {count} משימות פתוחות",
    "digest_greeting": "היי {name}, הנה המשימות הפתוחות שלך",
    "digest_total": 'סה"כ משימות פתוחות',
    "digest_overdue_total": "משימות באיחור",
    "digest_section_overdue": "🚨 משימות באיחור",
    "digest_section_overdue_note": "משימות אלו עברו את תאריך היעד!",
    "digest_section_dueToday": "⚠️ משימות לביצוע היום",
    "digest_section_thisWeek": "📅 משימות השבוע",
    "digest_section_noDueDate": "📋 משימות ללא תאריך יעד",
    "digest_cta": "💡 היכנס למערכת {app} כדי לעדכן את המשימות שלך",
    "digest_sent_at": "סיכום זה נשלח ב-{when}",
    "footer": "זוהי התראה אוטומטית מ-{app}. אנא אל תשיב למייל זה.",
    "priorities": {"low": "נמוכה", "medium": "בינונית", "high": "גבוהה", "urgent": "דחופה"},
    "statuses": {"backlog": "ברשימת המתנה", "not_started": "לא התחיל", "in_progress": "בביצוע", "review": "בבדיקה"},
  },
}


@dataclass(frozen=True)
class PriorityStyle:
  key: str
  label: str
  color: str


def strings_for(locale: str | None) -> dict[str, Any]:
  return STRINGS.get((locale or "").strip().lower(), STRINGS["en"])


def priority_style(priority: str | None, locale: str | None) -> PriorityStyle:
  key = (priority or "").strip().lower()
  if key not in PRIORITY_COLORS:
    key = DEFAULT_PRIORITY
  return PriorityStyle(key=key, label=strings_for(locale)["priorities"][key], color=PRIORITY_COLORS[key])


def email_shell(*, lang: dict[str, Any], heading: str, subheading: str = "", body: str, max_width: int = 600) -> str:
  sub = f'\n        <p style="color: #e0e7ff; margin: 10px 0 0 0; font-size: 14px;">{subheading}</p>' if subheading else ""
  return f"""<html>
  <head>
    <meta charset="UTF-8">
  </head>
  <body style="font-family: Arial, sans-serif; color: #333; line-height: 1.6; direction: {lang['dir']};">
    <div style="max-width: {max_width}px; margin: 0 auto; padding: 20px;">
      <div style="background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 30px; border-radius: 10px 10px 0 0;">
        <h1 style="color: white; margin: 0; font-size: 24px;">{heading}</h1>{sub}
      </div>
      <div style="background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px; border: 1px solid #e5e7eb;">
{body}
      </div>
    </div>
  </body>
</html>"""


def footer(lang: dict[str, Any], app_name: str, extra: str = "") -> str:
  tail = f"<br>{extra}" if extra else ""
  return (
    '<hr style="border: none; border-top: 1px solid #e5e7eb; margin: 30px 0;">\n'
    f'<p style="font-size: 12px; color: #9ca3af; margin: 0;">{lang["footer"].format(app=app_name)}{tail}</p>'
  )
