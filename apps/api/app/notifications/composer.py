from __future__ import annotations

import html
import re
from datetime import date, datetime

from app.digest.buckets import BUCKET_ORDER, DigestBucket, DigestTaskItem
from app.notifications.templates import SECTION_STYLES, email_shell, footer, priority_style, strings_for
from app.notifications.types import AssignmentContext, EmailMessage, EntityType, NotificationContext, ResolvedUser

EXCERPT_MAX_CHARS = 200

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def excerpt(content: str | None, *, limit: int = EXCERPT_MAX_CHARS) -> str:
  """Plain-text preview of rich-text content, truncated with a trailing '...'."""
  if not content:
    return ""
  text = html.unescape(_TAG_RE.sub(" ", content))
  text = _WS_RE.sub(" ", text).strip()
  if len(text) > limit:
    return text[:limit] + "..."
  return text


def _e(value: str | None) -> str:
  return html.escape(value or "", quote=True)


def _format_date(d: date) -> str:
  return d.strftime("%d/%m/%Y")


class NotificationComposer:
  def __init__(self, *, locale: str = "en", app_name: str = "TaskFlow") -> None:
    self.locale = locale
    self.app_name = app_name
    self._lang = strings_for(locale)

  def _project_line(self, project_name: str | None) -> str:
    if not project_name:
      return ""
    return f'\n          <p style="margin: 5px 0; color: #6b7280; font-size: 14px;">{self._lang["project"]}: {_e(project_name)}</p>'

  def _card(self, title: str, inner: str) -> str:
    side = self._lang["side"]
    return (
      f'        <div style="background: white; padding: 20px; border-radius: 8px; border-{side}: 4px solid #667eea; margin-bottom: 20px;">\n'
      f'          <h2 style="margin: 0 0 10px 0; font-size: 18px; color: #1f2937;">📋 {_e(title)}</h2>{inner}\n'
      "        </div>"
    )

  def compose_mention(self, user: ResolvedUser, ctx: NotificationContext) -> EmailMessage:
    lang = self._lang
    is_task = ctx.entity_type == EntityType.TASK
    subject = (lang["mention_subject_task"] if is_task else lang["mention_subject_comment"]).format(title=ctx.title)
    lead = lang["mention_lead_task"] if is_task else lang["mention_lead_comment"]

    parts = [
      f'        <p style="font-size: 16px; margin-bottom: 20px;"><strong>{_e(ctx.actor_name)}</strong> {lead}</p>',
      self._card(ctx.title, self._project_line(ctx.project_name)),
    ]
    preview = excerpt(ctx.content_excerpt)
    if preview:
      parts.append(
        '        <div style="background: white; padding: 15px; border-radius: 8px; margin-bottom: 20px; border: 1px solid #e5e7eb;">\n'
        f'          <p style="margin: 0; color: #4b5563; font-size: 14px;">{_e(preview)}</p>\n'
        "        </div>"
      )
    parts.append(footer(lang, _e(self.app_name)))

    body = email_shell(lang=lang, heading=lang["mention_heading"], body="\n".join(parts))
    return EmailMessage(to=user.email, subject=subject, html_body=body, reply_to=user.email)

  def compose_assignment(self, user: ResolvedUser, ctx: AssignmentContext) -> EmailMessage:
    lang = self._lang
    style = priority_style(ctx.priority, self.locale)
    inner = self._project_line(ctx.project_name)
    inner += (
      '\n          <p style="margin: 5px 0; font-size: 14px;">'
      f'<span style="display: inline-block; padding: 4px 12px; border-radius: 12px; background-color: {style.color}20; color: {style.color}; font-weight: 500;">'
      f'🚩 {lang["priority"]}: {_e(style.label)}</span></p>'
    )
    if ctx.due_date:
      inner += f'\n          <p style="margin: 5px 0; color: #6b7280; font-size: 14px;">📅 {lang["due_date"]}: {_format_date(ctx.due_date)}</p>'

    side = self._lang["side"]
    parts = [
      f'        <p style="font-size: 16px; margin-bottom: 20px;"><strong>{_e(ctx.actor_name)}</strong> {lang["assign_lead"]}</p>',
      self._card(ctx.title, inner),
      f'        <div style="background: #e0e7ff; padding: 15px; border-radius: 8px; border-{side}: 3px solid #667eea; margin-bottom: 20px;">\n'
      f'          <p style="margin: 0; color: #4338ca; font-size: 14px; font-weight: 500;">{lang["assign_cta"]}</p>\n'
      "        </div>",
      footer(lang, _e(self.app_name)),
    ]
    body = email_shell(lang=lang, heading=lang["assign_heading"], body="\n".join(parts))
    return EmailMessage(to=user.email, subject=lang["assign_subject"].format(title=ctx.title), html_body=body, reply_to=user.email)

  def _digest_task(self, t: DigestTaskItem) -> str:
    lang = self._lang
    style = priority_style(t.priority, self.locale)
    status_label = lang["statuses"].get(t.status, t.status)
    project = (
      f'\n            <div style="font-size: 12px; color: #6b7280; margin-bottom: 5px;">{lang["project"]}: {_e(t.project_name)}</div>'
      if t.project_name
      else ""
    )
    due = f'\n              <span style="color: #6b7280; font-size: 12px;">📅 {_format_date(t.due_date)}</span>' if t.due_date else ""
    return (
      '          <div style="background: white; padding: 12px; border-radius: 6px; margin-bottom: 10px; border: 1px solid #e5e7eb;">\n'
      f'            <div style="font-weight: 600; color: #1f2937; margin-bottom: 5px;">{_e(t.title)}</div>{project}\n'
      '            <div style="display: flex; gap: 10px; align-items: center; flex-wrap: wrap;">\n'
      f'              <span style="display: inline-block; padding: 3px 8px; border-radius: 12px; background-color: {style.color}20; color: {style.color}; font-size: 11px; font-weight: 500;">🚩 {_e(style.label)}</span>\n'
      f'              <span style="color: #6b7280; font-size: 12px;">📊 {_e(status_label)}</span>{due}\n'
      "            </div>\n"
      "          </div>"
    )

  def _digest_section(self, bucket: DigestBucket, tasks: list[DigestTaskItem]) -> str:
    lang = self._lang
    bg, accent, heading_color = SECTION_STYLES[bucket.value]
    note = ""
    if bucket == DigestBucket.OVERDUE:
      note = f'\n          <div style="color: #7f1d1d; font-size: 13px; margin-bottom: 10px;">{lang["digest_section_overdue_note"]}</div>'
    items = "\n".join(self._digest_task(t) for t in tasks)
    return (
      f'        <div data-section="{bucket.value}" style="background: {bg}; border-{lang["side"]}: 4px solid {accent}; padding: 15px; border-radius: 8px; margin-bottom: 20px;">\n'
      f'          <h3 style="color: {heading_color}; margin: 0 0 10px 0; font-size: 16px;">{lang["digest_section_" + bucket.value]} ({len(tasks)})</h3>{note}\n'
      f"{items}\n"
      "        </div>"
    )

  def compose_digest(
    self,
    user: ResolvedUser,
    buckets: dict[DigestBucket, list[DigestTaskItem]],
    *,
    sent_at: datetime,
  ) -> EmailMessage:
    lang = self._lang
    total = sum(len(v) for v in buckets.values())
    overdue = len(buckets.get(DigestBucket.OVERDUE, []))

    stat = (
      '          <div style="background: white; padding: 20px; border-radius: 8px; text-align: center; border: 1px solid #e5e7eb;">\n'
      '            <div style="font-size: 32px; font-weight: bold; color: {color};">{value}</div>\n'
      '            <div style="color: #6b7280; font-size: 14px;">{label}</div>\n'
      "          </div>"
    )
    parts = [
      '        <div style="display: grid; grid-template-columns: repeat(2, 1fr); gap: 15px; margin-bottom: 30px;">\n'
      + stat.format(color="#667eea", value=total, label=lang["digest_total"])
      + "\n"
      + stat.format(color="#ef4444", value=overdue, label=lang["digest_overdue_total"])
      + "\n        </div>"
    ]
    for bucket in BUCKET_ORDER:
      tasks = buckets.get(bucket) or []
      if tasks:
        parts.append(self._digest_section(bucket, tasks))
    parts.append(
      f'        <div style="background: #e0e7ff; padding: 15px; border-radius: 8px; border-{lang["side"]}: 3px solid #667eea; margin-top: 30px;">\n'
      f'          <p style="margin: 0; color: #4338ca; font-size: 14px; font-weight: 500;">{lang["digest_cta"].format(app=_e(self.app_name))}</p>\n'
      "        </div>"
    )
    parts.append(footer(lang, _e(self.app_name), lang["digest_sent_at"].format(when=sent_at.strftime("%d/%m/%Y %H:%M"))))

    body = email_shell(
      lang=lang,
      heading=lang["digest_heading"],
      subheading=lang["digest_greeting"].format(name=_e(user.display_name)),
      body="\n".join(parts),
      max_width=700,
    )
    return EmailMessage(to=user.email, subject=lang["digest_subject"].format(count=total), html_body=body, reply_to=user.email)
