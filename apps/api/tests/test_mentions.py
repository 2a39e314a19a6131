from __future__ import annotations

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import engine
from app.models import User
from app.notifications.mentions import extract_mentions, resolve_mentioned_users
from app.notifications.types import UserIdMention, UsernameMention
from app.security import hash_password
from conftest import mention_html


def test_extract_empty_content() -> None:
  assert extract_mentions(None) == []
  assert extract_mentions("") == []
  assert extract_mentions("<p>no mentions here</p>") == []


def test_extract_ids_in_first_occurrence_order_without_duplicates() -> None:
  content = mention_html(5, "Noa") + " and " + mention_html(3, "Dan") + " again " + mention_html(5, "Noa")
  assert extract_mentions(content) == [UserIdMention(5), UserIdMention(3)]


def test_extract_accepts_single_quoted_attribute() -> None:
  assert extract_mentions("<span data-user-id='12'>@x</span>") == [UserIdMention(12)]


def test_ids_win_over_plain_handles() -> None:
  content = f"@carol please sync with {mention_html(7, 'Eve')}"
  assert extract_mentions(content) == [UserIdMention(7)]


def test_handle_fallback_dedupes() -> None:
  assert extract_mentions("ping @alice and @bob, then @alice") == [UsernameMention("alice"), UsernameMention("bob")]


def test_email_address_reads_as_handle() -> None:
  # Plain-text scanning has no notion of addresses.
  assert extract_mentions("mail bob@example.com") == [UsernameMention("example")]


def test_broken_markup_never_raises() -> None:
  assert extract_mentions('<span data-user-id="abc">@</span><div <<>> @ok') == [UsernameMention("ok")]


async def _add_user(db: AsyncSession, username: str, *, active: bool = True) -> User:
  u = User(username=username, email=f"{username}@taskflow.local", full_name=username.title(), password_hash=hash_password("x" * 8), is_active=active)
  db.add(u)
  await db.commit()
  return u


@pytest.mark.anyio
async def test_resolve_by_ids_keeps_candidate_order_and_drops_unknown(db: AsyncSession) -> None:
  a = await _add_user(db, "alice")
  b = await _add_user(db, "bob")
  users = await resolve_mentioned_users(db, [UserIdMention(b.id), UserIdMention(99999), UserIdMention(a.id)])
  assert [u.id for u in users] == [b.id, a.id]
  assert users[0].email == "bob@taskflow.local"
  assert users[0].display_name == "Bob"


@pytest.mark.anyio
async def test_resolve_by_usernames(db: AsyncSession) -> None:
  await _add_user(db, "alice")
  users = await resolve_mentioned_users(db, [UsernameMention("ghost"), UsernameMention("alice")])
  assert [u.username for u in users] == ["alice"]


@pytest.mark.anyio
async def test_resolve_uses_one_query(db: AsyncSession) -> None:
  a = await _add_user(db, "alice")
  b = await _add_user(db, "bob")
  statements: list[str] = []

  def _count(conn, cursor, statement, parameters, context, executemany):
    if statement.lstrip().upper().startswith("SELECT"):
      statements.append(statement)

  event.listen(engine.sync_engine, "before_cursor_execute", _count)
  try:
    users = await resolve_mentioned_users(db, [UserIdMention(a.id), UserIdMention(b.id)])
  finally:
    event.remove(engine.sync_engine, "before_cursor_execute", _count)
  assert len(users) == 2
  assert len(statements) == 1


@pytest.mark.anyio
async def test_resolve_empty_and_mixed(db: AsyncSession) -> None:
  assert await resolve_mentioned_users(db, []) == []
  with pytest.raises(ValueError):
    await resolve_mentioned_users(db, [UserIdMention(1), UsernameMention("admin")])
