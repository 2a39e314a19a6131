from __future__ import annotations

from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from app.config import settings
from app.digest.service import today_in
from conftest import admin_headers, create_project, create_user


async def _seed_tasks(client: AsyncClient) -> dict:
  headers = await admin_headers(client)
  dana = await create_user(client, headers, "dana", "Dana Cohen")
  p = await create_project(client, headers)
  today = today_in(settings.digest_timezone)
  for title, due in [("late", today - timedelta(days=2)), ("today", today), ("later", None)]:
    res = await client.post(
      "/tasks",
      headers=headers,
      json={"projectId": p["id"], "title": title, "assignedTo": dana["id"], "dueDate": due.isoformat() if isinstance(due, date) else None},
    )
    assert res.status_code == 200, res.text
  return dana


@pytest.mark.anyio
async def test_cron_test_mode_for_one_user(client: AsyncClient, outbox) -> None:
  dana = await _seed_tasks(client)
  outbox.sent.clear()

  res = await client.get("/cron/daily-digest", params={"test": 1, "user_id": dana["id"]})
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["success"] is True
  summary = body["summary"]
  assert summary["testMode"] is True
  assert summary["usersProcessed"] == 1
  assert summary["emailsSent"] == 1
  assert summary["digests"][0]["countsByBucket"] == {"overdue": 1, "dueToday": 1, "thisWeek": 0, "noDueDate": 1}
  assert outbox.to("dana@taskflow.local")[0]["subject"] == "Daily summary: you have 3 open tasks"


@pytest.mark.anyio
async def test_cron_runs_once_per_day(client: AsyncClient, outbox) -> None:
  await _seed_tasks(client)
  outbox.sent.clear()

  first = (await client.get("/cron/daily-digest")).json()["summary"]
  assert first["alreadyRan"] is False
  assert first["emailsSent"] == 1

  second = (await client.get("/cron/daily-digest")).json()["summary"]
  assert second["alreadyRan"] is True
  assert len(outbox.sent) == 1


@pytest.mark.anyio
async def test_cron_secret_is_enforced_when_configured(client: AsyncClient, outbox, monkeypatch) -> None:
  monkeypatch.setattr(settings, "cron_secret", "s3cret")
  denied = await client.get("/cron/daily-digest", params={"test": 1})
  assert denied.status_code == 401
  wrong = await client.get("/cron/daily-digest", params={"test": 1}, headers={"X-Cron-Secret": "nope"})
  assert wrong.status_code == 401
  ok = await client.get("/cron/daily-digest", params={"test": 1}, headers={"X-Cron-Secret": "s3cret"})
  assert ok.status_code == 200, ok.text


@pytest.mark.anyio
async def test_single_user_run_does_not_claim_the_day(client: AsyncClient, outbox) -> None:
  dana = await _seed_tasks(client)
  outbox.sent.clear()

  scoped = (await client.get("/cron/daily-digest", params={"user_id": dana["id"]})).json()["summary"]
  assert scoped["alreadyRan"] is False
  assert scoped["emailsSent"] == 1

  full = (await client.get("/cron/daily-digest")).json()["summary"]
  assert full["alreadyRan"] is False
  assert full["emailsSent"] == 1
  assert len(outbox.to("dana@taskflow.local")) == 2

  again = (await client.get("/cron/daily-digest")).json()["summary"]
  assert again["alreadyRan"] is True
