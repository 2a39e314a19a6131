from __future__ import annotations

import pytest
from httpx import AsyncClient

from app.security import InvalidTokenError, issue_access_token, verify_access_token
from conftest import admin_headers, create_project, create_user, login


def test_access_token_round_trip_and_expiry() -> None:
  token = issue_access_token(user_id=7, username="noa", role="member", secret="k", ttl_days=1, now=1_000)
  claims = verify_access_token(token, secret="k", now=1_000 + 3600)
  assert claims["id"] == 7
  assert claims["username"] == "noa"
  with pytest.raises(InvalidTokenError):
    verify_access_token(token, secret="k", now=1_000 + 2 * 86400)
  with pytest.raises(InvalidTokenError):
    verify_access_token(token, secret="other", now=1_000)
  with pytest.raises(InvalidTokenError):
    verify_access_token("not-a-token")


@pytest.mark.anyio
async def test_login_by_username_or_email(client: AsyncClient) -> None:
  by_name = await client.post("/auth/login", json={"username": "admin", "password": "admin1234"})
  assert by_name.status_code == 200, by_name.text
  assert by_name.json()["user"]["role"] == "admin"

  by_email = await client.post("/auth/login", json={"username": "Member@TaskFlow.local", "password": "member1234"})
  assert by_email.status_code == 200, by_email.text

  wrong = await client.post("/auth/login", json={"username": "admin", "password": "nope"})
  assert wrong.status_code == 401

  headers = {"Authorization": f"Bearer {by_name.json()['token']}"}
  me = await client.get("/auth/me", headers=headers)
  assert me.json()["username"] == "admin"
  assert me.json()["lastLogin"] is not None

  assert (await client.get("/auth/me")).status_code == 401
  assert (await client.get("/auth/me", headers={"Authorization": "Bearer junk"})).status_code == 401


@pytest.mark.anyio
async def test_user_admin_rules(client: AsyncClient) -> None:
  headers = await admin_headers(client)
  noa = await create_user(client, headers, "noa", "Noa Levi")

  dup = await client.post(
    "/users",
    headers=headers,
    json={"username": "noa", "email": "other@taskflow.local", "fullName": "Dup", "password": "password123"},
  )
  assert dup.status_code == 409

  noa_headers = await login(client, "noa", "password123")
  assert (await client.post("/users", headers=noa_headers, json={"username": "x", "email": "x@y.z", "fullName": "X", "password": "password123"})).status_code == 403
  assert (await client.patch(f"/users/{noa['id']}", headers=noa_headers, json={"role": "admin"})).status_code == 403

  renamed = await client.patch(f"/users/{noa['id']}", headers=noa_headers, json={"fullName": "Noa L."})
  assert renamed.status_code == 200, renamed.text
  assert renamed.json()["fullName"] == "Noa L."

  assert (await client.delete(f"/users/{noa['id']}", headers=headers)).status_code == 200
  listed = (await client.get("/users", headers=headers)).json()
  assert "noa" not in {u["username"] for u in listed}
  everyone = (await client.get("/users", headers=headers, params={"includeInactive": True})).json()
  assert "noa" in {u["username"] for u in everyone}

  disabled = await client.post("/auth/login", json={"username": "noa", "password": "password123"})
  assert disabled.status_code == 403
  assert (await client.get("/auth/me", headers=noa_headers)).status_code == 403


@pytest.mark.anyio
async def test_projects_and_stats(client: AsyncClient) -> None:
  headers = await admin_headers(client)
  member_headers = await login(client, "member", "member1234")
  await create_user(client, headers, "vera", "Vera", role="viewer")
  viewer_headers = await login(client, "vera", "password123")

  p = await create_project(client, headers, "Launch")
  assert (await client.post("/projects", headers=viewer_headers, json={"name": "Nope"})).status_code == 403
  assert (await client.patch(f"/projects/{p['id']}", headers=member_headers, json={"name": "Mine"})).status_code == 403

  for title, status in [("a", "done"), ("b", "in_progress"), ("c", "not_started")]:
    res = await client.post("/tasks", headers=headers, json={"projectId": p["id"], "title": title, "status": status, "dueDate": "2000-01-01"})
    assert res.status_code == 200, res.text
  assert (await client.post("/tasks", headers=viewer_headers, json={"projectId": p["id"], "title": "v"})).status_code == 403

  got = (await client.get(f"/projects/{p['id']}", headers=headers)).json()
  assert (got["totalTasks"], got["completedTasks"], got["inProgressTasks"]) == (3, 1, 1)

  stats = (await client.get("/stats", headers=headers)).json()
  assert stats["totalProjects"] == 1
  assert stats["totalTasks"] == 3
  assert stats["activeUsers"] == 3
  assert stats["byStatus"] == {"done": 1, "in_progress": 1, "not_started": 1}
  assert stats["overdueTasks"] == 2

  renamed = await client.patch(f"/projects/{p['id']}", headers=headers, json={"name": "Launch 2"})
  assert renamed.json()["name"] == "Launch 2"
  assert (await client.delete(f"/projects/{p['id']}", headers=headers)).status_code == 200
  assert (await client.get("/projects", headers=headers)).json() == []
  assert (await client.get("/activity", headers=headers)).json() == []
