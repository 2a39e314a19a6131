from __future__ import annotations

import json
import os
import sys
import tempfile
from pathlib import Path

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

_TMP = Path(tempfile.mkdtemp(prefix="taskflow-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP / 'taskflow_test.db'}")
os.environ["MAIL_PROVIDER"] = "local"
os.environ["MAIL_LOCALE"] = "en"
os.environ["NOTIFICATION_LOG_FILE"] = ""
os.environ["DIGEST_LOG_FILE"] = ""
os.environ["SEED_ADMIN_PASSWORD"] = "admin1234"
os.environ["SEED_MEMBER_PASSWORD"] = "member1234"

from app.config import settings  # noqa: E402
from app.db import SessionLocal, engine  # noqa: E402
from app.deps import get_dispatcher  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Base  # noqa: E402
from app.notifications.dispatcher import MailDispatcher  # noqa: E402
from app.seed import seed  # noqa: E402

MAIL_ENDPOINT = "http://mail.test/send"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  await seed()


@pytest.fixture
async def seeded_db() -> None:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  if "test" not in db_name:
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. taskflow_test)."
    )
  await engine.dispose()
  await _reset_db()
  yield
  await engine.dispose()


@pytest.fixture
async def db(seeded_db):
  async with SessionLocal() as session:
    yield session


@pytest.fixture
async def client(seeded_db) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


class MailOutbox:
  """Stands in for the mail service; records every payload the dispatcher posts."""

  def __init__(self) -> None:
    self.sent: list[dict] = []
    self.fail_for: set[str] = set()
    self.error_for: set[str] = set()

  def handler(self, request: httpx.Request) -> httpx.Response:
    payload = json.loads(request.content)
    self.sent.append(payload)
    if payload["to"] in self.error_for:
      return httpx.Response(500, text="upstream exploded")
    if payload["to"] in self.fail_for:
      return httpx.Response(200, json={"success": False, "message": "Mail error: rejected"})
    return httpx.Response(200, json={"success": True, "message": "Email sent successfully"})

  def dispatcher(self) -> MailDispatcher:
    return MailDispatcher(endpoint=MAIL_ENDPOINT, transport=httpx.MockTransport(self.handler))

  def to(self, email: str) -> list[dict]:
    return [m for m in self.sent if m["to"] == email]


@pytest.fixture
def outbox():
  box = MailOutbox()
  app.dependency_overrides[get_dispatcher] = box.dispatcher
  yield box
  app.dependency_overrides.pop(get_dispatcher, None)


async def login(client: AsyncClient, username: str, password: str) -> dict[str, str]:
  res = await client.post("/auth/login", json={"username": username, "password": password})
  assert res.status_code == 200, res.text
  return {"Authorization": f"Bearer {res.json()['token']}"}


async def admin_headers(client: AsyncClient) -> dict[str, str]:
  return await login(client, "admin", "admin1234")


async def create_user(client: AsyncClient, headers: dict[str, str], username: str, full_name: str, *, role: str = "member") -> dict:
  res = await client.post(
    "/users",
    headers=headers,
    json={"username": username, "email": f"{username}@taskflow.local", "fullName": full_name, "role": role, "password": "password123"},
  )
  assert res.status_code == 200, res.text
  return res.json()


async def create_project(client: AsyncClient, headers: dict[str, str], name: str = "Launch") -> dict:
  res = await client.post("/projects", headers=headers, json={"name": name, "description": "", "color": "#6366f1"})
  assert res.status_code == 200, res.text
  return res.json()


def mention_html(user_id: int, label: str) -> str:
  return f'<span class="mention" data-user-id="{user_id}">@{label}</span>'
