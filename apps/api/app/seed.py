from __future__ import annotations

import asyncio
import os
import secrets

from sqlalchemy import select

from app.db import SessionLocal
from app.models import Project, User
from app.security import hash_password

ADMIN = ("admin", "admin@taskflow.local", "Admin")
MEMBER = ("member", "member@taskflow.local", "Member")


def _bootstrap_password(env_key: str) -> tuple[str, bool]:
  configured = (os.getenv(env_key) or "").strip()
  if configured:
    return configured, False
  return secrets.token_urlsafe(14), True


async def _ensure_user(db, spec: tuple[str, str, str], role: str, env_key: str, boot_lines: list[str]) -> User:
  username, email, full_name = spec
  res = await db.execute(select(User).where(User.username == username))
  u = res.scalar_one_or_none()
  if u:
    return u
  password, generated = _bootstrap_password(env_key)
  u = User(username=username, email=email, full_name=full_name, role=role, password_hash=hash_password(password))
  db.add(u)
  boot_lines.append(f"{username} / {email}={password} (generated={str(generated).lower()})")
  return u


async def seed() -> list[str]:
  boot_lines: list[str] = []
  async with SessionLocal() as db:
    admin = await _ensure_user(db, ADMIN, "admin", "SEED_ADMIN_PASSWORD", boot_lines)
    await _ensure_user(db, MEMBER, "member", "SEED_MEMBER_PASSWORD", boot_lines)
    await db.flush()

    if os.getenv("SEED_DEMO_PROJECT", "").strip().lower() in ("1", "true", "yes", "y"):
      res = await db.execute(select(Project).where(Project.name == "TaskFlow Demo", Project.owner_id == admin.id))
      if not res.scalar_one_or_none():
        db.add(Project(name="TaskFlow Demo", description="Sample project", color="#6366f1", owner_id=admin.id))

    await db.commit()
  return boot_lines


def main() -> None:
  boot_lines = asyncio.run(seed())
  if boot_lines:
    print("TaskFlow seed credentials created:")
    for ln in boot_lines:
      print(f"  {ln}")


if __name__ == "__main__":
  main()
