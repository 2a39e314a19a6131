from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import get_current_user, get_db
from app.models import User
from app.routers.users import user_out
from app.schemas import LoginIn, LoginOut, UserOut
from app.security import issue_access_token, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginOut)
async def login(payload: LoginIn, db: AsyncSession = Depends(get_db)) -> LoginOut:
  key = payload.username.strip()
  res = await db.execute(select(User).where(or_(User.username == key, User.email == key.lower())))
  u = res.scalar_one_or_none()
  if not u or not verify_password(payload.password, u.password_hash):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
  if not bool(u.is_active):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User disabled")

  u.last_login = datetime.now(timezone.utc)
  await db.commit()
  token = issue_access_token(user_id=u.id, username=u.username, role=u.role)
  return LoginOut(token=token, user=user_out(u))


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)) -> UserOut:
  return user_out(user)
