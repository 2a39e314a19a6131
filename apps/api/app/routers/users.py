from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import get_current_user, get_db, require_admin
from app.models import User
from app.schemas import UserCreateIn, UserOut, UserUpdateIn
from app.security import hash_password

router = APIRouter(prefix="/users", tags=["users"])


def user_out(u: User) -> UserOut:
  return UserOut(
    id=u.id,
    username=u.username,
    email=u.email,
    fullName=u.full_name,
    role=u.role,
    avatarUrl=u.avatar_url,
    isActive=bool(u.is_active),
    lastLogin=u.last_login,
    createdAt=u.created_at,
  )


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
  res = await db.execute(select(User).where(User.id == user_id))
  u = res.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
  return u


@router.get("", response_model=list[UserOut])
async def list_users(
  includeInactive: bool = False,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[UserOut]:
  q = select(User).order_by(User.full_name.asc())
  if not (user.role == "admin" and includeInactive):
    q = q.where(User.is_active.is_(True))
  res = await db.execute(q)
  return [user_out(u) for u in res.scalars().all()]


@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> UserOut:
  return user_out(await _get_user_or_404(db, user_id))


@router.post("", response_model=UserOut)
async def create_user(payload: UserCreateIn, actor: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> UserOut:
  require_admin(actor)
  res = await db.execute(select(User).where(or_(User.email == payload.email, User.username == payload.username)))
  if res.scalar_one_or_none():
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username or email already exists")
  u = User(
    username=payload.username,
    email=payload.email,
    full_name=payload.fullName.strip(),
    role=payload.role,
    avatar_url=payload.avatarUrl,
    password_hash=hash_password(payload.password),
    is_active=True,
  )
  db.add(u)
  await db.commit()
  return user_out(u)


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(user_id: int, payload: UserUpdateIn, actor: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> UserOut:
  if actor.id != user_id:
    require_admin(actor)
  u = await _get_user_or_404(db, user_id)
  fields_set = payload.model_fields_set
  if ("role" in fields_set or "isActive" in fields_set) and actor.role != "admin":
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin required")

  if "email" in fields_set and payload.email:
    email = payload.email.strip().lower()
    if email != u.email:
      dup = await db.execute(select(User.id).where(User.email == email, User.id != u.id))
      if dup.first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
      u.email = email
  if "fullName" in fields_set and payload.fullName:
    u.full_name = payload.fullName.strip()
  if "role" in fields_set and payload.role:
    u.role = payload.role
  if "avatarUrl" in fields_set:
    u.avatar_url = payload.avatarUrl
  if "isActive" in fields_set and payload.isActive is not None:
    u.is_active = payload.isActive
  if "password" in fields_set and payload.password:
    u.password_hash = hash_password(payload.password)
  await db.commit()
  return user_out(u)


@router.delete("/{user_id}")
async def delete_user(user_id: int, actor: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  require_admin(actor)
  if actor.id == user_id:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete yourself")
  u = await _get_user_or_404(db, user_id)
  # Soft delete keeps task history and activity rows intact.
  u.is_active = False
  await db.commit()
  return {"success": True}
