from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from typing import Any

from passlib.context import CryptContext

from app.config import settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class InvalidTokenError(ValueError):
  pass


def hash_password(password: str) -> str:
  return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
  return pwd_context.verify(password, password_hash)


def _b64url(raw: bytes) -> str:
  return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(value: str) -> bytes:
  pad = "=" * (-len(value) % 4)
  return base64.urlsafe_b64decode((value + pad).encode("ascii"))


def _sign(signing_input: str, secret: str) -> str:
  return _b64url(hmac.new(secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256).digest())


def issue_access_token(*, user_id: int, username: str, role: str, secret: str | None = None, ttl_days: int | None = None, now: int | None = None) -> str:
  # HS256 compact token: header.payload.signature
  ts = int(now if now is not None else time.time())
  days = settings.access_token_ttl_days if ttl_days is None else ttl_days
  header = _b64url(json.dumps({"typ": "JWT", "alg": "HS256"}, separators=(",", ":")).encode("utf-8"))
  payload = _b64url(
    json.dumps({"id": user_id, "username": username, "role": role, "exp": ts + days * 24 * 60 * 60}, separators=(",", ":")).encode("utf-8")
  )
  signing_input = f"{header}.{payload}"
  return f"{signing_input}.{_sign(signing_input, secret or settings.app_secret)}"


def verify_access_token(token: str, *, secret: str | None = None, now: int | None = None) -> dict[str, Any]:
  parts = (token or "").strip().split(".")
  if len(parts) != 3:
    raise InvalidTokenError("Malformed token")
  expected = _sign(f"{parts[0]}.{parts[1]}", secret or settings.app_secret)
  if not hmac.compare_digest(expected, parts[2]):
    raise InvalidTokenError("Bad signature")
  try:
    payload = json.loads(_b64url_decode(parts[1]))
  except (ValueError, UnicodeDecodeError) as exc:
    raise InvalidTokenError("Malformed payload") from exc
  if not isinstance(payload, dict) or "id" not in payload:
    raise InvalidTokenError("Malformed payload")
  ts = int(now if now is not None else time.time())
  if int(payload.get("exp") or 0) < ts:
    raise InvalidTokenError("Token expired")
  return payload
