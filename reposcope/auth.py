from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import HTTPException, Request
from jose import JWTError, jwt
from pydantic import BaseModel

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_EXPIRY = timedelta(days=20)
BCRYPT_ROUNDS = 10

MIN_USERNAME = 3
MIN_PASSWORD = 6
# bcrypt only looks at the first 72 bytes; newer releases raise on longer input
BCRYPT_MAX_BYTES = 72


class AuthPayload(BaseModel):
    userId: str
    username: str


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        # not a bcrypt hash
        return False


def sign_token(payload: AuthPayload, secret: str) -> str:
    claims = payload.model_dump()
    claims["exp"] = datetime.now(timezone.utc) + TOKEN_EXPIRY
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def verify_token(token: str, secret: str) -> Optional[AuthPayload]:
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if not claims.get("userId") or not claims.get("username"):
        return None
    return AuthPayload(userId=claims["userId"], username=claims["username"])


def validate_signup(username: str, password: str) -> Optional[str]:
    """Returns the user-facing problem with the credentials, or None."""
    if not username or not password:
        return "Username and password are required"
    if len(username) < MIN_USERNAME:
        return f"Username must be at least {MIN_USERNAME} characters"
    if len(password) < MIN_PASSWORD:
        return f"Password must be at least {MIN_PASSWORD} characters"
    return None


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer "):].strip() or None


def authenticate(request: Request, secret: str, storage) -> AuthPayload:
    """Resolves the caller or raises 401."""
    token = bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    payload = verify_token(token, secret)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    if storage.get_user(payload.userId) is None:
        raise HTTPException(status_code=401, detail="User not found")
    return payload


def authenticate_optional(request: Request, secret: str) -> Optional[AuthPayload]:
    token = bearer_token(request)
    if not token:
        return None
    return verify_token(token, secret)
