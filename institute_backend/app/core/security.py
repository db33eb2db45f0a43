import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
_ALGORITHM = "HS256"

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class Identity:
    """Claims of a verified access token, as handed to downstream handlers."""

    sub: str
    role: str
    email: str
    status: str


def utcnow() -> datetime:
    # Naive UTC, matching what the DateTime columns store.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hash_password(plain: str) -> str:
    return _pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return _pwd_context.verify(plain, hashed)


def create_access_token(
    subject: Any,
    email: str,
    role: str,
    status: str,
    expires_delta: timedelta | None = None,
) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    expire = utcnow() + expires_delta
    return jwt.encode(
        {
            "sub": str(subject),
            "email": email,
            "role": role,
            "status": status,
            "type": ACCESS_TOKEN_TYPE,
            "exp": expire,
        },
        settings.jwt_secret,
        algorithm=_ALGORITHM,
    )


def create_refresh_token(subject: Any, expires_delta: timedelta | None = None) -> tuple[str, datetime]:
    """Return a signed refresh token and the moment it expires."""
    if expires_delta is None:
        expires_delta = timedelta(days=settings.refresh_token_expire_days)
    expire = utcnow() + expires_delta
    token = jwt.encode(
        {
            "sub": str(subject),
            "type": REFRESH_TOKEN_TYPE,
            "jti": str(uuid.uuid4()),
            "exp": expire,
        },
        settings.jwt_refresh_secret,
        algorithm=_ALGORITHM,
    )
    return token, expire


def decode_access_token(token: str) -> Identity | None:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        return None
    try:
        return Identity(
            sub=str(payload["sub"]),
            role=str(payload["role"]),
            email=str(payload["email"]),
            status=str(payload["status"]),
        )
    except KeyError:
        return None


def decode_refresh_token(token: str) -> str | None:
    """Return the subject of a valid refresh token, or None."""
    try:
        payload = jwt.decode(token, settings.jwt_refresh_secret, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != REFRESH_TOKEN_TYPE or "sub" not in payload:
        return None
    return str(payload["sub"])
