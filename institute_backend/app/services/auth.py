import logging

from fastapi import Depends
from sqlalchemy.orm import Session, joinedload

from app.core.database import get_db
from app.core.errors import BadRequestError, ForbiddenError, UnauthorizedError
from app.core.permissions import Role, get_current_identity
from app.core.security import (
    Identity,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    utcnow,
    verify_password,
)
from app.models.user import Profile, User, UserSession
from app.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, TokenPair, UserOut
from app.schemas.user import UserStatus

logger = logging.getLogger(__name__)


def _access_token_for(user: User) -> str:
    return create_access_token(user.id, email=user.email, role=user.role, status=user.status)


def _issue_tokens(db: Session, user: User) -> TokenPair:
    refresh_token, expires_at = create_refresh_token(user.id)
    db.add(UserSession(user_id=user.id, refresh_token=refresh_token, expires_at=expires_at))
    return TokenPair(access_token=_access_token_for(user), refresh_token=refresh_token)


def register_user(db: Session, payload: RegisterRequest) -> AuthResponse:
    if db.query(User).filter(User.email == payload.email).first():
        raise BadRequestError("Email already exists", code="EMAIL_EXISTS")
    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=Role.STUDENT.value,
        status=UserStatus.ACTIVE.value,
    )
    user.profile = Profile(name=payload.name, phone=payload.phone)
    db.add(user)
    db.flush()
    tokens = _issue_tokens(db, user)
    db.commit()
    db.refresh(user)
    logger.info("New user registered user_id=%s email=%s", user.id, user.email)
    return AuthResponse(**tokens.model_dump(), user=UserOut.model_validate(user))


def login_user(db: Session, payload: LoginRequest) -> AuthResponse:
    user = (
        db.query(User)
        .options(joinedload(User.profile))
        .filter(User.email == payload.email)
        .first()
    )
    if user is None:
        logger.warning("Login attempt with unknown email=%s", payload.email)
        raise UnauthorizedError("Invalid credentials", code="INVALID_CREDENTIALS")
    if user.status != UserStatus.ACTIVE.value:
        logger.warning("Login attempt for inactive account email=%s status=%s", user.email, user.status)
        raise ForbiddenError("Account is not active", code="ACCOUNT_INACTIVE")
    if not verify_password(payload.password, user.password_hash):
        logger.warning("Login attempt with invalid password email=%s", payload.email)
        raise UnauthorizedError("Invalid credentials", code="INVALID_CREDENTIALS")

    tokens = _issue_tokens(db, user)
    db.commit()
    logger.info("User logged in user_id=%s", user.id)
    return AuthResponse(**tokens.model_dump(), user=UserOut.model_validate(user))


def refresh_tokens(db: Session, refresh_token: str) -> TokenPair:
    """Exchange a refresh token for a new pair, rotating the stored session."""
    user_id = decode_refresh_token(refresh_token)
    if user_id is None:
        raise UnauthorizedError("Invalid or expired refresh token", code="INVALID_TOKEN")

    session = (
        db.query(UserSession)
        .filter(UserSession.refresh_token == refresh_token, UserSession.user_id == user_id)
        .first()
    )
    if session is None:
        logger.warning("Refresh attempt with unknown session user_id=%s", user_id)
        raise UnauthorizedError("Invalid refresh token", code="INVALID_TOKEN")
    if session.expires_at <= utcnow():
        db.delete(session)
        db.commit()
        logger.info("Expired session removed user_id=%s", user_id)
        raise UnauthorizedError("Refresh session expired", code="INVALID_TOKEN")

    user = session.user
    if user.status != UserStatus.ACTIVE.value:
        logger.warning("Refresh attempt for inactive account user_id=%s", user.id)
        raise ForbiddenError("Account is not active", code="ACCOUNT_INACTIVE")

    new_refresh_token, expires_at = create_refresh_token(user.id)
    session.refresh_token = new_refresh_token
    session.expires_at = expires_at
    db.commit()
    logger.info("Token refreshed user_id=%s", user.id)
    return TokenPair(access_token=_access_token_for(user), refresh_token=new_refresh_token)


def logout(db: Session, refresh_token: str | None) -> None:
    if refresh_token:
        db.query(UserSession).filter(UserSession.refresh_token == refresh_token).delete(
            synchronize_session=False
        )
        db.commit()


def logout_all(db: Session, user_id: str) -> int:
    deleted = db.query(UserSession).filter(UserSession.user_id == user_id).delete(
        synchronize_session=False
    )
    db.commit()
    logger.info("User logged out from all devices user_id=%s sessions=%s", user_id, deleted)
    return deleted


def verify_token(token: str) -> Identity:
    identity = decode_access_token(token)
    if identity is None:
        raise UnauthorizedError("Invalid token", code="INVALID_TOKEN")
    return identity


def get_current_user(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, identity.sub)
    if user is None:
        raise UnauthorizedError("User not found.")
    return user
