import logging

from sqlalchemy.orm import Session, joinedload

from app.core.errors import NotFoundError
from app.core.permissions import Role
from app.models.user import User, UserSession
from app.schemas.user import UserStatus

logger = logging.getLogger(__name__)


def list_users(db: Session, role: Role | None = None, status: UserStatus | None = None) -> list[User]:
    query = db.query(User).options(joinedload(User.profile))
    if role is not None:
        query = query.filter(User.role == role.value)
    if status is not None:
        query = query.filter(User.status == status.value)
    return query.order_by(User.created_at).all()


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return user


def update_status(db: Session, user_id: str, status: UserStatus, admin_id: str) -> User:
    """Soft status change; users are never deleted."""
    user = get_user(db, user_id)
    old_status = user.status
    user.status = status.value
    if status is not UserStatus.ACTIVE:
        # Outstanding refresh tokens stop working as soon as the account does.
        db.query(UserSession).filter(UserSession.user_id == user_id).delete(synchronize_session=False)
    db.commit()
    db.refresh(user)
    logger.info("User status updated user_id=%s %s -> %s by %s", user_id, old_status, status.value, admin_id)
    return user


def update_role(db: Session, user_id: str, role: Role, admin_id: str) -> User:
    user = get_user(db, user_id)
    old_role = user.role
    user.role = role.value
    db.commit()
    db.refresh(user)
    logger.info("User role updated user_id=%s %s -> %s by %s", user_id, old_role, role.value, admin_id)
    return user
