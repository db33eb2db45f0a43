from enum import Enum

from fastapi import Depends, Request

from app.core.errors import ForbiddenError, UnauthorizedError
from app.core.security import Identity


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STAFF = "STAFF"
    STUDENT = "STUDENT"
    FINANCE = "FINANCE"
    PARENT = "PARENT"


class Permission(str, Enum):
    USER_CREATE = "user:create"
    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_LIST = "user:list"

    COURSE_CREATE = "course:create"
    COURSE_READ = "course:read"
    COURSE_UPDATE = "course:update"
    COURSE_DELETE = "course:delete"
    COURSE_LIST = "course:list"

    BATCH_CREATE = "batch:create"
    BATCH_READ = "batch:read"
    BATCH_UPDATE = "batch:update"
    BATCH_LIST = "batch:list"

    ENROLLMENT_CREATE = "enrollment:create"
    ENROLLMENT_READ = "enrollment:read"
    ENROLLMENT_UPDATE = "enrollment:update"
    ENROLLMENT_LIST = "enrollment:list"

    PAYMENT_CREATE = "payment:create"
    PAYMENT_READ = "payment:read"
    PAYMENT_APPROVE = "payment:approve"
    PAYMENT_REJECT = "payment:reject"
    PAYMENT_LIST = "payment:list"

    REGISTRATION_ACADEMIC_REVIEW = "registration:academic_review"
    REGISTRATION_FINANCE_VERIFY = "registration:finance_verify"
    REGISTRATION_APPROVE = "registration:approve"
    REGISTRATION_READ = "registration:read"
    REGISTRATION_LIST = "registration:list"


ROLE_PERMISSIONS: dict[str, frozenset[Permission]] = {
    Role.SUPER_ADMIN.value: frozenset(Permission),
    # Admins hold every permission defined here; the two differ only on routes
    # gated by role, such as changing a user role.
    Role.ADMIN.value: frozenset(Permission),
    Role.TEACHER.value: frozenset(
        {
            Permission.COURSE_READ,
            Permission.COURSE_LIST,
            Permission.BATCH_READ,
            Permission.BATCH_UPDATE,  # own batches only
            Permission.BATCH_LIST,
            Permission.ENROLLMENT_READ,
            Permission.ENROLLMENT_LIST,
        }
    ),
    Role.FINANCE.value: frozenset(
        {
            Permission.PAYMENT_READ,
            Permission.PAYMENT_LIST,
            Permission.PAYMENT_APPROVE,
            Permission.PAYMENT_REJECT,
            Permission.REGISTRATION_READ,
            Permission.REGISTRATION_LIST,
            Permission.REGISTRATION_FINANCE_VERIFY,
        }
    ),
    Role.STAFF.value: frozenset(
        {
            Permission.COURSE_READ,
            Permission.COURSE_LIST,
            Permission.BATCH_READ,
            Permission.BATCH_LIST,
            Permission.ENROLLMENT_READ,
            Permission.ENROLLMENT_LIST,
            Permission.PAYMENT_READ,
            Permission.PAYMENT_LIST,
            Permission.REGISTRATION_READ,
            Permission.REGISTRATION_LIST,
            Permission.REGISTRATION_ACADEMIC_REVIEW,
        }
    ),
    Role.STUDENT.value: frozenset(
        {
            Permission.COURSE_READ,
            Permission.COURSE_LIST,
            Permission.BATCH_READ,
            Permission.ENROLLMENT_READ,
            Permission.PAYMENT_CREATE,
            Permission.PAYMENT_READ,
        }
    ),
    Role.PARENT.value: frozenset(),
}


def has_permission(role: str, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def get_current_identity(request: Request) -> Identity:
    """Identity injected by AuthMiddleware for the current request."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise UnauthorizedError("Unauthorized")
    return identity


def require_permission(permission: Permission):
    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if not has_permission(identity.role, permission):
            raise ForbiddenError(f"Permission denied: {permission.value}")
        return identity

    return dependency


def require_roles(*roles: Role):
    allowed = {role.value for role in roles}

    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            raise ForbiddenError(f"Access denied. Required roles: {', '.join(sorted(allowed))}")
        return identity

    return dependency
