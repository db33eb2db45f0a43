from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import ForbiddenError
from app.core.middleware import REFRESH_COOKIE, CookieSettings
from app.core.permissions import (
    Permission,
    Role,
    get_current_identity,
    has_permission,
    require_permission,
    require_roles,
)
from app.core.security import Identity
from app.models.user import User
from app.schemas.auth import (
    AuthResponse,
    IdentityOut,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserOut,
    VerifyRequest,
)
from app.schemas.common import ApiResponse, MessageOut
from app.schemas.course import (
    BatchCreate,
    BatchResponse,
    BatchStatus,
    CourseCreate,
    CourseResponse,
    CourseStatus,
    CourseUpdateRequest,
)
from app.schemas.enrollment import EnrollmentResponse, EnrollmentStatus
from app.schemas.payment import (
    PaymentCreate,
    PaymentDecisionResponse,
    PaymentPage,
    PaymentRejectRequest,
    PaymentResponse,
    PaymentStatus,
)
from app.schemas.registration import RegistrationCreate, RegistrationDecision, RegistrationResponse
from app.schemas.user import UserRoleUpdateRequest, UserStatus, UserStatusUpdateRequest
from app.services import courses as course_service
from app.services import payments as payment_service
from app.services import registrations as registration_service
from app.services import users as user_service
from app.services.auth import (
    get_current_user,
    login_user,
    logout,
    logout_all,
    refresh_tokens,
    register_user,
    verify_token,
)
from app.services.enrollments import list_enrollments
from app.services.registration_workflow import Gate, RegistrationStatus

router = APIRouter(prefix=settings.api_prefix)

_cookies = CookieSettings.from_settings(settings)


def _ok(data) -> dict:
    return {"success": True, "data": data}


# ── Auth ──────────────────────────────────────────────────────────────────────

@router.post("/auth/register", response_model=ApiResponse[AuthResponse], status_code=201)
def register_endpoint(payload: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    result = register_user(db, payload)
    _cookies.set_tokens(response, result)
    return _ok(result)


@router.post("/auth/login", response_model=ApiResponse[AuthResponse])
def login_endpoint(payload: LoginRequest, response: Response, db: Session = Depends(get_db)):
    result = login_user(db, payload)
    _cookies.set_tokens(response, result)
    return _ok(result)


@router.post("/auth/refresh", response_model=ApiResponse[TokenPair])
def refresh_endpoint(payload: RefreshRequest, response: Response, db: Session = Depends(get_db)):
    tokens = refresh_tokens(db, payload.refresh_token)
    _cookies.set_tokens(response, tokens)
    return _ok(tokens)


@router.post("/auth/verify", response_model=ApiResponse[IdentityOut])
def verify_endpoint(payload: VerifyRequest):
    identity = verify_token(payload.token)
    return _ok(
        IdentityOut(user_id=identity.sub, email=identity.email, role=identity.role, status=identity.status)
    )


@router.post("/auth/logout", response_model=ApiResponse[MessageOut])
def logout_endpoint(
    request: Request,
    response: Response,
    payload: LogoutRequest | None = None,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    refresh_token = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_COOKIE)
    logout(db, refresh_token)
    _cookies.clear(response)
    return _ok(MessageOut(message="Logged out successfully"))


@router.post("/auth/logout-all", response_model=ApiResponse[MessageOut])
def logout_all_endpoint(
    response: Response,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    logout_all(db, identity.sub)
    _cookies.clear(response)
    return _ok(MessageOut(message="Logged out from all devices successfully"))


@router.get("/auth/me", response_model=ApiResponse[UserOut])
def me_endpoint(current_user: User = Depends(get_current_user)):
    return _ok(current_user)


# ── Courses & batches ─────────────────────────────────────────────────────────
# NOTE: /courses/public must be registered before /courses/{course_id}.

@router.get("/courses/public", response_model=ApiResponse[list[CourseResponse]])
def public_courses_endpoint(db: Session = Depends(get_db)):
    return _ok(course_service.list_courses(db, CourseStatus.ACTIVE))


@router.post("/courses", response_model=ApiResponse[CourseResponse], status_code=201)
def create_course_endpoint(
    payload: CourseCreate,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.COURSE_CREATE)),
):
    return _ok(course_service.create_course(db, payload))


@router.get("/courses", response_model=ApiResponse[list[CourseResponse]])
def list_courses_endpoint(
    status: CourseStatus | None = None,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.COURSE_LIST)),
):
    return _ok(course_service.list_courses(db, status))


@router.get("/courses/{course_id}", response_model=ApiResponse[CourseResponse])
def get_course_endpoint(
    course_id: str,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.COURSE_READ)),
):
    return _ok(course_service.get_course(db, course_id))


@router.patch("/courses/{course_id}", response_model=ApiResponse[CourseResponse])
def update_course_endpoint(
    course_id: str,
    payload: CourseUpdateRequest,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.COURSE_UPDATE)),
):
    return _ok(course_service.update_course(db, course_id, payload))


@router.delete("/courses/{course_id}", response_model=ApiResponse[CourseResponse])
def archive_course_endpoint(
    course_id: str,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.COURSE_DELETE)),
):
    return _ok(course_service.archive_course(db, course_id))


@router.post("/batches", response_model=ApiResponse[BatchResponse], status_code=201)
def create_batch_endpoint(
    payload: BatchCreate,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.BATCH_CREATE)),
):
    return _ok(course_service.create_batch(db, payload))


@router.get("/batches", response_model=ApiResponse[list[BatchResponse]])
def list_batches_endpoint(
    course_id: str | None = None,
    status: BatchStatus | None = None,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.BATCH_LIST)),
):
    return _ok(course_service.list_batches(db, course_id, status))


@router.get("/batches/{batch_id}", response_model=ApiResponse[BatchResponse])
def get_batch_endpoint(
    batch_id: str,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.BATCH_READ)),
):
    return _ok(course_service.get_batch(db, batch_id))


# ── Registrations ─────────────────────────────────────────────────────────────

@router.post("/registrations", response_model=ApiResponse[RegistrationResponse], status_code=201)
def submit_registration_endpoint(
    payload: RegistrationCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return _ok(registration_service.submit_registration(db, identity.sub, payload))


@router.get("/registrations", response_model=ApiResponse[list[RegistrationResponse]])
def list_registrations_endpoint(
    status: RegistrationStatus | None = Query(None, description="Omit for the open approval queue"),
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.REGISTRATION_LIST)),
):
    return _ok(registration_service.list_registrations(db, status))


@router.get("/registrations/{registration_id}", response_model=ApiResponse[RegistrationResponse])
def get_registration_endpoint(
    registration_id: str,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.REGISTRATION_READ)),
):
    return _ok(registration_service.get_registration(db, registration_id))


@router.patch(
    "/registrations/{registration_id}/academic-review",
    response_model=ApiResponse[RegistrationResponse],
)
def academic_review_endpoint(
    registration_id: str,
    payload: RegistrationDecision,
    db: Session = Depends(get_db),
    reviewer: Identity = Depends(require_permission(Permission.REGISTRATION_ACADEMIC_REVIEW)),
):
    return _ok(
        registration_service.decide(db, registration_id, Gate.ACADEMIC_REVIEW, reviewer.sub, payload)
    )


@router.patch(
    "/registrations/{registration_id}/financial-verify",
    response_model=ApiResponse[RegistrationResponse],
)
def financial_verify_endpoint(
    registration_id: str,
    payload: RegistrationDecision,
    db: Session = Depends(get_db),
    verifier: Identity = Depends(require_permission(Permission.REGISTRATION_FINANCE_VERIFY)),
):
    return _ok(
        registration_service.decide(db, registration_id, Gate.FINANCIAL_VERIFY, verifier.sub, payload)
    )


@router.patch(
    "/registrations/{registration_id}/final-approve",
    response_model=ApiResponse[RegistrationResponse],
)
def final_approve_endpoint(
    registration_id: str,
    payload: RegistrationDecision,
    db: Session = Depends(get_db),
    approver: Identity = Depends(require_permission(Permission.REGISTRATION_APPROVE)),
):
    return _ok(
        registration_service.decide(db, registration_id, Gate.FINAL_APPROVE, approver.sub, payload)
    )


# ── Enrollments ───────────────────────────────────────────────────────────────

@router.get("/enrollments/my", response_model=ApiResponse[list[EnrollmentResponse]])
def my_enrollments_endpoint(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return _ok(list_enrollments(db, student_id=identity.sub))


@router.get("/enrollments", response_model=ApiResponse[list[EnrollmentResponse]])
def list_enrollments_endpoint(
    student_id: str | None = None,
    batch_id: str | None = None,
    status: EnrollmentStatus | None = None,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.ENROLLMENT_LIST)),
):
    return _ok(list_enrollments(db, student_id=student_id, batch_id=batch_id, status=status))


# ── Payments ──────────────────────────────────────────────────────────────────
# NOTE: literal segments (/my-payments, /pending) come before /payments/{payment_id}.

@router.post("/payments", response_model=ApiResponse[PaymentResponse], status_code=201)
def upload_payment_endpoint(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    student: Identity = Depends(require_permission(Permission.PAYMENT_CREATE)),
):
    return _ok(payment_service.create_payment(db, student.sub, payload))


@router.get("/payments/my-payments", response_model=ApiResponse[PaymentPage])
def my_payments_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return _ok(payment_service.list_payments(db, page, page_size, student_id=identity.sub))


@router.get("/payments/pending", response_model=ApiResponse[PaymentPage])
def pending_payments_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.PAYMENT_LIST)),
):
    return _ok(payment_service.list_payments(db, page, page_size, status=PaymentStatus.PENDING))


@router.get("/payments", response_model=ApiResponse[PaymentPage])
def list_payments_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    status: PaymentStatus | None = None,
    student_id: str | None = None,
    enrollment_id: str | None = None,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.PAYMENT_LIST)),
):
    return _ok(
        payment_service.list_payments(
            db, page, page_size, status=status, student_id=student_id, enrollment_id=enrollment_id
        )
    )


@router.get("/payments/{payment_id}", response_model=ApiResponse[PaymentResponse])
def get_payment_endpoint(
    payment_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_permission(Permission.PAYMENT_READ)),
):
    payment = payment_service.get_payment(db, payment_id)
    # Students hold PAYMENT_READ for their own payments only.
    if payment.student_id != identity.sub and not has_permission(identity.role, Permission.PAYMENT_LIST):
        raise ForbiddenError("You can only view your own payments")
    return _ok(payment)


@router.post("/payments/{payment_id}/approve", response_model=ApiResponse[PaymentDecisionResponse])
def approve_payment_endpoint(
    payment_id: str,
    db: Session = Depends(get_db),
    approver: Identity = Depends(require_permission(Permission.PAYMENT_APPROVE)),
):
    payment, enrollment = payment_service.approve_payment(db, payment_id, approver.sub)
    return _ok({"payment": payment, "enrollment": enrollment})


@router.post("/payments/{payment_id}/reject", response_model=ApiResponse[PaymentDecisionResponse])
def reject_payment_endpoint(
    payment_id: str,
    payload: PaymentRejectRequest,
    db: Session = Depends(get_db),
    reviewer: Identity = Depends(require_permission(Permission.PAYMENT_REJECT)),
):
    payment, enrollment = payment_service.reject_payment(db, payment_id, reviewer.sub, payload.reason)
    return _ok({"payment": payment, "enrollment": enrollment})


# ── Admin ─────────────────────────────────────────────────────────────────────
# Everything under /admin is also role-gated by AuthMiddleware's route table.

@router.get("/admin/users", response_model=ApiResponse[list[UserOut]])
def list_users_endpoint(
    role: Role | None = None,
    status: UserStatus | None = None,
    db: Session = Depends(get_db),
    _: Identity = Depends(require_permission(Permission.USER_LIST)),
):
    return _ok(user_service.list_users(db, role, status))


@router.patch("/admin/users/{user_id}/status", response_model=ApiResponse[UserOut])
def update_user_status_endpoint(
    user_id: str,
    payload: UserStatusUpdateRequest,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_permission(Permission.USER_UPDATE)),
):
    return _ok(user_service.update_status(db, user_id, payload.status, admin.sub))


@router.patch("/admin/users/{user_id}/role", response_model=ApiResponse[UserOut])
def update_user_role_endpoint(
    user_id: str,
    payload: UserRoleUpdateRequest,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_roles(Role.SUPER_ADMIN)),
):
    return _ok(user_service.update_role(db, user_id, payload.role, admin.sub))
