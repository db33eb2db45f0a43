import logging
import math

from sqlalchemy.orm import Session

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.security import utcnow
from app.models.enrollment import Enrollment
from app.models.payment import Payment
from app.schemas.enrollment import EnrollmentStatus
from app.schemas.payment import PaymentCreate, PaymentStatus

logger = logging.getLogger(__name__)


def create_payment(db: Session, student_id: str, payload: PaymentCreate) -> Payment:
    """Record a student's proof of payment for one of their enrollments."""
    enrollment = db.get(Enrollment, payload.enrollment_id)
    if enrollment is None:
        raise NotFoundError("Enrollment not found", code="ENROLLMENT_NOT_FOUND")
    if enrollment.student_id != student_id:
        raise ForbiddenError("You can only upload payment for your own enrollment")
    if db.query(Payment).filter(Payment.transaction_id == payload.transaction_id).first():
        raise BadRequestError(
            "Payment with this transaction ID already exists", code="DUPLICATE_TRANSACTION"
        )

    payment = Payment(student_id=student_id, status=PaymentStatus.PENDING.value, **payload.model_dump())
    db.add(payment)
    db.commit()
    db.refresh(payment)
    logger.info(
        "Payment uploaded payment_id=%s student_id=%s enrollment_id=%s amount=%s",
        payment.id,
        student_id,
        payment.enrollment_id,
        payment.amount,
    )
    return payment


def list_payments(
    db: Session,
    page: int = 1,
    page_size: int = 20,
    status: PaymentStatus | None = None,
    student_id: str | None = None,
    enrollment_id: str | None = None,
) -> dict:
    query = db.query(Payment)
    if status is not None:
        query = query.filter(Payment.status == status.value)
    if student_id:
        query = query.filter(Payment.student_id == student_id)
    if enrollment_id:
        query = query.filter(Payment.enrollment_id == enrollment_id)

    total = query.count()
    payments = (
        query.order_by(Payment.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "payments": payments,
        "pagination": {
            "page": page,
            "pageSize": page_size,
            "total": total,
            "totalPages": math.ceil(total / page_size) if page_size else 0,
        },
    }


def get_payment(db: Session, payment_id: str) -> Payment:
    payment = db.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found", code="PAYMENT_NOT_FOUND")
    return payment


def _decide(db: Session, payment_id: str, values: dict, enrollment_values: dict) -> tuple[Payment, Enrollment]:
    payment = get_payment(db, payment_id)
    if payment.status != PaymentStatus.PENDING.value:
        raise ConflictError(f"Payment already {payment.status.lower()}", code="PAYMENT_ALREADY_PROCESSED")

    updated = (
        db.query(Payment)
        .filter(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING.value)
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        raise ConflictError("Payment was processed by another reviewer", code="PAYMENT_ALREADY_PROCESSED")

    db.query(Enrollment).filter(Enrollment.id == payment.enrollment_id).update(
        enrollment_values, synchronize_session=False
    )
    db.commit()
    db.refresh(payment)
    enrollment = db.get(Enrollment, payment.enrollment_id)
    db.refresh(enrollment)
    return payment, enrollment


def approve_payment(db: Session, payment_id: str, approved_by: str) -> tuple[Payment, Enrollment]:
    now = utcnow()
    payment, enrollment = _decide(
        db,
        payment_id,
        {
            Payment.status: PaymentStatus.APPROVED.value,
            Payment.approved_by: approved_by,
            Payment.approved_at: now,
        },
        {
            Enrollment.status: EnrollmentStatus.ACTIVE.value,
            Enrollment.payment_status: PaymentStatus.APPROVED.value,
            Enrollment.enrolled_at: now,
        },
    )
    logger.info(
        "Payment approved payment_id=%s enrollment_id=%s approved_by=%s",
        payment_id,
        enrollment.id,
        approved_by,
    )
    return payment, enrollment


def reject_payment(
    db: Session, payment_id: str, rejected_by: str, reason: str
) -> tuple[Payment, Enrollment]:
    payment, enrollment = _decide(
        db,
        payment_id,
        {
            Payment.status: PaymentStatus.REJECTED.value,
            Payment.approved_by: rejected_by,
            Payment.approved_at: utcnow(),
            Payment.rejected_reason: reason,
        },
        {Enrollment.payment_status: PaymentStatus.REJECTED.value},
    )
    logger.info("Payment rejected payment_id=%s rejected_by=%s", payment_id, rejected_by)
    return payment, enrollment
