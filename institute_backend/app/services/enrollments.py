import logging

from sqlalchemy.orm import Session

from app.core.errors import BadRequestError
from app.core.security import utcnow
from app.models.course import Batch
from app.models.enrollment import Enrollment
from app.models.registration import Registration
from app.schemas.course import BatchStatus
from app.schemas.enrollment import EnrollmentStatus
from app.schemas.payment import PaymentStatus

logger = logging.getLogger(__name__)


def _pick_batch(db: Session, registration: Registration) -> Batch | None:
    # A preference only counts when it names a batch of the registered course.
    if registration.batch_preference:
        preferred = (
            db.query(Batch)
            .filter(Batch.id == registration.batch_preference, Batch.course_id == registration.course_id)
            .first()
        )
        if preferred is not None:
            return preferred
    return (
        db.query(Batch)
        .filter(Batch.course_id == registration.course_id, Batch.status == BatchStatus.UPCOMING.value)
        .order_by(Batch.start_date)
        .first()
    )


def enroll_from_registration(db: Session, registration: Registration) -> Enrollment:
    """Add the enrollment an approved registration grants. The caller commits."""
    batch = _pick_batch(db, registration)
    if batch is None:
        raise BadRequestError(
            "No valid batch found for this course. Please assign one manually.",
            code="BATCH_NOT_FOUND",
        )
    enrollment = Enrollment(
        student_id=registration.student_id,
        batch_id=batch.id,
        registration_id=registration.id,
        status=EnrollmentStatus.ACTIVE.value,
        payment_status=PaymentStatus.APPROVED.value,
        enrolled_at=utcnow(),
    )
    db.add(enrollment)
    logger.info(
        "Enrollment created from registration registration_id=%s student_id=%s batch_id=%s",
        registration.id,
        registration.student_id,
        batch.id,
    )
    return enrollment


def list_enrollments(
    db: Session,
    student_id: str | None = None,
    batch_id: str | None = None,
    status: EnrollmentStatus | None = None,
) -> list[Enrollment]:
    query = db.query(Enrollment)
    if student_id:
        query = query.filter(Enrollment.student_id == student_id)
    if batch_id:
        query = query.filter(Enrollment.batch_id == batch_id)
    if status is not None:
        query = query.filter(Enrollment.status == status.value)
    return query.order_by(Enrollment.created_at.desc()).all()
