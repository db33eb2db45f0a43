import logging

from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.core.security import utcnow
from app.models.course import Course
from app.models.registration import Registration
from app.schemas.registration import RegistrationCreate, RegistrationDecision
from app.services.enrollments import enroll_from_registration
from app.services.registration_workflow import (
    GATE_STAMPS,
    OPEN_STATUSES,
    Gate,
    RegistrationStatus,
    apply_transition,
)

logger = logging.getLogger(__name__)


def submit_registration(db: Session, student_id: str, payload: RegistrationCreate) -> Registration:
    if db.get(Course, payload.course_id) is None:
        raise NotFoundError("Course not found.")
    registration = Registration(
        student_id=student_id,
        course_id=payload.course_id,
        batch_preference=payload.batch_preference,
        documents=payload.documents,
        status=RegistrationStatus.PENDING.value,
    )
    db.add(registration)
    db.commit()
    db.refresh(registration)
    logger.info("New registration submitted registration_id=%s student_id=%s", registration.id, student_id)
    return registration


def get_registration(db: Session, registration_id: str) -> Registration:
    registration = db.get(Registration, registration_id)
    if registration is None:
        raise NotFoundError("Registration not found.", code="REGISTRATION_NOT_FOUND")
    return registration


def list_registrations(db: Session, status: RegistrationStatus | None = None) -> list[Registration]:
    """Approval queue: open registrations oldest first, or every record in ``status``."""
    query = db.query(Registration)
    if status is None:
        query = query.filter(Registration.status.in_([s.value for s in OPEN_STATUSES]))
    else:
        query = query.filter(Registration.status == status.value)
    return query.order_by(Registration.created_at, Registration.id).all()


def decide(
    db: Session,
    registration_id: str,
    gate: Gate,
    actor_id: str,
    decision: RegistrationDecision,
) -> Registration:
    """Run one approval gate on a registration.

    The write only lands if the record still holds the status it was read
    with; a concurrent reviewer that got there first turns this call into a
    ConflictError and the record is left as that reviewer set it.
    """
    registration = get_registration(db, registration_id)
    current = RegistrationStatus(registration.status)
    target = apply_transition(current, gate, decision.status)

    actor_column, at_column = GATE_STAMPS[gate]
    values = {
        Registration.status: target.value,
        getattr(Registration, actor_column): actor_id,
        getattr(Registration, at_column): utcnow(),
    }
    if decision.admin_notes is not None:
        values[Registration.admin_notes] = decision.admin_notes

    updated = (
        db.query(Registration)
        .filter(Registration.id == registration_id, Registration.status == current.value)
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        raise ConflictError("Registration was modified by another reviewer; reload and retry")

    try:
        if target is RegistrationStatus.APPROVED:
            enroll_from_registration(db, registration)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(registration)
    logger.info(
        "Registration %s %s: %s -> %s by %s",
        registration_id,
        gate.value,
        current.value,
        target.value,
        actor_id,
    )
    return registration
