from sqlalchemy.orm import Session

from app.core.errors import BadRequestError, NotFoundError
from app.models.course import Batch, Course
from app.schemas.course import BatchCreate, BatchStatus, CourseCreate, CourseStatus, CourseUpdateRequest


def create_course(db: Session, payload: CourseCreate) -> Course:
    if db.query(Course).filter(Course.code == payload.code).first():
        raise BadRequestError(f"Course code '{payload.code}' already exists", code="COURSE_EXISTS")
    course = Course(**payload.model_dump())
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def list_courses(db: Session, status: CourseStatus | None = None) -> list[Course]:
    query = db.query(Course)
    if status is not None:
        query = query.filter(Course.status == status.value)
    return query.order_by(Course.title).all()


def get_course(db: Session, course_id: str) -> Course:
    course = db.get(Course, course_id)
    if course is None:
        raise NotFoundError("Course not found.")
    return course


def update_course(db: Session, course_id: str, payload: CourseUpdateRequest) -> Course:
    course = get_course(db, course_id)
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(course, field, value.value if isinstance(value, CourseStatus) else value)
    db.commit()
    db.refresh(course)
    return course


def archive_course(db: Session, course_id: str) -> Course:
    course = get_course(db, course_id)
    course.status = CourseStatus.ARCHIVED.value
    db.commit()
    db.refresh(course)
    return course


def create_batch(db: Session, payload: BatchCreate) -> Batch:
    get_course(db, payload.course_id)
    if payload.start_date and payload.end_date and payload.end_date < payload.start_date:
        raise BadRequestError("Batch end_date must not precede start_date")
    batch = Batch(**payload.model_dump(exclude={"status"}), status=payload.status.value)
    db.add(batch)
    db.commit()
    db.refresh(batch)
    return batch


def list_batches(
    db: Session, course_id: str | None = None, status: BatchStatus | None = None
) -> list[Batch]:
    query = db.query(Batch)
    if course_id:
        query = query.filter(Batch.course_id == course_id)
    if status is not None:
        query = query.filter(Batch.status == status.value)
    return query.order_by(Batch.start_date, Batch.name).all()


def get_batch(db: Session, batch_id: str) -> Batch:
    batch = db.get(Batch, batch_id)
    if batch is None:
        raise NotFoundError("Batch not found.")
    return batch
