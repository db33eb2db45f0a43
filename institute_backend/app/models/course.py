from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from app.core.security import utcnow
from app.models.base import Base, new_id


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=new_id)
    code = Column(String, nullable=False, unique=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    fee = Column(Numeric(10, 2), nullable=False, default=0)
    duration_weeks = Column(Integer, nullable=True)
    status = Column(String, nullable=False, default="ACTIVE")  # ACTIVE/ARCHIVED
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    batches = relationship("Batch", back_populates="course")


class Batch(Base):
    __tablename__ = "batches"

    id = Column(String(36), primary_key=True, default=new_id)
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    capacity = Column(Integer, nullable=True)
    teacher_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    status = Column(String, nullable=False, default="UPCOMING")  # UPCOMING/ONGOING/COMPLETED/CANCELLED
    created_at = Column(DateTime, default=utcnow)

    course = relationship("Course", back_populates="batches")
