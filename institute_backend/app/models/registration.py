from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from app.core.security import utcnow
from app.models.base import Base, new_id


class Registration(Base):
    __tablename__ = "registrations"

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False)
    batch_preference = Column(String, nullable=True)
    documents = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="PENDING", index=True)
    admin_notes = Column(Text, nullable=True)

    academic_reviewed_by = Column(String(36), nullable=True)
    academic_reviewed_at = Column(DateTime, nullable=True)
    financial_verified_by = Column(String(36), nullable=True)
    financial_verified_at = Column(DateTime, nullable=True)
    approved_by = Column(String(36), nullable=True)
    approved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    student = relationship("User")
    course = relationship("Course")
