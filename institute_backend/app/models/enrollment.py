from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from app.core.security import utcnow
from app.models.base import Base, new_id


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    batch_id = Column(String(36), ForeignKey("batches.id"), nullable=False, index=True)
    registration_id = Column(String(36), ForeignKey("registrations.id"), nullable=True)
    status = Column(String, nullable=False, default="PENDING")  # ACTIVE/COMPLETED/CANCELLED/PENDING
    payment_status = Column(String, nullable=False, default="PENDING")  # PENDING/APPROVED/REJECTED/PARTIAL
    enrolled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    batch = relationship("Batch")
