from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship

from app.core.security import utcnow
from app.models.base import Base, new_id


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    enrollment_id = Column(String(36), ForeignKey("enrollments.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    transaction_id = Column(String, nullable=False, unique=True)
    payment_method = Column(String, nullable=False)
    phone_number = Column(String, nullable=False)
    screenshot_url = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="PENDING", index=True)  # PENDING/APPROVED/REJECTED/PARTIAL
    # Set on approval and on rejection: whoever decided the payment.
    approved_by = Column(String(36), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    enrollment = relationship("Enrollment")
