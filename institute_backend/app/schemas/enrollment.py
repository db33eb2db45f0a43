from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    PENDING = "PENDING"


class EnrollmentResponse(BaseModel):
    id: str
    student_id: str
    batch_id: str
    registration_id: str | None = None
    status: str
    payment_status: str
    enrolled_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
