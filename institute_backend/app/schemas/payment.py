from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from app.schemas.common import Pagination
from app.schemas.enrollment import EnrollmentResponse


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PARTIAL = "PARTIAL"


class PaymentCreate(BaseModel):
    enrollment_id: str
    amount: float = Field(..., gt=0)
    transaction_id: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=10)
    payment_method: str = Field(..., min_length=1)
    # Proof of payment; the file itself lives in external storage.
    screenshot_url: str | None = None
    notes: str | None = None


class PaymentRejectRequest(BaseModel):
    reason: str = Field(..., min_length=10)


class PaymentResponse(BaseModel):
    id: str
    student_id: str
    enrollment_id: str
    amount: float
    transaction_id: str
    payment_method: str
    phone_number: str
    screenshot_url: str | None = None
    notes: str | None = None
    status: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_reason: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class PaymentPage(BaseModel):
    payments: list[PaymentResponse]
    pagination: Pagination


class PaymentDecisionResponse(BaseModel):
    payment: PaymentResponse
    enrollment: EnrollmentResponse
