from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.services.registration_workflow import RegistrationStatus


class RegistrationCreate(BaseModel):
    course_id: str = Field(..., min_length=1)
    batch_preference: str | None = None
    documents: Any = None


class RegistrationDecision(BaseModel):
    """Body of every gate endpoint; the gate decides which statuses are legal."""

    status: RegistrationStatus
    admin_notes: str | None = None


class RegistrationResponse(BaseModel):
    id: str
    student_id: str
    course_id: str
    batch_preference: str | None = None
    documents: Any = None
    status: str
    admin_notes: str | None = None
    academic_reviewed_by: str | None = None
    academic_reviewed_at: datetime | None = None
    financial_verified_by: str | None = None
    financial_verified_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
