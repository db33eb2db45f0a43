from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class CourseStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class BatchStatus(str, Enum):
    UPCOMING = "UPCOMING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class CourseCreate(BaseModel):
    code: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str | None = None
    fee: float = Field(0, ge=0)
    duration_weeks: int | None = Field(None, ge=1)


class CourseUpdateRequest(BaseModel):
    """All fields optional; only provided fields are written."""

    title: str | None = Field(None, min_length=1)
    description: str | None = None
    fee: float | None = Field(None, ge=0)
    duration_weeks: int | None = Field(None, ge=1)
    status: CourseStatus | None = None


class CourseResponse(CourseCreate):
    id: str
    status: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class BatchCreate(BaseModel):
    course_id: str
    name: str = Field(..., min_length=1)
    start_date: date | None = None
    end_date: date | None = None
    capacity: int | None = Field(None, ge=1)
    teacher_id: str | None = None
    status: BatchStatus = BatchStatus.UPCOMING


class BatchResponse(BaseModel):
    id: str
    course_id: str
    name: str
    start_date: date | None = None
    end_date: date | None = None
    capacity: int | None = None
    teacher_id: str | None = None
    status: str

    model_config = {"from_attributes": True}
