from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coursetrack.domain.week_resolver import Trimester
from coursetrack.models import ModuleHalf, TaskStatus


def _normalize_trimester(value: Any) -> Any:
    if value is None:
        return value
    parsed = Trimester.parse(value)
    if parsed is None:
        raise ValueError('trimester must be one of T1, T2, T3')
    return parsed.value


class ActivityLogCreateRequest(BaseModel):
    allocation_id: int
    week_number: int
    attendance: list[Any] = Field(default_factory=list)
    formative_one_grading: TaskStatus
    formative_two_grading: TaskStatus
    summative_grading: TaskStatus
    course_moderation: TaskStatus
    intranet_sync: TaskStatus
    grade_book_status: TaskStatus


class ActivityLogUpdateRequest(BaseModel):
    week_number: int | None = None
    attendance: list[Any] | None = None
    formative_one_grading: TaskStatus | None = None
    formative_two_grading: TaskStatus | None = None
    summative_grading: TaskStatus | None = None
    course_moderation: TaskStatus | None = None
    intranet_sync: TaskStatus | None = None
    grade_book_status: TaskStatus | None = None


class ActivityLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    allocation_id: int
    week_number: int
    attendance: list[Any] = Field(default_factory=list)
    formative_one_grading: str
    formative_two_grading: str
    summative_grading: str
    course_moderation: str
    intranet_sync: str
    grade_book_status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AllocationCreateRequest(BaseModel):
    module_id: int
    class_id: int
    facilitator_id: int
    mode_id: int
    trimester: str
    year: int = Field(ge=2000, le=2100)

    normalize_trimester = field_validator('trimester', mode='before')(_normalize_trimester)


class AllocationUpdateRequest(BaseModel):
    module_id: int | None = None
    class_id: int | None = None
    facilitator_id: int | None = None
    mode_id: int | None = None
    trimester: str | None = None
    year: int | None = Field(default=None, ge=2000, le=2100)

    normalize_trimester = field_validator('trimester', mode='before')(_normalize_trimester)


class AllocationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    module_id: int
    class_id: int
    facilitator_id: int
    mode_id: int
    trimester: str
    year: int
    created_at: datetime | None = None


class ModuleCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=180)
    half: ModuleHalf


class ModuleUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=180)
    half: ModuleHalf | None = None


class ModuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    half: str


class ClassCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=40)
    start_date: date
    graduation_date: date


class ClassUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=40)
    start_date: date | None = None
    graduation_date: date | None = None


class ClassOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    start_date: date | None = None
    graduation_date: date | None = None


class FacilitatorCreateRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    name: str = Field(min_length=1, max_length=180)
    qualification: str = ''
    location: str = ''
    manager_id: int | None = None


class FacilitatorUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=180)
    qualification: str | None = None
    location: str | None = None
    manager_id: int | None = None


class FacilitatorOut(BaseModel):
    id: int
    user_id: int
    email: str
    name: str
    qualification: str
    location: str
    manager_id: int | None = None


class StudentCreateRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    name: str = Field(min_length=1, max_length=180)
    class_id: int | None = None


class StudentUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=180)
    class_id: int | None = None


class StudentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    class_id: int | None = None
