from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.teacher_application import ApplicationStatus


class TeacherApplicationCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=50)
    experience_years: int = Field(default=0, ge=0, le=60)
    bio: str | None = Field(default=None, max_length=2000)
    subjects: list[str] = Field(min_length=1, max_length=50)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()

    @field_validator("subjects")
    @classmethod
    def normalize_subjects(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        subjects: list[str] = []
        for item in value:
            subject = item.strip()
            if not subject or subject in seen:
                continue
            if len(subject) > 200:
                raise ValueError("Subject name length cannot exceed 200 characters")
            seen.add(subject)
            subjects.append(subject)
        if not subjects:
            raise ValueError("Select at least one subject")
        return subjects


class TeacherApplicationReview(BaseModel):
    decision: Literal["approved", "rejected"]
    notes: str | None = Field(default=None, max_length=2000)


class TeacherApplicationOut(BaseModel):
    id: str
    user_id: str
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    experience_years: int
    bio: str | None = None
    subjects: list[str]
    status: ApplicationStatus
    review_notes: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
