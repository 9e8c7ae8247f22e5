from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DAY_VALUES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)
DAY_ORDER = {day: index for index, day in enumerate(DAY_VALUES)}

GRADE_VALUES = (
    "Stage 1",
    "Stage 2",
    "Stage 3",
    "Stage 4",
    "Stage 5",
    "Stage 6",
    "Checkpoint (Yr 7-9)",
    "IGCSE 1 (Yr 10)",
    "IGCSE 2 (Yr 11)",
    "AS Level",
    "A Level",
)

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
TIME_STEP_MINUTES = 5

SelectionField = Literal["day", "time", "grade", "subject", "teacher_id"]


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def time_options(start: str = "07:00", end: str = "17:00", step: int = TIME_STEP_MINUTES) -> list[str]:
    values: list[str] = []
    current = parse_time_to_minutes(start)
    stop = parse_time_to_minutes(end)
    while current <= stop:
        values.append(f"{current // 60:02d}:{current % 60:02d}")
        current += step
    return values


def _strip(value):
    # Non-string input is left for pydantic's type check.
    return value.strip() if isinstance(value, str) else value


def _clean_day(value):
    day = _strip(value)
    if isinstance(day, str) and day and day not in DAY_VALUES:
        raise ValueError("Invalid day value")
    return day


def _clean_time(value):
    time = _strip(value)
    if isinstance(time, str) and time and not TIME_PATTERN.match(time):
        raise ValueError("Time must be in HH:MM 24-hour format")
    return time


def _clean_grade(value):
    grade = _strip(value)
    if isinstance(grade, str) and grade and grade not in GRADE_VALUES:
        raise ValueError("Invalid grade value")
    return grade


class TimetableEntryDraft(BaseModel):
    # Blank or null fields are allowed here so the scheduler reports them as
    # incomplete_selection instead of a generic validation error.
    day: str = Field(default="", max_length=20)
    time: str = Field(default="", max_length=5)
    grade: str = Field(default="", max_length=50)
    subject: str = Field(default="", max_length=200)
    teacher_id: str = Field(default="", max_length=36)

    @field_validator("day", mode="before")
    @classmethod
    def validate_day(cls, value):
        return _clean_day("" if value is None else value)

    @field_validator("time", mode="before")
    @classmethod
    def validate_time(cls, value):
        return _clean_time("" if value is None else value)

    @field_validator("grade", mode="before")
    @classmethod
    def validate_grade(cls, value):
        return _clean_grade("" if value is None else value)

    @field_validator("subject", "teacher_id", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip("" if value is None else value)


class TimetableEntryOut(BaseModel):
    id: str
    day: str
    time: str
    grade: str
    subject: str
    teacher_id: str
    teacher_name: str
    curriculum: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class TimetableDayOut(BaseModel):
    day: str
    entries: list[TimetableEntryOut]


class TeacherOut(BaseModel):
    id: str
    name: str
    subjects: list[str]

    model_config = {"from_attributes": True}


class TimetableOptionsOut(BaseModel):
    curriculum: str
    days: list[str]
    grades: list[str]
    times: list[str]
    subjects: list[str]


class SessionSelectionUpdate(BaseModel):
    """Partial update of a scheduling session; ``null`` clears a field."""

    day: str | None = Field(default=None, max_length=20)
    time: str | None = Field(default=None, max_length=5)
    grade: str | None = Field(default=None, max_length=50)
    subject: str | None = Field(default=None, max_length=200)
    teacher_id: str | None = Field(default=None, max_length=36)

    @field_validator("day", mode="before")
    @classmethod
    def validate_day(cls, value: str | None) -> str | None:
        return _clean_day(value)

    @field_validator("time", mode="before")
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        return _clean_time(value)

    @field_validator("grade", mode="before")
    @classmethod
    def validate_grade(cls, value: str | None) -> str | None:
        return _clean_grade(value)


class SubmissionOut(BaseModel):
    status: Literal["committed", "rejected", "failed"]
    reason: str | None = None
    message: str
    entry_id: str | None = None
    conflicting_entry: TimetableEntryOut | None = None


class SchedulingSessionOut(BaseModel):
    state: Literal["empty", "partial", "complete", "submitting"]
    day: str | None = None
    time: str | None = None
    grade: str | None = None
    subject: str | None = None
    teacher_id: str | None = None
    eligible_teachers: list[TeacherOut] = Field(default_factory=list)
    last_submission: SubmissionOut | None = None
