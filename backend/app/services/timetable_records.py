from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class TeacherRecord:
    id: str
    name: str
    subjects: tuple[str, ...]


@dataclass(frozen=True)
class EntryRecord:
    id: str
    day: str
    time: str
    grade: str
    subject: str
    teacher_id: str
    teacher_name: str
    curriculum: str

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class EntryDraft:
    """A candidate entry before the store has assigned an id."""

    day: str
    time: str
    grade: str
    subject: str
    teacher_id: str
    teacher_name: str = ""
    curriculum: str = ""
    created_by_id: str | None = None

    def missing_fields(self) -> list[str]:
        values = {
            "day": self.day,
            "time": self.time,
            "grade": self.grade,
            "subject": self.subject,
            "teacher_id": self.teacher_id,
        }
        return [name for name, value in values.items() if not (value or "").strip()]
