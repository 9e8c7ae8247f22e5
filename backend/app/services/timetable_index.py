from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from app.services.timetable_records import TeacherRecord


def _name_key(teacher: TeacherRecord) -> tuple[str, str]:
    return (teacher.name.casefold(), teacher.id)


class SubjectTeacherIndex:
    """Subject/teacher eligibility tables derived from one teacher snapshot.

    The index holds no state beyond the snapshot it was built from; build a
    new one whenever the teacher feed delivers a new snapshot.
    """

    def __init__(self, teachers: Iterable[TeacherRecord]) -> None:
        self._teachers: dict[str, TeacherRecord] = {}
        self._by_subject: dict[str, list[TeacherRecord]] = defaultdict(list)
        self._by_teacher: dict[str, set[str]] = {}

        for teacher in teachers:
            if teacher.id in self._teachers:
                continue
            self._teachers[teacher.id] = teacher
            subjects = {subject for subject in teacher.subjects if subject}
            self._by_teacher[teacher.id] = subjects
            for subject in subjects:
                self._by_subject[subject].append(teacher)

    @property
    def teachers(self) -> list[TeacherRecord]:
        return sorted(self._teachers.values(), key=_name_key)

    def subjects_offered(self) -> list[str]:
        return sorted(self._by_subject)

    def teachers_for(self, subject: str) -> list[TeacherRecord]:
        if not subject:
            raise ValueError("subject must be a non-empty string")
        return sorted(self._by_subject.get(subject, ()), key=_name_key)

    def subjects_for(self, teacher_id: str) -> list[str]:
        return sorted(self._by_teacher.get(teacher_id, ()))

    def teacher(self, teacher_id: str) -> TeacherRecord | None:
        return self._teachers.get(teacher_id)

    def is_eligible(self, teacher_id: str, subject: str) -> bool:
        return subject in self._by_teacher.get(teacher_id, ())
