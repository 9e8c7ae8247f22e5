from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from app.services.timetable_index import SubjectTeacherIndex
from app.services.timetable_records import EntryDraft, EntryRecord

# The only grade pair a teacher may hold at the same day/time.
CO_TEACHING_PAIR = frozenset({"Stage 4", "Stage 5"})


class RejectionReason(str, Enum):
    incomplete_selection = "incomplete_selection"
    teacher_not_eligible = "teacher_not_eligible"
    slot_already_scheduled = "slot_already_scheduled"
    teacher_double_booked = "teacher_double_booked"
    persistence_failed = "persistence_failed"


@dataclass(frozen=True)
class Accept:
    accepted = True


@dataclass(frozen=True)
class Reject:
    reason: RejectionReason
    message: str
    conflicting_entry: EntryRecord | None = None

    accepted = False


Decision = Accept | Reject


def is_co_teaching_pair(grade_a: str, grade_b: str) -> bool:
    return frozenset({grade_a, grade_b}) == CO_TEACHING_PAIR


def validate(
    candidate: EntryDraft,
    existing: Iterable[EntryRecord],
    index: SubjectTeacherIndex | None = None,
) -> Decision:
    """Decide whether ``candidate`` may join ``existing``.

    Checks run in a fixed order and the first failure is reported, so the
    same inputs always produce the same reason.
    """
    missing = candidate.missing_fields()
    if missing:
        return Reject(
            reason=RejectionReason.incomplete_selection,
            message=f"Select {', '.join(missing)} before adding the class",
        )

    if index is not None and not index.is_eligible(candidate.teacher_id, candidate.subject):
        teacher = index.teacher(candidate.teacher_id)
        who = teacher.name if teacher is not None else candidate.teacher_id
        return Reject(
            reason=RejectionReason.teacher_not_eligible,
            message=f"{who} is not an approved teacher for {candidate.subject}",
        )

    entries = list(existing)

    for entry in entries:
        if (
            entry.day == candidate.day
            and entry.time == candidate.time
            and entry.grade == candidate.grade
            and entry.subject == candidate.subject
        ):
            return Reject(
                reason=RejectionReason.slot_already_scheduled,
                message=(
                    f"{candidate.subject} for {candidate.grade} is already scheduled "
                    f"on {candidate.day} at {candidate.time}"
                ),
                conflicting_entry=entry,
            )

    for entry in entries:
        if entry.teacher_id != candidate.teacher_id:
            continue
        if entry.day != candidate.day or entry.time != candidate.time:
            continue
        if is_co_teaching_pair(candidate.grade, entry.grade):
            continue
        teacher_name = entry.teacher_name or candidate.teacher_name or candidate.teacher_id
        return Reject(
            reason=RejectionReason.teacher_double_booked,
            message=(
                f"{teacher_name} already teaches {entry.subject} to {entry.grade} "
                f"on {entry.day} at {entry.time}"
            ),
            conflicting_entry=entry,
        )

    return Accept()
