import pytest

from app.services.conflict_service import (
    Accept,
    Reject,
    RejectionReason,
    is_co_teaching_pair,
    validate,
)
from app.services.timetable_index import SubjectTeacherIndex
from app.services.timetable_records import EntryDraft, EntryRecord, TeacherRecord


def make_entry(entry_id, day, time, grade, subject, teacher_id, teacher_name="Ms T"):
    return EntryRecord(
        id=entry_id,
        day=day,
        time=time,
        grade=grade,
        subject=subject,
        teacher_id=teacher_id,
        teacher_name=teacher_name,
        curriculum="British Curriculum",
    )


def test_empty_timetable_accepts_complete_candidate():
    decision = validate(EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", "t1"), [])
    assert isinstance(decision, Accept)
    assert decision.accepted is True


@pytest.mark.parametrize("missing", ["day", "time", "grade", "subject", "teacher_id"])
def test_missing_field_is_incomplete_selection(missing):
    values = {"day": "Monday", "time": "09:00", "grade": "Stage 1", "subject": "Mathematics", "teacher_id": "t1"}
    values[missing] = "  "
    decision = validate(EntryDraft(**values), [])
    assert isinstance(decision, Reject)
    assert decision.reason == RejectionReason.incomplete_selection
    assert missing in decision.message


def test_incomplete_candidate_never_reports_slot_conflict():
    existing = [make_entry("e1", "Monday", "09:00", "Stage 1", "Mathematics", "t1")]
    decision = validate(EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", ""), existing)
    assert decision.reason == RejectionReason.incomplete_selection
    assert decision.conflicting_entry is None


def test_incomplete_candidate_does_not_scan_existing_entries():
    class ExplodingEntries:
        def __iter__(self):
            raise AssertionError("existing entries must not be scanned")

    decision = validate(EntryDraft("", "09:00", "Stage 1", "Mathematics", "t1"), ExplodingEntries())
    assert decision.reason == RejectionReason.incomplete_selection


def test_duplicate_slot_is_rejected_with_conflicting_entry():
    existing = [make_entry("e1", "Monday", "09:00", "Stage 1", "Mathematics", "t1")]
    decision = validate(EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", "t2"), existing)
    assert decision.reason == RejectionReason.slot_already_scheduled
    assert decision.conflicting_entry.id == "e1"


def test_duplicate_slot_wins_over_double_booking():
    existing = [make_entry("e1", "Monday", "09:00", "Stage 1", "Mathematics", "t1")]
    decision = validate(EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", "t1"), existing)
    assert decision.reason == RejectionReason.slot_already_scheduled


def test_teacher_double_booking_is_rejected():
    existing = [make_entry("e1", "Monday", "09:00", "Stage 1", "Mathematics", "t1")]
    decision = validate(EntryDraft("Monday", "09:00", "Stage 2", "English", "t1"), existing)
    assert decision.reason == RejectionReason.teacher_double_booked
    assert decision.conflicting_entry.id == "e1"
    assert "Ms T" in decision.message


@pytest.mark.parametrize(
    ("first", "second"),
    [("Stage 4", "Stage 5"), ("Stage 5", "Stage 4")],
)
def test_co_teaching_pair_is_accepted_in_both_directions(first, second):
    existing = [make_entry("e1", "Monday", "09:00", first, "Science", "t1")]
    decision = validate(EntryDraft("Monday", "09:00", second, "Science", "t1"), existing)
    assert isinstance(decision, Accept)


def test_adjacent_grades_outside_the_pair_still_conflict():
    existing = [make_entry("e1", "Monday", "09:00", "Stage 3", "Math", "t1")]
    decision = validate(EntryDraft("Monday", "09:00", "Stage 4", "Math", "t1"), existing)
    assert decision.reason == RejectionReason.teacher_double_booked


def test_co_teaching_does_not_excuse_a_third_grade():
    existing = [
        make_entry("e1", "Monday", "09:00", "Stage 4", "Science", "t1"),
        make_entry("e2", "Monday", "09:00", "Stage 5", "Science", "t1"),
    ]
    decision = validate(EntryDraft("Monday", "09:00", "Stage 6", "Science", "t1"), existing)
    assert decision.reason == RejectionReason.teacher_double_booked
    assert decision.conflicting_entry.id == "e1"


def test_same_teacher_at_other_time_is_free():
    existing = [make_entry("e1", "Monday", "09:00", "Stage 1", "Mathematics", "t1")]
    assert isinstance(validate(EntryDraft("Monday", "10:00", "Stage 2", "English", "t1"), existing), Accept)
    assert isinstance(validate(EntryDraft("Tuesday", "09:00", "Stage 2", "English", "t1"), existing), Accept)


def test_co_teaching_pair_helper():
    assert is_co_teaching_pair("Stage 4", "Stage 5")
    assert is_co_teaching_pair("Stage 5", "Stage 4")
    assert not is_co_teaching_pair("Stage 3", "Stage 4")
    assert not is_co_teaching_pair("Stage 5", "Stage 6")
    assert not is_co_teaching_pair("Stage 4", "Stage 4")


def test_eligibility_is_checked_when_index_is_given():
    index = SubjectTeacherIndex([TeacherRecord("t1", "Ms T", ("Mathematics",))])
    decision = validate(EntryDraft("Monday", "09:00", "Stage 1", "English", "t1"), [], index)
    assert decision.reason == RejectionReason.teacher_not_eligible
    assert "Ms T" in decision.message

    unknown = validate(EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", "ghost"), [], index)
    assert unknown.reason == RejectionReason.teacher_not_eligible

    assert isinstance(validate(EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", "t1"), [], index), Accept)


def test_scenario_second_grade_at_same_time_is_double_booking():
    entries = []
    first = EntryDraft("Tuesday", "10:00", "Stage 1", "English", "A")
    assert isinstance(validate(first, entries), Accept)
    entries.append(make_entry("e1", "Tuesday", "10:00", "Stage 1", "English", "A"))

    assert validate(first, entries).reason == RejectionReason.slot_already_scheduled

    third = EntryDraft("Tuesday", "10:00", "Stage 4", "Science", "A")
    assert validate(third, entries).reason == RejectionReason.teacher_double_booked
