import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import PersistenceError
from app.services.conflict_service import RejectionReason
from app.services.scheduling_session import SubmissionStatus
from app.services.timetable_records import EntryDraft


class RecordingSocket:
    def __init__(self):
        self.sent = []

    async def accept(self):
        pass

    async def send_json(self, payload):
        self.sent.append(payload)


@pytest.fixture
def staffed(add_teacher):
    add_teacher("A", "Amara", "Okafor", ["English", "Science"])
    add_teacher("T", "Tomas", "Silva", ["Mathematics", "Science", "Math"])


def run(scheduler, *drafts):
    async def scenario():
        await scheduler.start()
        return [await scheduler.submit(draft) for draft in drafts]

    return asyncio.run(scenario())


def test_duplicate_submission_is_rejected_the_second_time(scheduler, staffed):
    draft = EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", "T")

    first, second = run(scheduler, draft, draft)

    assert first.status == SubmissionStatus.committed
    assert second.status == SubmissionStatus.rejected
    assert second.reason == RejectionReason.slot_already_scheduled
    assert second.conflicting_entry.id == first.entry_id


def test_teacher_cannot_take_two_grades_at_once(scheduler, staffed, add_teacher):
    add_teacher("T2", "Other", "Teacher", ["English"])
    first, second = run(
        scheduler,
        EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", "T"),
        EntryDraft("Monday", "09:00", "Stage 2", "Science", "T"),
    )

    assert first.status == SubmissionStatus.committed
    assert second.reason == RejectionReason.teacher_double_booked


@pytest.mark.parametrize(("first_grade", "second_grade"), [("Stage 4", "Stage 5"), ("Stage 5", "Stage 4")])
def test_co_teaching_pair_is_committed(scheduler, staffed, first_grade, second_grade):
    first, second = run(
        scheduler,
        EntryDraft("Monday", "09:00", first_grade, "Science", "T"),
        EntryDraft("Monday", "09:00", second_grade, "Science", "T"),
    )

    assert first.status == SubmissionStatus.committed
    assert second.status == SubmissionStatus.committed
    assert len(scheduler.entries) == 2


def test_adjacent_non_exempt_grades_are_rejected(scheduler, staffed):
    _, second = run(
        scheduler,
        EntryDraft("Monday", "09:00", "Stage 3", "Math", "T"),
        EntryDraft("Monday", "09:00", "Stage 4", "Math", "T"),
    )

    assert second.reason == RejectionReason.teacher_double_booked


def test_canonical_regression_scenario(scheduler, staffed):
    first, duplicate, other_grade = run(
        scheduler,
        EntryDraft("Tuesday", "10:00", "Stage 1", "English", "A"),
        EntryDraft("Tuesday", "10:00", "Stage 1", "English", "A"),
        EntryDraft("Tuesday", "10:00", "Stage 4", "Science", "A"),
    )

    assert first.status == SubmissionStatus.committed
    assert duplicate.reason == RejectionReason.slot_already_scheduled
    assert other_grade.reason == RejectionReason.teacher_double_booked


def test_ineligible_teacher_is_rejected(scheduler, staffed):
    (result,) = run(scheduler, EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", "A"))

    assert result.reason == RejectionReason.teacher_not_eligible
    assert scheduler.entries == []


def test_committed_entry_carries_teacher_name_and_curriculum(scheduler, staffed):
    (result,) = run(scheduler, EntryDraft("Wednesday", "11:30", "A Level", "Mathematics", "T"))

    (entry,) = scheduler.entries
    assert entry.id == result.entry_id
    assert entry.teacher_name == "Tomas Silva"
    assert entry.curriculum == "British Curriculum"


def test_persistence_failure_propagates_and_leaves_snapshot_untouched(scheduler, staffed, sync, monkeypatch):
    async def broken_create(draft):
        raise PersistenceError("create", "store unavailable")

    monkeypatch.setattr(sync, "create_entry", broken_create)

    with pytest.raises(PersistenceError):
        run(scheduler, EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", "T"))

    assert scheduler.entries == []


def test_list_entries_is_ordered_by_weekday_then_time(scheduler, staffed):
    run(
        scheduler,
        EntryDraft("Friday", "08:00", "Stage 1", "English", "A"),
        EntryDraft("Monday", "13:00", "Stage 2", "English", "A"),
        EntryDraft("Monday", "08:30", "Stage 3", "Mathematics", "T"),
    )

    ordered = [(entry.day, entry.time) for entry in scheduler.list_entries()]
    assert ordered == [("Monday", "08:30"), ("Monday", "13:00"), ("Friday", "08:00")]
    assert [entry.teacher_id for entry in scheduler.list_entries(teacher_id="A")] == ["A", "A"]

    grouped = dict(scheduler.entries_by_day(teacher_id="T"))
    assert list(grouped) == ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
    assert [entry.time for entry in grouped["Monday"]] == ["08:30"]
    assert grouped["Friday"] == []


def test_delete_then_resubmit_is_accepted(scheduler, staffed):
    draft = EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", "T")

    async def scenario():
        await scheduler.start()
        first = await scheduler.submit(draft)
        await scheduler.delete(first.entry_id, actor_id="p1", actor_role="principal")
        return await scheduler.submit(draft)

    result = asyncio.run(scenario())

    assert result.status == SubmissionStatus.committed
    assert len(scheduler.entries) == 1


def test_feed_hub_receives_snapshots(scheduler, staffed):
    socket = RecordingSocket()

    async def scenario():
        await scheduler.hub.connect(socket)
        await scheduler.start()
        await scheduler.submit(EntryDraft("Monday", "09:00", "Stage 1", "Mathematics", "T"))

    asyncio.run(scenario())

    events = [payload["event"] for payload in socket.sent]
    assert events == ["entries", "teachers", "entries"]
    assert socket.sent[-1]["entries"][0]["subject"] == "Mathematics"
    assert {teacher["id"] for teacher in socket.sent[1]["teachers"]} == {"A", "T"}


def test_start_is_idempotent(scheduler, staffed):
    async def scenario():
        await scheduler.start()
        await scheduler.start()

    asyncio.run(scenario())

    assert scheduler.started
    assert len(scheduler.teachers) == 2


def test_failed_start_does_not_leave_listeners_behind(scheduler, staffed, sync, monkeypatch):
    load_entries = sync._load_entries
    calls = []

    def flaky_load_entries():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("SELECT", {}, Exception("connection refused"))
        return load_entries()

    monkeypatch.setattr(sync, "_load_entries", flaky_load_entries)

    async def scenario():
        with pytest.raises(OperationalError):
            await scheduler.start()
        assert not scheduler.started
        await scheduler.start()

    asyncio.run(scenario())

    assert scheduler.started
    assert len(sync._entry_listeners) == 1
    assert len(sync._teacher_listeners) == 1

    asyncio.run(scheduler.close())

    assert sync._entry_listeners == []
    assert sync._teacher_listeners == []
