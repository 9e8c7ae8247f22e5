import asyncio

import pytest

from app.core.exceptions import PersistenceError, SessionBusyError
from app.services.conflict_service import RejectionReason
from app.services.scheduling_session import (
    SchedulingSession,
    SessionState,
    SubmissionResult,
    SubmissionStatus,
)


def fill(session, **overrides):
    values = {"day": "Monday", "time": "09:00", "grade": "Stage 1", "subject": "Mathematics", "teacher_id": "t1"}
    values.update(overrides)
    session.update(**values)


def committing_submitter(calls):
    async def submit(draft):
        calls.append(draft)
        return SubmissionResult(status=SubmissionStatus.committed, message="ok", entry_id="e1")

    return submit


def test_state_follows_selected_fields():
    session = SchedulingSession(owner_id="u1")
    assert session.state == SessionState.empty

    session.set_field("day", "Monday")
    assert session.state == SessionState.partial

    fill(session)
    assert session.state == SessionState.complete

    session.set_field("time", "10:00")
    assert session.state == SessionState.complete

    session.set_field("time", None)
    assert session.state == SessionState.partial


def test_changing_subject_clears_teacher():
    session = SchedulingSession()
    fill(session)

    session.set_field("subject", "English")

    assert session.get("teacher_id") is None
    assert session.state == SessionState.partial


def test_setting_same_subject_keeps_teacher():
    session = SchedulingSession()
    fill(session)

    session.set_field("subject", "Mathematics")

    assert session.get("teacher_id") == "t1"


def test_subject_and_teacher_in_one_update_keep_the_new_teacher():
    session = SchedulingSession()
    fill(session)

    session.update(teacher_id="t2", subject="English")

    assert session.get("subject") == "English"
    assert session.get("teacher_id") == "t2"


def test_unknown_field_is_rejected():
    with pytest.raises(KeyError):
        SchedulingSession().set_field("room", "B1")


def test_commit_clears_subject_and_teacher_only():
    session = SchedulingSession(owner_id="u1")
    fill(session)
    calls = []

    result = asyncio.run(session.submit(committing_submitter(calls)))

    assert result.status == SubmissionStatus.committed
    assert calls[0].created_by_id == "u1"
    assert calls[0].subject == "Mathematics"
    assert session.selection == {
        "day": "Monday",
        "time": "09:00",
        "grade": "Stage 1",
        "subject": None,
        "teacher_id": None,
    }
    assert session.state == SessionState.partial
    assert session.last_result is result


def test_rejection_keeps_every_field():
    session = SchedulingSession()
    fill(session)

    async def reject(draft):
        return SubmissionResult(
            status=SubmissionStatus.rejected,
            reason=RejectionReason.teacher_double_booked,
            message="busy",
        )

    result = asyncio.run(session.submit(reject))

    assert result.reason == RejectionReason.teacher_double_booked
    assert session.state == SessionState.complete
    assert session.get("teacher_id") == "t1"


def test_persistence_failure_is_reported_distinctly():
    session = SchedulingSession()
    fill(session)

    async def broken(draft):
        raise PersistenceError("create", "store unavailable")

    result = asyncio.run(session.submit(broken))

    assert result.status == SubmissionStatus.failed
    assert result.reason == RejectionReason.persistence_failed
    assert result.message == "store unavailable"
    assert session.state == SessionState.complete


def test_session_is_busy_while_submitting():
    session = SchedulingSession()
    fill(session)
    observed = {}

    async def slow(draft):
        observed["state"] = session.state
        with pytest.raises(SessionBusyError):
            session.set_field("day", "Tuesday")
        with pytest.raises(SessionBusyError):
            await session.submit(slow)
        return SubmissionResult(status=SubmissionStatus.committed, message="ok", entry_id="e1")

    asyncio.run(session.submit(slow))

    assert observed["state"] == SessionState.submitting
    assert session.get("day") == "Monday"


def test_reset_clears_everything():
    session = SchedulingSession()
    fill(session)
    session.reset()
    assert session.state == SessionState.empty
    assert session.last_result is None


def test_teacher_outside_subject_keeps_session_partial():
    eligible = {("t1", "Mathematics")}
    session = SchedulingSession(is_eligible=lambda teacher_id, subject: (teacher_id, subject) in eligible)

    fill(session, teacher_id="t2")
    assert session.state == SessionState.partial

    session.set_field("teacher_id", "t1")
    assert session.state == SessionState.complete
