from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from app.api.deps import (
    SCHEDULER_ROLES,
    get_current_user,
    get_db,
    get_timetable_scheduler,
    require_roles,
    resolve_user,
)
from app.core.exceptions import SchedulingRejected
from app.models.user import User, UserRole
from app.schemas.timetable import (
    DAY_VALUES,
    GRADE_VALUES,
    SchedulingSessionOut,
    SessionSelectionUpdate,
    SubmissionOut,
    TeacherOut,
    TimetableDayOut,
    TimetableEntryDraft,
    TimetableEntryOut,
    TimetableOptionsOut,
    time_options,
)
from app.services.scheduling_session import SchedulingSession, SubmissionResult, SubmissionStatus
from app.services.timetable_records import EntryDraft, EntryRecord
from app.services.timetable_scheduler import TimetableScheduler

router = APIRouter()


def _entry_out(record: EntryRecord) -> TimetableEntryOut:
    return TimetableEntryOut.model_validate(record)


def _submission_out(result: SubmissionResult) -> SubmissionOut:
    return SubmissionOut(
        status=result.status.value,
        reason=result.reason.value if result.reason is not None else None,
        message=result.message,
        entry_id=result.entry_id,
        conflicting_entry=_entry_out(result.conflicting_entry) if result.conflicting_entry else None,
    )


def _session_out(session: SchedulingSession, scheduler: TimetableScheduler) -> SchedulingSessionOut:
    subject = session.get("subject")
    eligible = scheduler.index.teachers_for(subject) if subject else []
    return SchedulingSessionOut(
        state=session.state.value,
        **session.selection,
        eligible_teachers=[TeacherOut.model_validate(teacher) for teacher in eligible],
        last_submission=_submission_out(session.last_result) if session.last_result else None,
    )


@router.get("/options", response_model=TimetableOptionsOut)
async def get_timetable_options(
    current_user: User = Depends(get_current_user),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> TimetableOptionsOut:
    return TimetableOptionsOut(
        curriculum=scheduler.curriculum,
        days=list(DAY_VALUES),
        grades=list(GRADE_VALUES),
        times=time_options(),
        subjects=scheduler.index.subjects_offered(),
    )


@router.get("/entries", response_model=list[TimetableEntryOut])
async def list_entries(
    day: str | None = Query(default=None),
    grade: str | None = Query(default=None),
    teacher_id: str | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> list[TimetableEntryOut]:
    entries = scheduler.list_entries(day=day, grade=grade, teacher_id=teacher_id)
    return [_entry_out(entry) for entry in entries]


@router.get("/entries/by-day", response_model=list[TimetableDayOut])
async def list_entries_by_day(
    grade: str | None = Query(default=None),
    teacher_id: str | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> list[TimetableDayOut]:
    return [
        TimetableDayOut(day=day, entries=[_entry_out(entry) for entry in entries])
        for day, entries in scheduler.entries_by_day(grade=grade, teacher_id=teacher_id)
    ]


@router.get("/me", response_model=list[TimetableEntryOut])
async def list_my_entries(
    current_user: User = Depends(require_roles(UserRole.teacher)),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> list[TimetableEntryOut]:
    return [_entry_out(entry) for entry in scheduler.list_entries(teacher_id=current_user.id)]


@router.post("/entries", response_model=SubmissionOut, status_code=status.HTTP_201_CREATED)
async def create_entry(
    payload: TimetableEntryDraft,
    current_user: User = Depends(require_roles(*SCHEDULER_ROLES)),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> SubmissionOut:
    draft = EntryDraft(**payload.model_dump(), created_by_id=current_user.id)
    result = await scheduler.submit(draft)
    if result.status == SubmissionStatus.rejected:
        conflicting = result.conflicting_entry.as_dict() if result.conflicting_entry else None
        raise SchedulingRejected(result.reason.value, result.message, conflicting_entry=conflicting)
    return _submission_out(result)


@router.delete("/entries/{entry_id}")
async def delete_entry(
    entry_id: str,
    current_user: User = Depends(require_roles(*SCHEDULER_ROLES)),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> dict:
    await scheduler.delete(entry_id, actor_id=current_user.id, actor_role=current_user.role.value)
    return {"success": True}


@router.get("/subjects", response_model=list[str])
async def list_subjects(
    current_user: User = Depends(get_current_user),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> list[str]:
    return scheduler.index.subjects_offered()


@router.get("/subjects/{subject}/teachers", response_model=list[TeacherOut])
async def list_subject_teachers(
    subject: str,
    current_user: User = Depends(get_current_user),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> list[TeacherOut]:
    return [TeacherOut.model_validate(teacher) for teacher in scheduler.index.teachers_for(subject)]


@router.get("/teachers", response_model=list[TeacherOut])
async def list_teachers(
    current_user: User = Depends(get_current_user),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> list[TeacherOut]:
    return [TeacherOut.model_validate(teacher) for teacher in scheduler.teachers]


@router.get("/teachers/{teacher_id}/subjects", response_model=list[str])
async def list_teacher_subjects(
    teacher_id: str,
    current_user: User = Depends(get_current_user),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> list[str]:
    return scheduler.index.subjects_for(teacher_id)


@router.get("/session", response_model=SchedulingSessionOut)
async def get_session(
    current_user: User = Depends(require_roles(*SCHEDULER_ROLES)),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> SchedulingSessionOut:
    return _session_out(scheduler.session_for(current_user.id), scheduler)


@router.patch("/session", response_model=SchedulingSessionOut)
async def update_session(
    payload: SessionSelectionUpdate,
    current_user: User = Depends(require_roles(*SCHEDULER_ROLES)),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> SchedulingSessionOut:
    session = scheduler.session_for(current_user.id)
    session.update(**payload.model_dump(exclude_unset=True))
    return _session_out(session, scheduler)


@router.delete("/session", response_model=SchedulingSessionOut)
async def reset_session(
    current_user: User = Depends(require_roles(*SCHEDULER_ROLES)),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> SchedulingSessionOut:
    session = scheduler.session_for(current_user.id)
    session.reset()
    return _session_out(session, scheduler)


@router.post("/session/submit", response_model=SchedulingSessionOut)
async def submit_session(
    current_user: User = Depends(require_roles(*SCHEDULER_ROLES)),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> SchedulingSessionOut:
    session = scheduler.session_for(current_user.id)
    await session.submit(scheduler.submit)
    return _session_out(session, scheduler)


def _extract_ws_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token

    auth_header = websocket.headers.get("authorization")
    if not auth_header:
        return None
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


@router.websocket("/ws")
async def timetable_websocket(
    websocket: WebSocket,
    db: Session = Depends(get_db),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> None:
    token = _extract_ws_token(websocket)
    user = resolve_user(db, token) if token else None
    if user is None or scheduler.hub is None:
        await websocket.close(code=1008)
        return

    await scheduler.hub.connect(websocket)
    try:
        await websocket.send_json(scheduler.entries_payload())
        await websocket.send_json(scheduler.teachers_payload())
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await scheduler.hub.disconnect(websocket)
