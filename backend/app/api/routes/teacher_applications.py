import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import SCHEDULER_ROLES, get_current_user, get_db, get_timetable_scheduler, require_roles
from app.core.exceptions import ResourceNotFoundError
from app.models.teacher_application import ApplicationStatus, TeacherApplication
from app.models.user import User
from app.schemas.teacher_application import (
    TeacherApplicationCreate,
    TeacherApplicationOut,
    TeacherApplicationReview,
)
from app.services.audit import log_activity
from app.services.timetable_scheduler import TimetableScheduler

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/teacher-applications", response_model=list[TeacherApplicationOut])
def list_teacher_applications(
    application_status: ApplicationStatus | None = Query(default=None, alias="status"),
    current_user: User = Depends(require_roles(*SCHEDULER_ROLES)),
    db: Session = Depends(get_db),
) -> list[TeacherApplicationOut]:
    query = select(TeacherApplication).order_by(TeacherApplication.created_at, TeacherApplication.id)
    if application_status is not None:
        query = query.where(TeacherApplication.status == application_status)
    return list(db.execute(query).scalars())


@router.get("/teacher-applications/me", response_model=TeacherApplicationOut)
def get_my_teacher_application(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TeacherApplicationOut:
    application = db.execute(
        select(TeacherApplication).where(TeacherApplication.user_id == current_user.id)
    ).scalar_one_or_none()
    if application is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No teacher application on file")
    return application


@router.post("/teacher-applications", response_model=TeacherApplicationOut, status_code=status.HTTP_201_CREATED)
def submit_teacher_application(
    payload: TeacherApplicationCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TeacherApplicationOut:
    existing = db.execute(
        select(TeacherApplication).where(TeacherApplication.user_id == current_user.id)
    ).scalar_one_or_none()
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Teacher application already submitted")

    application = TeacherApplication(user_id=current_user.id, **payload.model_dump())
    db.add(application)
    db.flush()
    log_activity(
        db,
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action="teacher_application.submitted",
        entity_type="teacher_application",
        entity_id=application.id,
        details={"subjects": application.subjects},
    )
    db.commit()
    db.refresh(application)
    return application


@router.post("/teacher-applications/{application_id}/review", response_model=TeacherApplicationOut)
def review_teacher_application(
    application_id: str,
    payload: TeacherApplicationReview,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_roles(*SCHEDULER_ROLES)),
    db: Session = Depends(get_db),
    scheduler: TimetableScheduler = Depends(get_timetable_scheduler),
) -> TeacherApplicationOut:
    application = db.get(TeacherApplication, application_id)
    if application is None:
        raise ResourceNotFoundError("Teacher application", application_id)

    previous = application.status
    application.status = ApplicationStatus(payload.decision)
    application.review_notes = payload.notes
    application.reviewed_by_id = current_user.id
    log_activity(
        db,
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action=f"teacher_application.{payload.decision}",
        entity_type="teacher_application",
        entity_id=application.id,
        details={"previous_status": previous.value},
    )
    db.commit()
    db.refresh(application)
    logger.info("Teacher application %s moved from %s to %s", application.id, previous.value, payload.decision)

    if previous != application.status:
        # Approved teachers are a read model; push a fresh teacher snapshot.
        background_tasks.add_task(scheduler.refresh)
    return application
