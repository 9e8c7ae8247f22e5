"""Seed demo accounts, approved teachers and a few timetable classes.

Every class goes through the timetable scheduler, so the demo data obeys the
same slot and double-booking rules as the portal.

Run:
  PYTHONPATH=backend python scripts/seed_timetable_demo.py
"""

from __future__ import annotations

import asyncio
import os
from typing import Iterable

from sqlalchemy import select

from app.core.config import get_settings
from app.core.security import create_access_token
from app.db.bootstrap import ensure_runtime_schema_compatibility
from app.db.session import SessionLocal
from app.models.teacher_application import ApplicationStatus, TeacherApplication
from app.models.user import User, UserRole
from app.services.timetable_records import EntryDraft
from app.services.timetable_scheduler import TimetableScheduler
from app.services.timetable_sync import SqlAlchemyTimetableSync


def _env_email(key: str, default: str) -> str:
    value = os.getenv(key, "").strip()
    return value or default


DEMO_ACCOUNTS = {
    "principal": {
        "name": "Demo Principal",
        "email": _env_email("DEMO_PRINCIPAL_EMAIL", "principal.demo@stagewise.example.com"),
        "role": UserRole.principal,
    },
    "teacher_1": {
        "name": "Amara Okafor",
        "email": _env_email("DEMO_TEACHER1_EMAIL", "amara.demo@stagewise.example.com"),
        "role": UserRole.teacher,
    },
    "teacher_2": {
        "name": "Tomas Silva",
        "email": _env_email("DEMO_TEACHER2_EMAIL", "tomas.demo@stagewise.example.com"),
        "role": UserRole.teacher,
    },
    "parent": {
        "name": "Demo Parent",
        "email": _env_email("DEMO_PARENT_EMAIL", "parent.demo@stagewise.example.com"),
        "role": UserRole.parent,
    },
}

TEACHER_SUBJECTS = {
    "teacher_1": ["English", "Primary Science"],
    "teacher_2": ["Mathematics", "Primary Science"],
}

# (account key, day, time, grade, subject)
DEMO_CLASSES = [
    ("teacher_1", "Monday", "08:30", "Stage 1", "English"),
    ("teacher_2", "Monday", "08:30", "Stage 2", "Mathematics"),
    ("teacher_1", "Tuesday", "10:00", "Stage 4", "Primary Science"),
    ("teacher_1", "Tuesday", "10:00", "Stage 5", "Primary Science"),
    ("teacher_2", "Wednesday", "11:15", "Checkpoint (Yr 7-9)", "Mathematics"),
]


def _upsert_user(*, name: str, email: str, role: UserRole) -> User:
    with SessionLocal() as session:
        user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if user is None:
            user = User(name=name, email=email, role=role, is_active=True)
            session.add(user)
        else:
            user.name = name
            user.role = role
            user.is_active = True
        session.commit()
        session.refresh(user)
        return user


def _approve_teacher(user: User, subjects: list[str], reviewer: User) -> None:
    first_name, _, last_name = user.name.partition(" ")
    with SessionLocal() as session:
        application = session.execute(
            select(TeacherApplication).where(TeacherApplication.user_id == user.id)
        ).scalar_one_or_none()
        if application is None:
            application = TeacherApplication(user_id=user.id, email=user.email)
            session.add(application)
        application.first_name = first_name
        application.last_name = last_name
        application.subjects = subjects
        application.status = ApplicationStatus.approved
        application.reviewed_by_id = reviewer.id
        application.review_notes = "Approved by demo seed"
        session.commit()


async def _schedule_classes(users: dict[str, User]) -> None:
    curriculum = get_settings().timetable_curriculum
    scheduler = TimetableScheduler(SqlAlchemyTimetableSync(SessionLocal, curriculum=curriculum), curriculum=curriculum)
    await scheduler.start()
    try:
        for key, day, time, grade, subject in DEMO_CLASSES:
            draft = EntryDraft(
                day=day,
                time=time,
                grade=grade,
                subject=subject,
                teacher_id=users[key].id,
                created_by_id=users["principal"].id,
            )
            result = await scheduler.submit(draft)
            outcome = result.status.value
            if result.reason is not None:
                outcome = f"{outcome} ({result.reason.value})"
            print(f"  - {day} {time} {grade} {subject}: {outcome}")
    finally:
        await scheduler.close()


def _print_accounts(items: Iterable[tuple[str, User]]) -> None:
    print("\nDemo accounts ready:")
    for label, user in items:
        token = create_access_token(user.id)
        print(f"  - {label}: {user.email} | role={user.role.value}")
        print(f"    token: {token}")


def main() -> None:
    ensure_runtime_schema_compatibility()

    users: dict[str, User] = {}
    for key, item in DEMO_ACCOUNTS.items():
        users[key] = _upsert_user(name=item["name"], email=item["email"], role=item["role"])

    for key, subjects in TEACHER_SUBJECTS.items():
        _approve_teacher(users[key], subjects, users["principal"])

    print("Scheduling demo classes:")
    asyncio.run(_schedule_classes(users))
    _print_accounts(users.items())


if __name__ == "__main__":
    main()
