from sqlalchemy import func, select

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.models.teacher_application import ApplicationStatus, TeacherApplication
from app.models.timetable import TimetableEntry
from app.models.user import User

curriculum = get_settings().timetable_curriculum

db = SessionLocal()
try:
    roles = db.execute(select(User.role, func.count()).group_by(User.role)).all()
    print("Users by role:")
    for role, count in roles:
        print(f"  - {role.value}: {count}")

    approved = db.execute(
        select(func.count()).select_from(TeacherApplication).where(
            TeacherApplication.status == ApplicationStatus.approved
        )
    ).scalar_one()
    print(f"Approved teachers: {approved}")

    entries = db.execute(
        select(TimetableEntry).where(TimetableEntry.curriculum == curriculum).order_by(TimetableEntry.created_at.desc())
    ).scalars().all()
    print(f"Timetable entries ({curriculum}): {len(entries)}")
    for entry in entries[:5]:
        print(f"  - {entry.day} {entry.time} {entry.grade} {entry.subject} ({entry.teacher_name or entry.teacher_id})")
finally:
    db.close()
