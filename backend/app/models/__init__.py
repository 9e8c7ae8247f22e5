from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.teacher_application import ApplicationStatus, TeacherApplication  # noqa: F401
from app.models.timetable import TimetableEntry  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
