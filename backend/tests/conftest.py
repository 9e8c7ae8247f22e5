import os

# Point the app's default engine at SQLite before anything imports app.db.session.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db, get_timetable_scheduler
from app.core.security import create_access_token
from app.db.base import Base
from app.main import app
from app.models.teacher_application import ApplicationStatus, TeacherApplication
from app.models.user import User, UserRole
from app.services.feed_hub import TimetableFeedHub
from app.services.timetable_scheduler import TimetableScheduler
from app.services.timetable_sync import SqlAlchemyTimetableSync

CURRICULUM = "British Curriculum"


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def sync(session_factory):
    return SqlAlchemyTimetableSync(session_factory, curriculum=CURRICULUM)


@pytest.fixture()
def scheduler(sync):
    return TimetableScheduler(sync, curriculum=CURRICULUM, hub=TimetableFeedHub())


@pytest.fixture()
def client(session_factory, scheduler):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    async def override_get_timetable_scheduler():
        await scheduler.start()
        return scheduler

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_timetable_scheduler] = override_get_timetable_scheduler

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(session_factory):
    """Create a user and return ``(user_id, auth_headers)``."""

    def _make_user(role: UserRole, email: str, name: str = "Test User") -> tuple[str, dict]:
        with session_factory() as db:
            user = User(name=name, email=email, role=role, is_active=True)
            db.add(user)
            db.commit()
            user_id = user.id
        return user_id, {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _make_user


@pytest.fixture()
def add_teacher(session_factory):
    """Insert a teacher application; approved by default."""

    def _add_teacher(
        user_id: str,
        first_name: str,
        last_name: str,
        subjects: list[str],
        status: ApplicationStatus = ApplicationStatus.approved,
    ) -> str:
        with session_factory() as db:
            application = TeacherApplication(
                user_id=user_id,
                first_name=first_name,
                last_name=last_name,
                email=f"{user_id}@school.example.com",
                subjects=subjects,
                status=status,
            )
            db.add(application)
            db.commit()
            return application.id

    return _add_teacher
