from collections.abc import Callable, Generator, Iterable
from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.security import decode_token
from app.db.session import SessionLocal
from app.models.user import User, UserRole
from app.services.feed_hub import TimetableFeedHub
from app.services.timetable_scheduler import TimetableScheduler
from app.services.timetable_sync import SqlAlchemyTimetableSync

security = HTTPBearer()

SCHEDULER_ROLES = (UserRole.admin, UserRole.principal)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def resolve_user(db: Session, token: str) -> User | None:
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError as exc:
        raise credentials_exception from exc

    user = db.get(User, user_id)
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


def require_roles(*roles: UserRole) -> Callable[[User], User]:
    allowed_roles: Iterable[UserRole] = set(roles)

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return role_checker


@lru_cache
def _default_scheduler() -> TimetableScheduler:
    settings = get_settings()
    sync = SqlAlchemyTimetableSync(SessionLocal, curriculum=settings.timetable_curriculum)
    return TimetableScheduler(sync, curriculum=settings.timetable_curriculum, hub=TimetableFeedHub())


async def get_timetable_scheduler() -> TimetableScheduler:
    scheduler = _default_scheduler()
    await scheduler.start()
    return scheduler


async def shutdown_timetable_scheduler() -> None:
    if _default_scheduler.cache_info().currsize:
        await _default_scheduler().close()
