"""Sync adapter between the timetable core and the entry/teacher store.

This is the only module that reads or writes ``timetable_entries`` and
``teacher_applications`` on behalf of the scheduler. The core sees the store
as two full-snapshot feeds plus create/delete calls.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import PersistenceError
from app.models.teacher_application import ApplicationStatus, TeacherApplication
from app.models.timetable import TimetableEntry
from app.services.audit import log_activity
from app.services.timetable_records import EntryDraft, EntryRecord, TeacherRecord

logger = logging.getLogger(__name__)

EntriesListener = Callable[[list[EntryRecord]], None]
TeachersListener = Callable[[list[TeacherRecord]], None]
Unsubscribe = Callable[[], None]

# Driver connection failures can surface as OSError outside SQLAlchemy's wrapping.
STORE_ERRORS = (SQLAlchemyError, OSError)


class TimetableSync(ABC):
    @abstractmethod
    def subscribe_entries(self, on_change: EntriesListener) -> Unsubscribe: ...

    @abstractmethod
    def subscribe_teachers(self, on_change: TeachersListener) -> Unsubscribe: ...

    @abstractmethod
    async def create_entry(self, draft: EntryDraft) -> str: ...

    @abstractmethod
    async def delete_entry(self, entry_id: str, *, actor_id: str | None = None, actor_role: str | None = None) -> None: ...

    @abstractmethod
    async def refresh(self) -> None: ...


def _entry_record(row: TimetableEntry) -> EntryRecord:
    return EntryRecord(
        id=row.id,
        day=row.day,
        time=row.time,
        grade=row.grade,
        subject=row.subject,
        teacher_id=row.teacher_id,
        teacher_name=row.teacher_name,
        curriculum=row.curriculum,
    )


def _teacher_record(row: TeacherApplication) -> TeacherRecord:
    subjects = tuple(str(item).strip() for item in (row.subjects or []) if str(item).strip())
    return TeacherRecord(id=row.user_id, name=row.display_name, subjects=subjects)


class SqlAlchemyTimetableSync(TimetableSync):
    """Full-snapshot feeds over the relational store.

    Blocking database work runs in Starlette's threadpool; listeners are
    called on the event loop after each reload. Deleting an id that is not
    in the store raises ``PersistenceError`` rather than silently succeeding.
    """

    def __init__(self, session_factory: sessionmaker, *, curriculum: str) -> None:
        self._session_factory = session_factory
        self.curriculum = curriculum
        self._entries: list[EntryRecord] | None = None
        self._teachers: list[TeacherRecord] | None = None
        self._entry_listeners: list[EntriesListener] = []
        self._teacher_listeners: list[TeachersListener] = []

    def subscribe_entries(self, on_change: EntriesListener) -> Unsubscribe:
        self._entry_listeners.append(on_change)
        if self._entries is not None:
            on_change(list(self._entries))

        def unsubscribe() -> None:
            if on_change in self._entry_listeners:
                self._entry_listeners.remove(on_change)

        return unsubscribe

    def subscribe_teachers(self, on_change: TeachersListener) -> Unsubscribe:
        self._teacher_listeners.append(on_change)
        if self._teachers is not None:
            on_change(list(self._teachers))

        def unsubscribe() -> None:
            if on_change in self._teacher_listeners:
                self._teacher_listeners.remove(on_change)

        return unsubscribe

    async def refresh(self) -> None:
        await self.refresh_entries()
        await self.refresh_teachers()

    async def refresh_entries(self) -> None:
        self._entries = await run_in_threadpool(self._load_entries)
        self._emit_entries()

    async def refresh_teachers(self) -> None:
        self._teachers = await run_in_threadpool(self._load_teachers)
        self._emit_teachers()

    async def create_entry(self, draft: EntryDraft) -> str:
        try:
            entry_id = await run_in_threadpool(self._insert_entry, draft)
        except STORE_ERRORS as exc:
            logger.exception("Failed to persist timetable entry for %s %s %s", draft.day, draft.time, draft.grade)
            raise PersistenceError("create", "Could not save the class to the timetable store") from exc

        await self._reload_entries_after_write()
        return entry_id

    async def delete_entry(self, entry_id: str, *, actor_id: str | None = None, actor_role: str | None = None) -> None:
        try:
            removed = await run_in_threadpool(self._remove_entry, entry_id, actor_id, actor_role)
        except STORE_ERRORS as exc:
            logger.exception("Failed to delete timetable entry %s", entry_id)
            raise PersistenceError(
                "delete", "Could not delete the class from the timetable store", entry_id=entry_id
            ) from exc

        if not removed:
            raise PersistenceError(
                "delete",
                f"Timetable entry {entry_id} does not exist",
                entry_id=entry_id,
                status_code=404,
            )
        await self._reload_entries_after_write()

    async def _reload_entries_after_write(self) -> None:
        # The write already succeeded; a failed reload only leaves the feed
        # stale until the next refresh.
        try:
            await self.refresh_entries()
        except STORE_ERRORS:
            logger.exception("Timetable entry feed reload failed after write")

    def _emit_entries(self) -> None:
        snapshot = list(self._entries or [])
        for listener in list(self._entry_listeners):
            listener(list(snapshot))

    def _emit_teachers(self) -> None:
        snapshot = list(self._teachers or [])
        for listener in list(self._teacher_listeners):
            listener(list(snapshot))

    def _load_entries(self) -> list[EntryRecord]:
        with self._session_factory() as db:
            rows = db.execute(
                select(TimetableEntry)
                .where(TimetableEntry.curriculum == self.curriculum)
                .order_by(TimetableEntry.created_at, TimetableEntry.id)
            ).scalars()
            return [_entry_record(row) for row in rows]

    def _load_teachers(self) -> list[TeacherRecord]:
        with self._session_factory() as db:
            rows = db.execute(
                select(TeacherApplication)
                .where(TeacherApplication.status == ApplicationStatus.approved)
                .order_by(TeacherApplication.created_at, TeacherApplication.id)
            ).scalars()
            return [_teacher_record(row) for row in rows]

    def _insert_entry(self, draft: EntryDraft) -> str:
        with self._session_factory() as db:
            row = TimetableEntry(
                day=draft.day,
                time=draft.time,
                grade=draft.grade,
                subject=draft.subject,
                teacher_id=draft.teacher_id,
                teacher_name=draft.teacher_name,
                curriculum=draft.curriculum or self.curriculum,
                created_by_id=draft.created_by_id,
            )
            db.add(row)
            db.flush()
            log_activity(
                db,
                actor_id=draft.created_by_id,
                action="timetable.entry.created",
                entity_type="timetable_entry",
                entity_id=row.id,
                details={
                    "day": row.day,
                    "time": row.time,
                    "grade": row.grade,
                    "subject": row.subject,
                    "teacher_id": row.teacher_id,
                },
            )
            self._commit(db)
            return row.id

    def _remove_entry(self, entry_id: str, actor_id: str | None, actor_role: str | None) -> bool:
        with self._session_factory() as db:
            row = db.get(TimetableEntry, entry_id)
            if row is None or row.curriculum != self.curriculum:
                return False
            log_activity(
                db,
                actor_id=actor_id,
                actor_role=actor_role,
                action="timetable.entry.deleted",
                entity_type="timetable_entry",
                entity_id=row.id,
                details={"day": row.day, "time": row.time, "grade": row.grade, "subject": row.subject},
            )
            db.delete(row)
            self._commit(db)
            return True

    @staticmethod
    def _commit(db: Session) -> None:
        try:
            db.commit()
        except STORE_ERRORS:
            db.rollback()
            raise
