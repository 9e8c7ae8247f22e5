from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from app.schemas.timetable import DAY_ORDER, DAY_VALUES, parse_time_to_minutes
from app.services.conflict_service import Decision, Reject, validate
from app.services.feed_hub import TimetableFeedHub
from app.services.scheduling_session import SchedulingSession, SubmissionResult, SubmissionStatus
from app.services.timetable_index import SubjectTeacherIndex
from app.services.timetable_records import EntryDraft, EntryRecord, TeacherRecord
from app.services.timetable_sync import TimetableSync, Unsubscribe

logger = logging.getLogger(__name__)


def _entry_sort_key(entry: EntryRecord) -> tuple[int, int, str, str]:
    return (
        DAY_ORDER.get(entry.day, len(DAY_ORDER)),
        parse_time_to_minutes(entry.time),
        entry.grade,
        entry.subject,
    )


class TimetableScheduler:
    """Holds the latest entry/teacher snapshots and runs submissions.

    Validation always uses whatever snapshot the sync feeds delivered last.
    Two schedulers working against different snapshots can both pass
    validation; that race is accepted and cleaned up by deleting entries.
    """

    def __init__(
        self,
        sync: TimetableSync,
        *,
        curriculum: str,
        hub: TimetableFeedHub | None = None,
    ) -> None:
        self.sync = sync
        self.curriculum = curriculum
        self.hub = hub
        self._entries: tuple[EntryRecord, ...] = ()
        self._index = SubjectTeacherIndex(())
        self._sessions: dict[str, SchedulingSession] = {}
        self._unsubscribers: list[Unsubscribe] = []
        self._pending_events: set[str] = set()
        self._started = False
        self._start_lock = asyncio.Lock()

    @property
    def started(self) -> bool:
        return self._started

    @property
    def entries(self) -> list[EntryRecord]:
        return list(self._entries)

    @property
    def teachers(self) -> list[TeacherRecord]:
        return self._index.teachers

    @property
    def index(self) -> SubjectTeacherIndex:
        return self._index

    async def start(self) -> None:
        async with self._start_lock:
            if self._started:
                return
            unsubscribers = [
                self.sync.subscribe_entries(self._on_entries),
                self.sync.subscribe_teachers(self._on_teachers),
            ]
            try:
                await self.sync.refresh()
            except Exception:
                for unsubscribe in unsubscribers:
                    unsubscribe()
                logger.exception("Timetable scheduler failed to load initial snapshots")
                raise
            self._unsubscribers = unsubscribers
            self._started = True
            logger.info(
                "Timetable scheduler started for %s with %d entries and %d teachers",
                self.curriculum,
                len(self._entries),
                len(self._index.teachers),
            )
        await self._flush_events()

    async def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._started = False

    async def refresh(self) -> None:
        await self.sync.refresh()
        await self._flush_events()

    def list_entries(
        self,
        *,
        day: str | None = None,
        grade: str | None = None,
        teacher_id: str | None = None,
    ) -> list[EntryRecord]:
        selected = [
            entry
            for entry in self._entries
            if (day is None or entry.day == day)
            and (grade is None or entry.grade == grade)
            and (teacher_id is None or entry.teacher_id == teacher_id)
        ]
        return sorted(selected, key=_entry_sort_key)

    def entries_by_day(self, **filters: str | None) -> list[tuple[str, list[EntryRecord]]]:
        grouped: dict[str, list[EntryRecord]] = {day: [] for day in DAY_VALUES}
        for entry in self.list_entries(**filters):
            grouped.setdefault(entry.day, []).append(entry)
        return list(grouped.items())

    def evaluate(self, draft: EntryDraft) -> Decision:
        return validate(draft, self._entries, self._index)

    async def submit(self, draft: EntryDraft) -> SubmissionResult:
        """Validate ``draft`` and persist it when accepted.

        Rule rejections come back as a ``rejected`` result. Store failures
        raise ``PersistenceError`` and are not retried here.
        """
        decision = self.evaluate(draft)
        if isinstance(decision, Reject):
            logger.warning(
                "Rejected timetable entry %s %s %s %s: %s",
                draft.day,
                draft.time,
                draft.grade,
                draft.subject,
                decision.reason.value,
            )
            return SubmissionResult(
                status=SubmissionStatus.rejected,
                reason=decision.reason,
                message=decision.message,
                conflicting_entry=decision.conflicting_entry,
            )

        teacher = self._index.teacher(draft.teacher_id)
        persisted = replace(
            draft,
            teacher_name=teacher.name if teacher is not None else draft.teacher_name,
            curriculum=self.curriculum,
        )
        entry_id = await self.sync.create_entry(persisted)
        logger.info(
            "Scheduled %s for %s on %s at %s with teacher %s (%s)",
            persisted.subject,
            persisted.grade,
            persisted.day,
            persisted.time,
            persisted.teacher_id,
            entry_id,
        )
        await self._flush_events()
        return SubmissionResult(
            status=SubmissionStatus.committed,
            message=f"{persisted.subject} added for {persisted.grade} on {persisted.day} at {persisted.time}",
            entry_id=entry_id,
        )

    async def delete(self, entry_id: str, *, actor_id: str | None = None, actor_role: str | None = None) -> None:
        await self.sync.delete_entry(entry_id, actor_id=actor_id, actor_role=actor_role)
        logger.info("Deleted timetable entry %s", entry_id)
        await self._flush_events()

    def session_for(self, owner_id: str) -> SchedulingSession:
        session = self._sessions.get(owner_id)
        if session is None:
            # Looks up the current index on each call; snapshots replace it.
            session = SchedulingSession(
                owner_id=owner_id,
                is_eligible=lambda teacher_id, subject: self._index.is_eligible(teacher_id, subject),
            )
            self._sessions[owner_id] = session
        return session

    def discard_session(self, owner_id: str) -> None:
        self._sessions.pop(owner_id, None)

    def entries_payload(self) -> dict:
        return {
            "event": "entries",
            "curriculum": self.curriculum,
            "entries": [entry.as_dict() for entry in self.list_entries()],
        }

    def teachers_payload(self) -> dict:
        return {
            "event": "teachers",
            "teachers": [
                {"id": teacher.id, "name": teacher.name, "subjects": list(teacher.subjects)}
                for teacher in self._index.teachers
            ],
        }

    def _on_entries(self, snapshot: list[EntryRecord]) -> None:
        self._entries = tuple(snapshot)
        self._pending_events.add("entries")

    def _on_teachers(self, snapshot: list[TeacherRecord]) -> None:
        self._index = SubjectTeacherIndex(snapshot)
        self._pending_events.add("teachers")

    async def _flush_events(self) -> None:
        events, self._pending_events = self._pending_events, set()
        if self.hub is None:
            return
        if "entries" in events:
            await self.hub.publish(self.entries_payload())
        if "teachers" in events:
            await self.hub.publish(self.teachers_payload())
