from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from app.core.exceptions import PersistenceError, SessionBusyError
from app.services.conflict_service import RejectionReason
from app.services.timetable_records import EntryDraft, EntryRecord

SELECTION_FIELDS = ("day", "time", "grade", "subject", "teacher_id")


class SessionState(str, Enum):
    empty = "empty"
    partial = "partial"
    complete = "complete"
    submitting = "submitting"


class SubmissionStatus(str, Enum):
    committed = "committed"
    rejected = "rejected"
    failed = "failed"


@dataclass(frozen=True)
class SubmissionResult:
    status: SubmissionStatus
    message: str
    reason: RejectionReason | None = None
    entry_id: str | None = None
    conflicting_entry: EntryRecord | None = None


Submitter = Callable[[EntryDraft], Awaitable[SubmissionResult]]
EligibilityCheck = Callable[[str, str], bool]


class SchedulingSession:
    """One operator's in-progress selection for a new timetable entry.

    State is derived from which fields are set, except while a submission
    is awaiting the store. A selection is only ``complete`` when the chosen
    teacher also teaches the chosen subject, according to ``is_eligible``
    when one is given. After a commit the subject and teacher are cleared
    so several subjects can be added to the same slot in a row.
    """

    def __init__(self, owner_id: str | None = None, is_eligible: EligibilityCheck | None = None) -> None:
        self.owner_id = owner_id
        self._is_eligible = is_eligible
        self._values: dict[str, str | None] = dict.fromkeys(SELECTION_FIELDS)
        self._submitting = False
        self.last_result: SubmissionResult | None = None

    @property
    def state(self) -> SessionState:
        if self._submitting:
            return SessionState.submitting
        filled = sum(1 for value in self._values.values() if value)
        if filled == 0:
            return SessionState.empty
        if filled == len(SELECTION_FIELDS) and self._is_consistent():
            return SessionState.complete
        return SessionState.partial

    @property
    def selection(self) -> dict[str, str | None]:
        return dict(self._values)

    def get(self, name: str) -> str | None:
        return self._values[name]

    def set_field(self, name: str, value: str | None) -> None:
        if name not in self._values:
            raise KeyError(f"Unknown selection field: {name}")
        self._ensure_idle()
        cleaned = (value or "").strip() or None
        previous = self._values[name]
        self._values[name] = cleaned
        if name == "subject" and cleaned != previous:
            self._on_subject_changed()

    def update(self, **changes: str | None) -> None:
        # Subject goes first so an explicit teacher in the same update survives.
        ordered = sorted(changes.items(), key=lambda item: item[0] != "subject")
        for name, value in ordered:
            self.set_field(name, value)

    def reset(self) -> None:
        self._ensure_idle()
        self._values = dict.fromkeys(SELECTION_FIELDS)
        self.last_result = None

    def as_draft(self, *, created_by_id: str | None = None) -> EntryDraft:
        return EntryDraft(
            day=self._values["day"] or "",
            time=self._values["time"] or "",
            grade=self._values["grade"] or "",
            subject=self._values["subject"] or "",
            teacher_id=self._values["teacher_id"] or "",
            created_by_id=created_by_id,
        )

    async def submit(self, submitter: Submitter) -> SubmissionResult:
        self._ensure_idle()
        draft = self.as_draft(created_by_id=self.owner_id)
        self._submitting = True
        try:
            result = await submitter(draft)
        except PersistenceError as exc:
            result = SubmissionResult(
                status=SubmissionStatus.failed,
                reason=RejectionReason.persistence_failed,
                message=exc.message,
            )
        finally:
            self._submitting = False

        if result.status == SubmissionStatus.committed:
            self._on_committed()
        self.last_result = result
        return result

    def _on_subject_changed(self) -> None:
        # Eligibility depends on the subject, so a teacher picked for the
        # old subject must not be carried over.
        self._values["teacher_id"] = None

    def _on_committed(self) -> None:
        self._values["subject"] = None
        self._values["teacher_id"] = None

    def _is_consistent(self) -> bool:
        if self._is_eligible is None:
            return True
        return self._is_eligible(self._values["teacher_id"], self._values["subject"])

    def _ensure_idle(self) -> None:
        if self._submitting:
            raise SessionBusyError()
