"""Storage interface used by the slot lifecycle and conflict services.

The services only talk to :class:`TimetableStore`; :class:`SqlTimetableStore`
is the SQLAlchemy-backed implementation. Reads raise ``SQLAlchemyError``
untouched so callers can decide how to recover, while writes are wrapped in
:class:`~app.core.exceptions.StorageWriteError`.
"""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
import logging
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import ResourceNotFoundError, StorageWriteError
from app.db.base import Base
from app.models.classroom import Classroom
from app.models.faculty import Faculty
from app.models.subject import Subject
from app.models.time_slot import WEEKDAY_ORDER, SlotKind, TimeSlot, Weekday
from app.models.timetable_entry import TimetableEntry
from app.schemas.timetable import EntryContextOut

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntryRow:
    """A timetable entry joined with its slot and display context."""

    entry: TimetableEntry
    slot: TimeSlot | None
    subject_code: str | None = None
    subject_name: str | None = None
    faculty_name: str | None = None
    room_number: str | None = None
    building: str | None = None

    def to_context(self) -> EntryContextOut:
        entry = self.entry
        slot = self.slot
        return EntryContextOut(
            entry_id=entry.id,
            subject_id=entry.subject_id,
            subject_code=self.subject_code,
            subject_name=self.subject_name,
            faculty_id=entry.faculty_id,
            faculty_name=self.faculty_name,
            classroom_id=entry.classroom_id,
            room_number=self.room_number,
            building=self.building,
            section=entry.section,
            semester=entry.semester,
            academic_year=entry.academic_year,
            slot_id=entry.slot_id,
            slot_name=slot.name if slot is not None else None,
            day_of_week=Weekday(slot.day_of_week).value if slot is not None else None,
            start_time=slot.start_time if slot is not None else None,
            end_time=slot.end_time if slot is not None else None,
            slot_is_active=slot.is_active if slot is not None else None,
            is_active=entry.is_active,
        )


class TimetableStore(Protocol):
    def list_slots(
        self,
        *,
        day: Weekday | None = None,
        kind: SlotKind | None = None,
        is_active: bool | None = None,
    ) -> list[TimeSlot]: ...

    def get_slot(self, slot_id: str) -> TimeSlot | None: ...

    def lock_slot(self, slot_id: str) -> TimeSlot | None: ...

    def upsert_slot(self, slot: TimeSlot) -> TimeSlot: ...

    def set_slot_active(self, slot_id: str, active: bool) -> TimeSlot: ...

    def delete_slot(self, slot_id: str) -> None: ...

    def list_active_entries_for_slot(self, slot_id: str) -> list[EntryRow]: ...

    def count_all_entries_for_slot(self, slot_id: str) -> int: ...

    def list_active_entries(
        self,
        *,
        semester: int,
        academic_year: str,
        day: Weekday | None = None,
        exclude_entry_id: str | None = None,
    ) -> list[EntryRow]: ...

    def list_entries(
        self,
        *,
        semester: int | None = None,
        academic_year: str | None = None,
        faculty_id: str | None = None,
        slot_id: str | None = None,
        is_active: bool | None = None,
    ) -> list[EntryRow]: ...

    def get_entry(self, entry_id: str) -> TimetableEntry | None: ...

    def upsert_entry(self, entry: TimetableEntry) -> TimetableEntry: ...

    def set_entry_active(self, entry_id: str, active: bool) -> TimetableEntry: ...

    def get_reference(self, model: type[Base], resource_id: str) -> Base | None: ...

    def savepoint(self) -> AbstractContextManager[None]: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


def _slot_sort_key(slot: TimeSlot) -> tuple[int, str]:
    return WEEKDAY_ORDER[Weekday(slot.day_of_week)], slot.start_time


class SqlTimetableStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def _writing(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.exception("Storage write failed during %s", operation)
            raise StorageWriteError(operation) from exc

    def _entry_rows(self):
        return (
            select(
                TimetableEntry,
                TimeSlot,
                Subject.code.label("subject_code"),
                Subject.name.label("subject_name"),
                Faculty.name.label("faculty_name"),
                Classroom.room_number.label("room_number"),
                Classroom.building.label("building"),
            )
            .outerjoin(TimeSlot, TimeSlot.id == TimetableEntry.slot_id)
            .outerjoin(Subject, Subject.id == TimetableEntry.subject_id)
            .outerjoin(Faculty, Faculty.id == TimetableEntry.faculty_id)
            .outerjoin(Classroom, Classroom.id == TimetableEntry.classroom_id)
        )

    def _fetch_rows(self, query) -> list[EntryRow]:
        return [EntryRow(*row) for row in self.db.execute(query).all()]

    # -- time slots ---------------------------------------------------------

    def list_slots(
        self,
        *,
        day: Weekday | None = None,
        kind: SlotKind | None = None,
        is_active: bool | None = None,
    ) -> list[TimeSlot]:
        query = select(TimeSlot)
        if day is not None:
            query = query.where(TimeSlot.day_of_week == day)
        if kind is not None:
            query = query.where(TimeSlot.kind == kind)
        if is_active is not None:
            query = query.where(TimeSlot.is_active.is_(is_active))
        return sorted(self.db.execute(query).scalars(), key=_slot_sort_key)

    def get_slot(self, slot_id: str) -> TimeSlot | None:
        return self.db.get(TimeSlot, slot_id)

    def lock_slot(self, slot_id: str) -> TimeSlot | None:
        query = (
            select(TimeSlot)
            .where(TimeSlot.id == slot_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(query).scalar_one_or_none()

    def upsert_slot(self, slot: TimeSlot) -> TimeSlot:
        with self._writing("upsert_slot"):
            self.db.add(slot)
            self.db.flush()
        return slot

    def set_slot_active(self, slot_id: str, active: bool) -> TimeSlot:
        slot = self.get_slot(slot_id)
        if slot is None:
            raise ResourceNotFoundError("TimeSlot", slot_id)
        with self._writing("set_slot_active"):
            slot.is_active = active
            self.db.flush()
        return slot

    def delete_slot(self, slot_id: str) -> None:
        slot = self.get_slot(slot_id)
        if slot is None:
            raise ResourceNotFoundError("TimeSlot", slot_id)
        with self._writing("delete_slot"):
            self.db.delete(slot)
            self.db.flush()

    # -- timetable entries --------------------------------------------------

    def list_active_entries_for_slot(self, slot_id: str) -> list[EntryRow]:
        query = (
            self._entry_rows()
            .where(TimetableEntry.slot_id == slot_id, TimetableEntry.is_active.is_(True))
            .order_by(TimetableEntry.semester, TimetableEntry.section)
        )
        return self._fetch_rows(query)

    def count_all_entries_for_slot(self, slot_id: str) -> int:
        query = select(func.count()).select_from(TimetableEntry).where(TimetableEntry.slot_id == slot_id)
        return int(self.db.execute(query).scalar_one())

    def list_active_entries(
        self,
        *,
        semester: int,
        academic_year: str,
        day: Weekday | None = None,
        exclude_entry_id: str | None = None,
    ) -> list[EntryRow]:
        query = self._entry_rows().where(
            TimetableEntry.is_active.is_(True),
            TimetableEntry.semester == semester,
            TimetableEntry.academic_year == academic_year,
        )
        if day is not None:
            query = query.where(TimeSlot.day_of_week == day)
        if exclude_entry_id is not None:
            query = query.where(TimetableEntry.id != exclude_entry_id)
        return self._fetch_rows(query.order_by(TimeSlot.start_time))

    def list_entries(
        self,
        *,
        semester: int | None = None,
        academic_year: str | None = None,
        faculty_id: str | None = None,
        slot_id: str | None = None,
        is_active: bool | None = None,
    ) -> list[EntryRow]:
        query = self._entry_rows()
        if semester is not None:
            query = query.where(TimetableEntry.semester == semester)
        if academic_year is not None:
            query = query.where(TimetableEntry.academic_year == academic_year)
        if faculty_id is not None:
            query = query.where(TimetableEntry.faculty_id == faculty_id)
        if slot_id is not None:
            query = query.where(TimetableEntry.slot_id == slot_id)
        if is_active is not None:
            query = query.where(TimetableEntry.is_active.is_(is_active))
        return self._fetch_rows(query.order_by(TimetableEntry.academic_year, TimetableEntry.semester))

    def get_entry(self, entry_id: str) -> TimetableEntry | None:
        return self.db.get(TimetableEntry, entry_id)

    def upsert_entry(self, entry: TimetableEntry) -> TimetableEntry:
        with self._writing("upsert_entry"):
            self.db.add(entry)
            self.db.flush()
        return entry

    def set_entry_active(self, entry_id: str, active: bool) -> TimetableEntry:
        entry = self.get_entry(entry_id)
        if entry is None:
            raise ResourceNotFoundError("TimetableEntry", entry_id)
        with self._writing("set_entry_active"):
            entry.is_active = active
            self.db.flush()
        return entry

    def get_reference(self, model: type[Base], resource_id: str) -> Base | None:
        """Look up a subject, faculty member or classroom an entry points at."""
        return self.db.get(model, resource_id)

    # -- transaction control ------------------------------------------------

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Run reads whose failure must not abort the surrounding transaction.

        PostgreSQL refuses further statements in a transaction after one
        fails; rolling back to the savepoint keeps the session usable.
        """
        with self.db.begin_nested():
            yield

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Storage commit failed")
            raise StorageWriteError("commit") from exc

    def rollback(self) -> None:
        self.db.rollback()
