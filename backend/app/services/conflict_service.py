from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable

from app.core.exceptions import ResourceNotFoundError
from app.models.time_slot import Weekday
from app.schemas.timetable import (
    ConflictCheckRequest,
    ConflictKind,
    ConflictResult,
    EntryContextOut,
    TermConflict,
    TermConflictReport,
)
from app.services.repository import EntryRow, TimetableStore
from app.services.time_range import TimeRange

Matcher = Callable[[ConflictCheckRequest, EntryRow], bool]

CONFLICT_MESSAGES = {
    ConflictKind.faculty_double_booked: "Faculty conflict: already teaching at this time",
    ConflictKind.classroom_double_booked: "Classroom conflict: already booked at this time",
    ConflictKind.section_double_booked: "Section conflict: section already has a class at this time",
}

# Highest priority first: an administrator fixes one cause at a time.
CONFLICT_PRIORITY: tuple[tuple[ConflictKind, Matcher], ...] = (
    (ConflictKind.faculty_double_booked, lambda cand, row: row.entry.faculty_id == cand.faculty_id),
    (ConflictKind.classroom_double_booked, lambda cand, row: row.entry.classroom_id == cand.classroom_id),
    (ConflictKind.section_double_booked, lambda cand, row: row.entry.section == cand.section),
)


def _as_candidate(row: EntryRow) -> ConflictCheckRequest:
    entry = row.entry
    return ConflictCheckRequest(
        faculty_id=entry.faculty_id,
        classroom_id=entry.classroom_id,
        section=entry.section,
        semester=entry.semester,
        academic_year=entry.academic_year,
        slot_id=entry.slot_id,
        exclude_entry_id=entry.id,
    )


class ScheduleConflictChecker:
    """Detects double-booked faculty, classrooms and sections among active entries.

    Two entries collide when their slots overlap in time on the same day, even
    if they reference different slot definitions. Results are advisory: the
    caller decides whether to reject or warn.
    """

    def __init__(self, store: TimetableStore) -> None:
        self.store = store

    def _resolve_range(self, slot_id: str) -> TimeRange:
        slot = self.store.get_slot(slot_id)
        if slot is None:
            raise ResourceNotFoundError("TimeSlot", slot_id)
        return TimeRange.from_slot(slot)

    def _overlapping_rows(
        self,
        candidate: ConflictCheckRequest,
        candidate_range: TimeRange,
        *,
        skip_slot_id: str | None = None,
    ) -> list[EntryRow]:
        rows = self.store.list_active_entries(
            semester=candidate.semester,
            academic_year=candidate.academic_year,
            day=candidate_range.day,
            exclude_entry_id=candidate.exclude_entry_id,
        )
        return [
            row
            for row in rows
            if row.slot is not None
            and row.entry.slot_id != skip_slot_id
            and TimeRange.from_slot(row.slot).overlaps(candidate_range)
        ]

    def _first_conflict(
        self,
        candidate: ConflictCheckRequest,
        candidate_range: TimeRange,
        *,
        skip_slot_id: str | None = None,
    ) -> ConflictResult:
        overlapping = self._overlapping_rows(candidate, candidate_range, skip_slot_id=skip_slot_id)
        for kind, matches in CONFLICT_PRIORITY:
            for row in overlapping:
                if matches(candidate, row):
                    return ConflictResult(kind=kind, conflicting_entry=row.to_context())
        return ConflictResult()

    def check_entry_conflict(self, candidate: ConflictCheckRequest) -> ConflictResult:
        return self._first_conflict(candidate, self._resolve_range(candidate.slot_id))

    def check_slot_move(self, slot_id: str, new_range: TimeRange) -> TermConflict | None:
        """First collision the slot's active entries would have once moved to ``new_range``.

        Entries sharing the slot move together, so they are not compared with
        each other.
        """
        for row in self.store.list_active_entries_for_slot(slot_id):
            result = self._first_conflict(_as_candidate(row), new_range, skip_slot_id=slot_id)
            if result.has_conflict:
                return TermConflict(kind=result.kind, first=row.to_context(), second=result.conflicting_entry)
        return None

    def faculty_day_schedule(self, candidate: ConflictCheckRequest) -> list[EntryContextOut]:
        """Other active classes the faculty member teaches on the candidate's day."""
        candidate_range = self._resolve_range(candidate.slot_id)
        rows = self.store.list_active_entries(
            semester=candidate.semester,
            academic_year=candidate.academic_year,
            day=candidate_range.day,
            exclude_entry_id=candidate.exclude_entry_id,
        )
        return [
            row.to_context()
            for row in rows
            if row.entry.faculty_id == candidate.faculty_id and row.entry.slot_id != candidate.slot_id
        ]

    def detect_term_conflicts(self, semester: int, academic_year: str) -> TermConflictReport:
        rows = self.store.list_active_entries(semester=semester, academic_year=academic_year)

        rows_by_day: dict[Weekday, list[tuple[EntryRow, TimeRange]]] = defaultdict(list)
        for row in rows:
            if row.slot is None:
                continue
            time_range = TimeRange.from_slot(row.slot)
            rows_by_day[time_range.day].append((row, time_range))

        conflicts: list[TermConflict] = []
        for day_rows in rows_by_day.values():
            for i, (first, first_range) in enumerate(day_rows):
                candidate = _as_candidate(first)
                for second, second_range in day_rows[i + 1:]:
                    if not first_range.overlaps(second_range):
                        continue
                    kind = next(
                        (kind for kind, matches in CONFLICT_PRIORITY if matches(candidate, second)),
                        None,
                    )
                    if kind is not None:
                        conflicts.append(
                            TermConflict(kind=kind, first=first.to_context(), second=second.to_context())
                        )

        return TermConflictReport(semester=semester, academic_year=academic_year, conflicts=conflicts)
