from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_actor, get_conflict_checker, get_store
from app.core.exceptions import InactiveSlotError, ResourceNotFoundError, ScheduleConflictError
from app.models.classroom import Classroom
from app.models.faculty import Faculty
from app.models.subject import Subject
from app.models.time_slot import TimeSlot
from app.models.timetable_entry import TimetableEntry
from app.schemas.timetable import (
    ConflictCheckRequest,
    ConflictCheckResponse,
    ConflictResult,
    EntryContextOut,
    TermConflictReport,
    TimetableEntryCreate,
    TimetableEntryOut,
    TimetableEntryUpdate,
    TimetableEntryWriteResult,
    clean_section,
)
from app.services.audit import log_activity
from app.services.conflict_service import CONFLICT_MESSAGES, ScheduleConflictChecker
from app.services.repository import SqlTimetableStore

router = APIRouter()

INACTIVE_SLOT_WARNING = "This entry references an inactive time slot."


def _get_entry_or_404(store: SqlTimetableStore, entry_id: str) -> TimetableEntry:
    entry = store.get_entry(entry_id)
    if entry is None:
        raise ResourceNotFoundError("TimetableEntry", entry_id)
    return entry


def _get_slot_or_404(store: SqlTimetableStore, slot_id: str) -> TimeSlot:
    slot = store.get_slot(slot_id)
    if slot is None:
        raise ResourceNotFoundError("TimeSlot", slot_id)
    return slot


def _ensure_references(store: SqlTimetableStore, *, subject_id: str, faculty_id: str, classroom_id: str) -> None:
    for model, resource_type, resource_id in (
        (Subject, "Subject", subject_id),
        (Faculty, "Faculty", faculty_id),
        (Classroom, "Classroom", classroom_id),
    ):
        if store.get_reference(model, resource_id) is None:
            raise ResourceNotFoundError(resource_type, resource_id)


def _raise_on_conflict(result: ConflictResult) -> None:
    if not result.has_conflict:
        return
    conflicting = result.conflicting_entry
    message = CONFLICT_MESSAGES[result.kind]
    if conflicting is not None and conflicting.subject_code:
        message = f"{message} ({conflicting.subject_code} - {conflicting.subject_name})"
    raise ScheduleConflictError(
        message,
        details={
            "kind": result.kind.value,
            "conflicting_entry": conflicting.model_dump(mode="json") if conflicting is not None else None,
        },
    )


def _candidate(entry: TimetableEntry) -> ConflictCheckRequest:
    return ConflictCheckRequest(
        faculty_id=entry.faculty_id,
        classroom_id=entry.classroom_id,
        section=entry.section,
        semester=entry.semester,
        academic_year=entry.academic_year,
        slot_id=entry.slot_id,
        exclude_entry_id=entry.id,
    )


def _write_result(store: SqlTimetableStore, entry: TimetableEntry) -> TimetableEntryWriteResult:
    slot = store.get_slot(entry.slot_id)
    warnings = [INACTIVE_SLOT_WARNING] if slot is not None and not slot.is_active else []
    return TimetableEntryWriteResult(entry=TimetableEntryOut.model_validate(entry), warnings=warnings)


@router.get("/entries", response_model=list[EntryContextOut])
def list_timetable_entries(
    semester: int | None = Query(default=None, ge=1, le=12),
    academic_year: str | None = None,
    faculty_id: str | None = None,
    slot_id: str | None = None,
    is_active: bool | None = None,
    store: SqlTimetableStore = Depends(get_store),
) -> list[EntryContextOut]:
    rows = store.list_entries(
        semester=semester,
        academic_year=academic_year,
        faculty_id=faculty_id,
        slot_id=slot_id,
        is_active=is_active,
    )
    return [row.to_context() for row in rows]


@router.get("/entries/{entry_id}", response_model=TimetableEntryOut)
def get_timetable_entry(entry_id: str, store: SqlTimetableStore = Depends(get_store)) -> TimetableEntryOut:
    return _get_entry_or_404(store, entry_id)


@router.post("/entries", response_model=TimetableEntryWriteResult, status_code=status.HTTP_201_CREATED)
def create_timetable_entry(
    payload: TimetableEntryCreate,
    store: SqlTimetableStore = Depends(get_store),
    checker: ScheduleConflictChecker = Depends(get_conflict_checker),
    actor: str | None = Depends(get_actor),
) -> TimetableEntryWriteResult:
    _ensure_references(
        store,
        subject_id=payload.subject_id,
        faculty_id=payload.faculty_id,
        classroom_id=payload.classroom_id,
    )
    slot = _get_slot_or_404(store, payload.slot_id)
    if not slot.is_active:
        raise InactiveSlotError(slot.id)

    _raise_on_conflict(checker.check_entry_conflict(ConflictCheckRequest(**payload.model_dump())))

    entry = TimetableEntry(**payload.model_dump(), is_active=True)
    store.upsert_entry(entry)
    log_activity(
        store.db,
        actor=actor,
        action="timetable_entry.created",
        entity_type="timetable_entry",
        entity_id=entry.id,
        details=payload.model_dump(mode="json"),
    )
    store.commit()
    return _write_result(store, entry)


@router.put("/entries/{entry_id}", response_model=TimetableEntryWriteResult)
def update_timetable_entry(
    entry_id: str,
    payload: TimetableEntryUpdate,
    store: SqlTimetableStore = Depends(get_store),
    checker: ScheduleConflictChecker = Depends(get_conflict_checker),
    actor: str | None = Depends(get_actor),
) -> TimetableEntryWriteResult:
    entry = _get_entry_or_404(store, entry_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "section" in data:
        data["section"] = clean_section(data["section"])

    _ensure_references(
        store,
        subject_id=data.get("subject_id", entry.subject_id),
        faculty_id=data.get("faculty_id", entry.faculty_id),
        classroom_id=data.get("classroom_id", entry.classroom_id),
    )
    if data.get("slot_id", entry.slot_id) != entry.slot_id:
        slot = _get_slot_or_404(store, data["slot_id"])
        if not slot.is_active:
            raise InactiveSlotError(slot.id)

    if entry.is_active:
        candidate = _candidate(entry).model_copy(
            update={key: value for key, value in data.items() if key != "subject_id"}
        )
        _raise_on_conflict(checker.check_entry_conflict(candidate))

    for key, value in data.items():
        setattr(entry, key, value)
    store.upsert_entry(entry)
    if data:
        log_activity(
            store.db,
            actor=actor,
            action="timetable_entry.updated",
            entity_type="timetable_entry",
            entity_id=entry.id,
            details=data,
        )
    store.commit()
    return _write_result(store, entry)


@router.post("/entries/{entry_id}/activate", response_model=TimetableEntryWriteResult)
def activate_timetable_entry(
    entry_id: str,
    store: SqlTimetableStore = Depends(get_store),
    checker: ScheduleConflictChecker = Depends(get_conflict_checker),
    actor: str | None = Depends(get_actor),
) -> TimetableEntryWriteResult:
    entry = _get_entry_or_404(store, entry_id)
    if not entry.is_active:
        # Re-entering the active set can collide with entries created meanwhile.
        _raise_on_conflict(checker.check_entry_conflict(_candidate(entry)))
        store.set_entry_active(entry_id, True)
        log_activity(
            store.db,
            actor=actor,
            action="timetable_entry.activated",
            entity_type="timetable_entry",
            entity_id=entry_id,
        )
        store.commit()
    return _write_result(store, entry)


@router.post("/entries/{entry_id}/deactivate", response_model=TimetableEntryWriteResult)
def deactivate_timetable_entry(
    entry_id: str,
    store: SqlTimetableStore = Depends(get_store),
    actor: str | None = Depends(get_actor),
) -> TimetableEntryWriteResult:
    entry = _get_entry_or_404(store, entry_id)
    if entry.is_active:
        store.set_entry_active(entry_id, False)
        log_activity(
            store.db,
            actor=actor,
            action="timetable_entry.deactivated",
            entity_type="timetable_entry",
            entity_id=entry_id,
        )
        store.commit()
    return _write_result(store, entry)


@router.post("/check-conflicts", response_model=ConflictCheckResponse)
def check_conflicts(
    payload: ConflictCheckRequest,
    store: SqlTimetableStore = Depends(get_store),
    checker: ScheduleConflictChecker = Depends(get_conflict_checker),
) -> ConflictCheckResponse:
    slot = _get_slot_or_404(store, payload.slot_id)
    result = checker.check_entry_conflict(payload)
    warnings = ["Selected time slot is inactive."] if not slot.is_active else []
    return ConflictCheckResponse(
        has_conflict=result.has_conflict,
        kind=result.kind,
        conflicting_entry=result.conflicting_entry,
        faculty_day_schedule=[] if result.has_conflict else checker.faculty_day_schedule(payload),
        warnings=warnings,
    )


@router.get("/conflicts", response_model=TermConflictReport)
def term_conflicts(
    semester: int = Query(ge=1, le=12),
    academic_year: str = Query(pattern=r"^\d{4}-\d{4}$"),
    checker: ScheduleConflictChecker = Depends(get_conflict_checker),
) -> TermConflictReport:
    return checker.detect_term_conflicts(semester, academic_year)
