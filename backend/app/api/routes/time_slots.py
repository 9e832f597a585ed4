from fastapi import APIRouter, Depends, status

from app.api.deps import (
    get_actor,
    get_conflict_checker,
    get_dependency_inspector,
    get_lifecycle_manager,
    get_slot_validator,
    get_store,
)
from app.core.exceptions import DuplicateSlotError, ResourceNotFoundError, ScheduleConflictError
from app.models.time_slot import SlotKind, TimeSlot, Weekday
from app.schemas.lifecycle import (
    BulkTransitionRequest,
    BulkTransitionResult,
    DependencySnapshot,
    SlotTransition,
    TransitionRequest,
    TransitionResult,
)
from app.schemas.time_slot import (
    SlotUsageStats,
    TimeSlotCreate,
    TimeSlotOut,
    TimeSlotUpdate,
    TimeSlotWriteResult,
)
from app.services.audit import log_activity
from app.services.conflict_service import CONFLICT_MESSAGES, ScheduleConflictChecker
from app.services.dependency_inspector import DependencyInspector
from app.services.lifecycle import LifecycleManager
from app.services.repository import SqlTimetableStore
from app.services.slot_usage import summarize_slots
from app.services.slot_validator import TimeSlotValidator
from app.services.time_range import format_minutes

router = APIRouter()


def _get_slot_or_404(store: SqlTimetableStore, slot_id: str) -> TimeSlot:
    slot = store.get_slot(slot_id)
    if slot is None:
        raise ResourceNotFoundError("TimeSlot", slot_id)
    return slot


def _write_result(slot: TimeSlot, conflicting: TimeSlot | None, warnings: list[str]) -> TimeSlotWriteResult:
    if conflicting is not None:
        warnings.append(
            f"Overlaps with existing slot '{conflicting.name}' "
            f"({conflicting.day_of_week.value} {conflicting.start_time}-{conflicting.end_time})."
        )
    return TimeSlotWriteResult(
        slot=TimeSlotOut.model_validate(slot),
        conflicting_slot=TimeSlotOut.model_validate(conflicting) if conflicting is not None else None,
        warnings=warnings,
    )


@router.get("", response_model=list[TimeSlotOut])
def list_time_slots(
    day: Weekday | None = None,
    kind: SlotKind | None = None,
    is_active: bool | None = None,
    store: SqlTimetableStore = Depends(get_store),
) -> list[TimeSlotOut]:
    return store.list_slots(day=day, kind=kind, is_active=is_active)


@router.get("/available", response_model=list[TimeSlotOut])
def list_available_time_slots(
    day: Weekday | None = None,
    store: SqlTimetableStore = Depends(get_store),
) -> list[TimeSlotOut]:
    return store.list_slots(day=day, kind=SlotKind.regular, is_active=True)


@router.get("/stats", response_model=SlotUsageStats)
def time_slot_stats(store: SqlTimetableStore = Depends(get_store)) -> SlotUsageStats:
    return summarize_slots(store.list_slots())


@router.post("", response_model=TimeSlotWriteResult, status_code=status.HTTP_201_CREATED)
def create_time_slot(
    payload: TimeSlotCreate,
    store: SqlTimetableStore = Depends(get_store),
    validator: TimeSlotValidator = Depends(get_slot_validator),
    actor: str | None = Depends(get_actor),
) -> TimeSlotWriteResult:
    time_range = validator.validate_shape(payload)
    same_day = store.list_slots(day=payload.day_of_week)
    duplicate = validator.find_duplicate_slot(payload, same_day)
    if duplicate is not None:
        raise DuplicateSlotError(duplicate.id)
    conflicting = validator.find_conflicting_slot(payload, same_day)

    slot = TimeSlot(
        day_of_week=payload.day_of_week,
        start_time=format_minutes(time_range.start),
        end_time=format_minutes(time_range.end),
        name=payload.name,
        kind=payload.kind,
        is_active=payload.is_active,
    )
    store.upsert_slot(slot)
    log_activity(
        store.db,
        actor=actor,
        action="time_slot.created",
        entity_type="time_slot",
        entity_id=slot.id,
        details=TimeSlotOut.model_validate(slot).model_dump(mode="json"),
    )
    store.commit()
    return _write_result(slot, conflicting, [])


@router.get("/{slot_id}", response_model=TimeSlotOut)
def get_time_slot(slot_id: str, store: SqlTimetableStore = Depends(get_store)) -> TimeSlotOut:
    return _get_slot_or_404(store, slot_id)


@router.put("/{slot_id}", response_model=TimeSlotWriteResult)
def update_time_slot(
    slot_id: str,
    payload: TimeSlotUpdate,
    store: SqlTimetableStore = Depends(get_store),
    validator: TimeSlotValidator = Depends(get_slot_validator),
    inspector: DependencyInspector = Depends(get_dependency_inspector),
    checker: ScheduleConflictChecker = Depends(get_conflict_checker),
    actor: str | None = Depends(get_actor),
) -> TimeSlotWriteResult:
    slot = _get_slot_or_404(store, slot_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    candidate = TimeSlotCreate(
        day_of_week=data.get("day_of_week", slot.day_of_week),
        start_time=data.get("start_time", slot.start_time),
        end_time=data.get("end_time", slot.end_time),
        name=data.get("name", slot.name),
        kind=data.get("kind", slot.kind),
        is_active=slot.is_active,
    )
    time_range = validator.validate_shape(candidate)
    same_day = store.list_slots(day=candidate.day_of_week)
    duplicate = validator.find_duplicate_slot(candidate, same_day, exclude_id=slot_id)
    if duplicate is not None:
        raise DuplicateSlotError(duplicate.id)
    conflicting = validator.find_conflicting_slot(candidate, same_day, exclude_id=slot_id)

    before = TimeSlotOut.model_validate(slot).model_dump(mode="json")
    warnings: list[str] = []
    timing_changed = (
        candidate.day_of_week != slot.day_of_week
        or format_minutes(time_range.start) != slot.start_time
        or format_minutes(time_range.end) != slot.end_time
    )
    if timing_changed:
        # Entries on the slot move with it and must not collide at the new time.
        collision = checker.check_slot_move(slot_id, time_range)
        if collision is not None:
            raise ScheduleConflictError(
                f"Moving this slot would double-book its entries. {CONFLICT_MESSAGES[collision.kind]}",
                details={
                    "kind": collision.kind.value,
                    "moving_entry": collision.first.model_dump(mode="json"),
                    "conflicting_entry": collision.second.model_dump(mode="json"),
                },
            )
        snapshot = inspector.inspect(slot_id)
        if snapshot.has_dependencies:
            warnings.append(
                f"{len(snapshot.active_entries)} active timetable entries use this slot and move with it."
            )

    slot.day_of_week = candidate.day_of_week
    slot.start_time = format_minutes(time_range.start)
    slot.end_time = format_minutes(time_range.end)
    slot.name = candidate.name
    slot.kind = candidate.kind
    store.upsert_slot(slot)
    log_activity(
        store.db,
        actor=actor,
        action="time_slot.updated",
        entity_type="time_slot",
        entity_id=slot.id,
        details={"before": before, "after": TimeSlotOut.model_validate(slot).model_dump(mode="json")},
    )
    store.commit()
    return _write_result(slot, conflicting, warnings)


@router.get("/{slot_id}/dependencies", response_model=DependencySnapshot)
def get_time_slot_dependencies(
    slot_id: str,
    store: SqlTimetableStore = Depends(get_store),
    inspector: DependencyInspector = Depends(get_dependency_inspector),
) -> DependencySnapshot:
    _get_slot_or_404(store, slot_id)
    return inspector.inspect(slot_id)


@router.post("/bulk-transitions", response_model=BulkTransitionResult)
def bulk_transition_time_slots(
    payload: BulkTransitionRequest,
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> BulkTransitionResult:
    return manager.bulk_apply(payload.slot_ids, payload.transition)


@router.post("/{slot_id}/transitions", response_model=TransitionResult)
def transition_time_slot(
    slot_id: str,
    payload: TransitionRequest,
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> TransitionResult:
    return manager.apply(slot_id, payload.transition)


@router.delete("/{slot_id}", response_model=TransitionResult)
def delete_time_slot(
    slot_id: str,
    permanent: bool = False,
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> TransitionResult:
    transition = SlotTransition.delete if permanent else SlotTransition.deactivate
    return manager.apply(slot_id, transition)
