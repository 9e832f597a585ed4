"""Time slot lifecycle: active <-> inactive, and permanent deletion.

Every transition goes through :meth:`LifecycleManager.apply`, which runs the
two phases back to back inside one database transaction:

* ``begin_transition`` locks the slot row and records its current state;
* ``commit`` re-inspects dependencies right before mutating, applies the
  change, commits, and only then emits the audit event.

Activation and deactivation are always legal and never touch timetable
entries. Permanent deletion is legal only while nothing references the slot;
otherwise the slot is deactivated instead and the result says so.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings
from app.core.exceptions import ResourceNotFoundError, StorageWriteError
from app.models.time_slot import TimeSlot
from app.schemas.lifecycle import (
    BlockedByDependency,
    BulkTransitionResult,
    SlotState,
    SlotTransition,
    TransitionOutcome,
    TransitionResult,
)
from app.services.audit import AuditSink, LifecycleEvent
from app.services.dependency_inspector import DependencyInspector
from app.services.repository import TimetableStore

logger = logging.getLogger(__name__)


def slot_state(slot: TimeSlot) -> SlotState:
    return SlotState.active if slot.is_active else SlotState.inactive


@dataclass(frozen=True)
class TransitionLease:
    slot_id: str
    transition: SlotTransition
    from_state: SlotState


class LifecycleManager:
    def __init__(
        self,
        store: TimetableStore,
        inspector: DependencyInspector,
        audit_sink: AuditSink,
        *,
        fail_closed: bool = True,
        sample_size: int = 10,
    ) -> None:
        self.store = store
        self.inspector = inspector
        self.audit_sink = audit_sink
        self.fail_closed = fail_closed
        self.sample_size = sample_size

    @classmethod
    def from_settings(
        cls,
        store: TimetableStore,
        audit_sink: AuditSink,
        settings: Settings,
    ) -> LifecycleManager:
        return cls(
            store,
            DependencyInspector(store),
            audit_sink,
            fail_closed=settings.dependency_check_fail_closed,
            sample_size=settings.dependency_sample_size,
        )

    def apply(self, slot_id: str, transition: SlotTransition) -> TransitionResult:
        transition = SlotTransition(transition)
        try:
            lease = self.begin_transition(slot_id, transition)
        except Exception:
            self.store.rollback()
            raise
        return self.commit(lease)

    def begin_transition(self, slot_id: str, transition: SlotTransition) -> TransitionLease:
        slot = self.store.lock_slot(slot_id)
        if slot is None:
            raise ResourceNotFoundError("TimeSlot", slot_id)
        return TransitionLease(slot_id=slot_id, transition=SlotTransition(transition), from_state=slot_state(slot))

    def commit(self, lease: TransitionLease) -> TransitionResult:
        try:
            if lease.transition is SlotTransition.delete:
                result = self._delete(lease)
            else:
                result = self._set_active(lease, active=lease.transition is SlotTransition.activate)

            if result.outcome is TransitionOutcome.failed:
                self.store.rollback()
                return result
            self.store.commit()
        except Exception:
            self.store.rollback()
            raise

        logger.info(
            "Time slot %s %s: %s -> %s (%d active entries affected)",
            lease.slot_id,
            result.outcome.value,
            result.from_state.value,
            result.to_state.value,
            result.affected_active_entry_count,
        )
        self.audit_sink.emit(
            LifecycleEvent(
                slot_id=lease.slot_id,
                from_state=result.from_state,
                to_state=result.to_state,
                affected_active_entry_count=result.affected_active_entry_count,
            )
        )
        return result

    def bulk_apply(self, slot_ids: list[str], transition: SlotTransition) -> BulkTransitionResult:
        """Apply one transition to many slots; each slot commits or fails on its own."""
        transition = SlotTransition(transition)
        results: list[TransitionResult] = []
        for slot_id in slot_ids:
            try:
                results.append(self.apply(slot_id, transition))
            except ResourceNotFoundError as exc:
                results.append(self._failure(slot_id, transition, "not_found", exc.message))
            except StorageWriteError as exc:
                results.append(self._failure(slot_id, transition, "storage_error", exc.message))
            except SQLAlchemyError:
                logger.exception("Bulk %s failed for time slot %s", transition.value, slot_id)
                results.append(self._failure(slot_id, transition, "storage_error", "Storage read failed"))

        failed = sum(1 for result in results if not result.succeeded)
        return BulkTransitionResult(
            transition=transition,
            results=results,
            succeeded=len(results) - failed,
            failed=failed,
        )

    def _set_active(self, lease: TransitionLease, *, active: bool) -> TransitionResult:
        snapshot = self.inspector.inspect(lease.slot_id)
        affected = len(snapshot.active_entries)
        self.store.set_slot_active(lease.slot_id, active)
        to_state = SlotState.active if active else SlotState.inactive
        verb = "activated" if active else "deactivated"
        message = f"Time slot has been {verb} successfully."
        if not active and affected:
            message = f"Time slot has been deactivated (affects {affected} active schedules)."
        return TransitionResult(
            slot_id=lease.slot_id,
            transition=lease.transition,
            outcome=TransitionOutcome.applied,
            from_state=lease.from_state,
            to_state=to_state,
            affected_active_entry_count=affected,
            message=message,
        )

    def _delete(self, lease: TransitionLease) -> TransitionResult:
        snapshot = self.inspector.inspect(lease.slot_id)

        if snapshot.check_failed and self.fail_closed:
            return TransitionResult(
                slot_id=lease.slot_id,
                transition=lease.transition,
                outcome=TransitionOutcome.failed,
                from_state=lease.from_state,
                to_state=lease.from_state,
                reason="dependency_check_failed",
                message="Dependencies could not be verified; the time slot was not deleted.",
            )

        if snapshot.has_dependencies or snapshot.total_dependency_count > 0:
            affected = len(snapshot.active_entries)
            self.store.set_slot_active(lease.slot_id, False)
            return TransitionResult(
                slot_id=lease.slot_id,
                transition=lease.transition,
                outcome=TransitionOutcome.forced_deactivation,
                from_state=lease.from_state,
                to_state=SlotState.inactive,
                affected_active_entry_count=affected,
                blocked=BlockedByDependency(
                    reason="slot_in_use",
                    total_dependency_count=snapshot.total_dependency_count,
                    active_entry_count=affected,
                    sample=snapshot.active_entries[: self.sample_size],
                ),
                reason="slot_in_use",
                message=(
                    "Cannot permanently delete time slot. It is being used in "
                    f"{snapshot.total_dependency_count} timetable entries; it was deactivated instead."
                ),
            )

        self.store.delete_slot(lease.slot_id)
        return TransitionResult(
            slot_id=lease.slot_id,
            transition=lease.transition,
            outcome=TransitionOutcome.applied,
            from_state=lease.from_state,
            to_state=SlotState.deleted,
            message="Time slot has been permanently deleted.",
        )

    @staticmethod
    def _failure(slot_id: str, transition: SlotTransition, reason: str, message: str) -> TransitionResult:
        return TransitionResult(
            slot_id=slot_id,
            transition=transition,
            outcome=TransitionOutcome.failed,
            reason=reason,
            message=message,
        )
