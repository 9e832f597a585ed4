from __future__ import annotations

from dataclasses import asdict, dataclass
import logging
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.schemas.lifecycle import SlotState

logger = logging.getLogger(__name__)

LIFECYCLE_ACTIONS = {
    SlotState.active: "time_slot.activated",
    SlotState.inactive: "time_slot.deactivated",
    SlotState.deleted: "time_slot.deleted",
}


@dataclass(frozen=True)
class LifecycleEvent:
    slot_id: str
    from_state: SlotState
    to_state: SlotState
    affected_active_entry_count: int

    def as_details(self) -> dict:
        details = asdict(self)
        details["from_state"] = self.from_state.value
        details["to_state"] = self.to_state.value
        return details


class AuditSink(Protocol):
    def emit(self, event: LifecycleEvent) -> None: ...


def log_activity(
    db: Session,
    *,
    actor: str | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> None:
    record = ActivityLog(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(record)


class ActivityLogSink:
    """Persists lifecycle events as activity log rows.

    Delivery is a single best-effort attempt: failures are logged and
    swallowed so an already committed transition is never reported as failed.
    """

    def __init__(self, db: Session, *, actor: str | None = None) -> None:
        self.db = db
        self.actor = actor

    def emit(self, event: LifecycleEvent) -> None:
        try:
            log_activity(
                self.db,
                actor=self.actor,
                action=LIFECYCLE_ACTIONS[event.to_state],
                entity_type="time_slot",
                entity_id=event.slot_id,
                details=event.as_details(),
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("Could not record lifecycle event for time slot %s", event.slot_id, exc_info=True)
