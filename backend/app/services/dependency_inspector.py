from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from app.schemas.lifecycle import DependencySnapshot
from app.services.repository import TimetableStore

logger = logging.getLogger(__name__)


class DependencyInspector:
    """Reports which timetable entries still reference a time slot.

    Slots carry no foreign key to their entries, so this is the only place
    referential consistency between the two is checked. Snapshots are built
    fresh on every call.
    """

    def __init__(self, store: TimetableStore) -> None:
        self.store = store

    def inspect(self, slot_id: str) -> DependencySnapshot:
        try:
            with self.store.savepoint():
                rows = self.store.list_active_entries_for_slot(slot_id)
                total = self.store.count_all_entries_for_slot(slot_id)
        except SQLAlchemyError:
            # Destructive callers must look at check_failed.
            logger.warning("Dependency check failed for time slot %s", slot_id, exc_info=True)
            return DependencySnapshot(slot_id=slot_id, check_failed=True)

        active_entries = [row.to_context() for row in rows]
        return DependencySnapshot(
            slot_id=slot_id,
            has_dependencies=bool(active_entries),
            active_entries=active_entries,
            total_dependency_count=max(total, len(active_entries)),
        )
