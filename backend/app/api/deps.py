from collections.abc import Generator

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.services.audit import ActivityLogSink
from app.services.conflict_service import ScheduleConflictChecker
from app.services.dependency_inspector import DependencyInspector
from app.services.lifecycle import LifecycleManager
from app.services.repository import SqlTimetableStore
from app.services.slot_validator import TimeSlotValidator


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor(x_actor: str | None = Header(default=None, max_length=100)) -> str | None:
    # Authentication lives in front of this service; it forwards who acted.
    return x_actor.strip() if x_actor and x_actor.strip() else None


def get_store(db: Session = Depends(get_db)) -> SqlTimetableStore:
    return SqlTimetableStore(db)


def get_slot_validator() -> TimeSlotValidator:
    return TimeSlotValidator.from_settings(get_settings())


def get_dependency_inspector(store: SqlTimetableStore = Depends(get_store)) -> DependencyInspector:
    return DependencyInspector(store)


def get_conflict_checker(store: SqlTimetableStore = Depends(get_store)) -> ScheduleConflictChecker:
    return ScheduleConflictChecker(store)


def get_lifecycle_manager(
    store: SqlTimetableStore = Depends(get_store),
    actor: str | None = Depends(get_actor),
) -> LifecycleManager:
    return LifecycleManager.from_settings(store, ActivityLogSink(store.db, actor=actor), get_settings())
