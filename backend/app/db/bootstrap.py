from __future__ import annotations

import logging

from sqlalchemy import inspect, text

from app.core.config import get_settings
from app.db.base import Base
from app.db.session import engine
import app.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "time_slots": {"id", "day_of_week", "start_time", "end_time", "name", "kind", "is_active"},
    "timetable_entries": {
        "id",
        "subject_id",
        "faculty_id",
        "classroom_id",
        "section",
        "semester",
        "academic_year",
        "slot_id",
        "is_active",
    },
    "activity_logs": {"id", "actor", "action", "entity_id", "details"},
}


def _ensure_time_slot_kind_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "time_slots" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("time_slots")}
        if "kind" in column_names:
            return
        # Older databases predate break/lunch slots; every existing row is a teaching slot.
        connection.execute(
            text("ALTER TABLE time_slots ADD COLUMN kind VARCHAR(10) NOT NULL DEFAULT 'regular'")
        )


def _ensure_timetable_entry_active_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "timetable_entries" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("timetable_entries")}
        if "is_active" in column_names:
            return
        default = "true" if connection.dialect.name == "postgresql" else "1"
        connection.execute(
            text(f"ALTER TABLE timetable_entries ADD COLUMN is_active BOOLEAN NOT NULL DEFAULT {default}")
        )


def missing_schema(connection) -> tuple[list[str], dict[str, list[str]]]:
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            missing_tables.append(table_name)
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(required - existing)
        if missing:
            missing_columns[table_name] = missing
    return sorted(missing_tables), missing_columns


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        missing_tables, missing_columns = missing_schema(connection)
    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
    if missing_columns:
        flattened = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flattened)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        if get_settings().auto_create_schema:
            # Ensure missing tables are present before additive compatibility patches.
            Base.metadata.create_all(bind=engine)
        _ensure_time_slot_kind_column()
        _ensure_timetable_entry_active_column()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
