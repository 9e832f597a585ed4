import pytest

from app.db import bootstrap


def _raise_error(message: str):
    raise RuntimeError(message)


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(bootstrap, "_ensure_time_slot_kind_column", lambda: None)
    monkeypatch.setattr(bootstrap, "_ensure_timetable_entry_active_column", lambda: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema compatibility bootstrap failed"):
        bootstrap.ensure_runtime_schema_compatibility()


def test_missing_schema_is_empty_for_full_schema(engine):
    with engine.connect() as connection:
        assert bootstrap.missing_schema(connection) == ([], {})


def test_missing_schema_on_empty_database():
    from sqlalchemy import create_engine

    empty = create_engine("sqlite+pysqlite://")
    with empty.connect() as connection:
        missing_tables, missing_columns = bootstrap.missing_schema(connection)
    assert missing_tables == sorted(bootstrap.REQUIRED_COLUMNS)
    assert missing_columns == {}
