import os
import tempfile

# The app builds its engine at import time; keep startup off the working-directory database.
os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{os.path.join(tempfile.mkdtemp(), 'timetable-test.db')}"
)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.db.base import Base
from app.main import app
from app.models.classroom import Classroom
from app.models.faculty import Faculty
from app.models.subject import Subject
from app.models.time_slot import SlotKind, TimeSlot, Weekday
from app.models.timetable_entry import TimetableEntry
from app.services.audit import LifecycleEvent


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_slot(db_session):
    def _make_slot(
        day: Weekday = Weekday.monday,
        start: str = "09:00",
        end: str = "09:50",
        name: str = "Period 1",
        kind: SlotKind = SlotKind.regular,
        is_active: bool = True,
    ) -> TimeSlot:
        slot = TimeSlot(day_of_week=day, start_time=start, end_time=end, name=name, kind=kind, is_active=is_active)
        db_session.add(slot)
        db_session.commit()
        return slot

    return _make_slot


@pytest.fixture()
def refs(db_session):
    """Two of each referenced resource, keyed by a short label."""
    subjects = [Subject(code="CS101", name="Programming"), Subject(code="MA201", name="Linear Algebra")]
    faculty = [Faculty(name="Prof A", department="CS"), Faculty(name="Prof B", department="Maths")]
    classrooms = [Classroom(room_number="101", building="Main"), Classroom(room_number="202", building="Main")]
    db_session.add_all([*subjects, *faculty, *classrooms])
    db_session.commit()
    return {
        "subject_1": subjects[0].id,
        "subject_2": subjects[1].id,
        "faculty_1": faculty[0].id,
        "faculty_2": faculty[1].id,
        "room_1": classrooms[0].id,
        "room_2": classrooms[1].id,
    }


@pytest.fixture()
def make_entry(db_session, refs):
    def _make_entry(
        slot: TimeSlot,
        *,
        faculty: str = "faculty_1",
        room: str = "room_1",
        subject: str = "subject_1",
        section: str = "A",
        semester: int = 3,
        academic_year: str = "2025-2026",
        is_active: bool = True,
    ) -> TimetableEntry:
        entry = TimetableEntry(
            subject_id=refs[subject],
            faculty_id=refs[faculty],
            classroom_id=refs[room],
            section=section,
            semester=semester,
            academic_year=academic_year,
            slot_id=slot.id,
            is_active=is_active,
        )
        db_session.add(entry)
        db_session.commit()
        return entry

    return _make_entry


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[LifecycleEvent] = []

    def emit(self, event: LifecycleEvent) -> None:
        self.events.append(event)


@pytest.fixture()
def audit_sink():
    return RecordingSink()
