from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.models.activity_log import ActivityLog
from app.schemas.lifecycle import SlotState
from app.services.audit import ActivityLogSink, LifecycleEvent


def event(to_state=SlotState.inactive):
    return LifecycleEvent(
        slot_id="slot-1",
        from_state=SlotState.active,
        to_state=to_state,
        affected_active_entry_count=2,
    )


def test_sink_persists_event(db_session):
    ActivityLogSink(db_session, actor="registrar").emit(event())

    [record] = db_session.execute(select(ActivityLog)).scalars().all()
    assert record.action == "time_slot.deactivated"
    assert record.actor == "registrar"
    assert record.entity_id == "slot-1"
    assert record.details == {
        "slot_id": "slot-1",
        "from_state": "active",
        "to_state": "inactive",
        "affected_active_entry_count": 2,
    }


def test_sink_failure_is_logged_not_raised(db_session, monkeypatch, caplog):
    def failing_commit():
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    ActivityLogSink(db_session).emit(event(SlotState.deleted))

    assert "Could not record lifecycle event" in caplog.text
    assert db_session.execute(select(ActivityLog)).scalars().all() == []
