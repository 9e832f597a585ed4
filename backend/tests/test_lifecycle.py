import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app.core.exceptions import ResourceNotFoundError
from app.schemas.lifecycle import SlotState, SlotTransition, TransitionOutcome
from app.services.dependency_inspector import DependencyInspector
from app.services.lifecycle import LifecycleManager
from app.services.repository import SqlTimetableStore


class UnreadableStore(SqlTimetableStore):
    def list_active_entries_for_slot(self, slot_id):
        raise OperationalError("SELECT", {}, Exception("database is locked"))


def manager_for(store, sink, **kwargs):
    return LifecycleManager(store, DependencyInspector(store), sink, **kwargs)


@pytest.fixture()
def store(db_session):
    return SqlTimetableStore(db_session)


def test_delete_unused_slot_removes_it(store, make_slot, audit_sink):
    slot = make_slot()
    slot_id = slot.id
    result = manager_for(store, audit_sink).apply(slot_id, SlotTransition.delete)

    assert result.outcome is TransitionOutcome.applied
    assert result.to_state is SlotState.deleted
    assert store.get_slot(slot_id) is None
    [event] = audit_sink.events
    assert (event.from_state, event.to_state) == (SlotState.active, SlotState.deleted)


def test_delete_slot_in_use_is_forced_to_deactivate(store, make_slot, make_entry, audit_sink):
    slot = make_slot()
    entry = make_entry(slot)
    result = manager_for(store, audit_sink).apply(slot.id, SlotTransition.delete)

    assert result.outcome is TransitionOutcome.forced_deactivation
    assert result.to_state is SlotState.inactive
    assert result.reason == "slot_in_use"
    assert result.blocked.total_dependency_count == 1
    assert result.blocked.active_entry_count == 1
    assert [item.entry_id for item in result.blocked.sample] == [entry.id]

    reloaded = store.get_slot(slot.id)
    assert reloaded is not None
    assert reloaded.is_active is False
    assert store.get_entry(entry.id).is_active is True
    assert audit_sink.events[0].to_state is SlotState.inactive
    assert audit_sink.events[0].affected_active_entry_count == 1


def test_delete_blocked_by_inactive_entries(store, make_slot, make_entry, audit_sink):
    slot = make_slot()
    make_entry(slot, is_active=False)
    result = manager_for(store, audit_sink).apply(slot.id, SlotTransition.delete)

    assert result.outcome is TransitionOutcome.forced_deactivation
    assert result.blocked.total_dependency_count == 1
    assert result.blocked.active_entry_count == 0
    assert store.get_slot(slot.id) is not None


def test_blocked_sample_is_capped(store, make_slot, make_entry, audit_sink):
    slot = make_slot()
    for section in ("A", "B", "C"):
        make_entry(slot, section=section)
    result = manager_for(store, audit_sink, sample_size=2).apply(slot.id, SlotTransition.delete)

    assert result.blocked.total_dependency_count == 3
    assert len(result.blocked.sample) == 2


def test_deactivate_leaves_entries_untouched(store, make_slot, make_entry, audit_sink):
    slot = make_slot()
    entry = make_entry(slot)
    result = manager_for(store, audit_sink).apply(slot.id, SlotTransition.deactivate)

    assert result.outcome is TransitionOutcome.applied
    assert result.affected_active_entry_count == 1
    assert "affects 1 active schedules" in result.message
    assert store.get_slot(slot.id).is_active is False
    assert store.get_entry(entry.id).is_active is True


def test_activate_is_idempotent_and_still_audited(store, make_slot, audit_sink):
    slot = make_slot()
    result = manager_for(store, audit_sink).apply(slot.id, SlotTransition.activate)

    assert result.outcome is TransitionOutcome.applied
    assert result.from_state is SlotState.active
    assert result.to_state is SlotState.active
    assert len(audit_sink.events) == 1


def test_reactivate(store, make_slot, audit_sink):
    slot = make_slot(is_active=False)
    result = manager_for(store, audit_sink).apply(slot.id, SlotTransition.activate)
    assert (result.from_state, result.to_state) == (SlotState.inactive, SlotState.active)
    assert store.get_slot(slot.id).is_active is True


def test_unknown_slot_raises_not_found(store, audit_sink):
    with pytest.raises(ResourceNotFoundError):
        manager_for(store, audit_sink).apply("missing", SlotTransition.deactivate)
    assert audit_sink.events == []


def test_failed_dependency_check_refuses_delete(db_session, make_slot, make_entry, audit_sink):
    slot = make_slot()
    make_entry(slot)
    store = UnreadableStore(db_session)
    result = manager_for(store, audit_sink, fail_closed=True).apply(slot.id, SlotTransition.delete)

    assert result.outcome is TransitionOutcome.failed
    assert result.reason == "dependency_check_failed"
    assert result.to_state is SlotState.active
    assert store.get_slot(slot.id).is_active is True
    assert audit_sink.events == []


def test_failed_dependency_check_can_fail_open(db_session, make_slot, audit_sink):
    slot = make_slot()
    slot_id = slot.id
    store = UnreadableStore(db_session)
    result = manager_for(store, audit_sink, fail_closed=False).apply(slot_id, SlotTransition.delete)

    assert result.outcome is TransitionOutcome.applied
    assert store.get_slot(slot_id) is None


def test_deactivate_proceeds_when_dependency_check_fails(db_session, make_slot, audit_sink):
    slot = make_slot()
    store = UnreadableStore(db_session)
    result = manager_for(store, audit_sink).apply(slot.id, SlotTransition.deactivate)
    assert result.outcome is TransitionOutcome.applied
    assert result.affected_active_entry_count == 0


def test_two_phase_transition(store, make_slot, audit_sink):
    slot = make_slot()
    manager = manager_for(store, audit_sink)
    lease = manager.begin_transition(slot.id, SlotTransition.deactivate)
    assert lease.from_state is SlotState.active
    assert audit_sink.events == []

    result = manager.commit(lease)
    assert result.to_state is SlotState.inactive
    assert len(audit_sink.events) == 1


def test_bulk_apply_reports_each_slot(store, make_slot, audit_sink):
    first = make_slot(start="09:00", end="09:50")
    second = make_slot(start="10:00", end="10:50", name="Period 2")
    result = manager_for(store, audit_sink).bulk_apply(
        [first.id, "missing", second.id], SlotTransition.deactivate
    )

    assert result.succeeded == 2
    assert result.failed == 1
    assert [item.slot_id for item in result.results] == [first.id, "missing", second.id]
    assert result.results[1].reason == "not_found"
    assert store.get_slot(first.id).is_active is False
    assert store.get_slot(second.id).is_active is False


def test_bulk_delete_mixes_outcomes(store, make_slot, make_entry, audit_sink):
    unused = make_slot(start="09:00", end="09:50")
    used = make_slot(start="10:00", end="10:50", name="Period 2")
    unused_id, used_id = unused.id, used.id
    make_entry(used)
    result = manager_for(store, audit_sink).bulk_apply([unused_id, used_id], SlotTransition.delete)

    outcomes = [item.outcome for item in result.results]
    assert outcomes == [TransitionOutcome.applied, TransitionOutcome.forced_deactivation]
    assert result.succeeded == 2
    assert store.get_slot(unused_id) is None
    assert store.get_slot(used_id).is_active is False


def test_bulk_activate_with_missing_id(store, make_slot, audit_sink):
    first = make_slot(start="09:00", end="09:50", is_active=False)
    third = make_slot(start="10:00", end="10:50", name="Period 2", is_active=False)
    result = manager_for(store, audit_sink).bulk_apply([first.id, "missing", third.id], SlotTransition.activate)

    assert [item.outcome for item in result.results] == [
        TransitionOutcome.applied,
        TransitionOutcome.failed,
        TransitionOutcome.applied,
    ]
    assert store.get_slot(first.id).is_active is True
    assert store.get_slot(third.id).is_active is True
    assert len(audit_sink.events) == 2


class BrokenCountStore(SqlTimetableStore):
    def count_all_entries_for_slot(self, slot_id):
        return self.db.execute(text("SELECT count(*) FROM missing_entries_table")).scalar_one()


def test_deactivate_survives_a_failed_dependency_statement(db_session, make_slot, make_entry, audit_sink):
    slot = make_slot()
    entry = make_entry(slot)
    store = BrokenCountStore(db_session)
    result = manager_for(store, audit_sink).apply(slot.id, SlotTransition.deactivate)

    assert result.outcome is TransitionOutcome.applied
    assert store.get_slot(slot.id).is_active is False
    assert store.get_entry(entry.id).is_active is True
    assert len(audit_sink.events) == 1
