from types import SimpleNamespace

from app.models.time_slot import SlotKind, Weekday
from app.services.slot_usage import summarize_slots


def slot(start, end, kind=SlotKind.regular, is_active=True):
    return SimpleNamespace(day_of_week=Weekday.monday, start_time=start, end_time=end, kind=kind, is_active=is_active)


def test_summary_counts_kinds_and_states():
    stats = summarize_slots(
        [
            slot("09:00", "09:50"),
            slot("10:00", "10:15", kind=SlotKind.break_),
            slot("12:00", "13:00", kind=SlotKind.lunch, is_active=False),
        ]
    )
    assert stats.total_slots == 3
    assert (stats.active_slots, stats.inactive_slots) == (2, 1)
    assert (stats.regular_slots, stats.break_slots, stats.lunch_slots) == (1, 1, 1)
    assert stats.avg_duration_minutes == 41.7


def test_summary_of_no_slots():
    stats = summarize_slots([])
    assert stats.total_slots == 0
    assert stats.avg_duration_minutes == 0.0
