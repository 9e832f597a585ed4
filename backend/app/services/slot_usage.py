from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from app.models.time_slot import SlotKind, TimeSlot
from app.schemas.time_slot import SlotUsageStats
from app.services.time_range import TimeRange


def summarize_slots(slots: Sequence[TimeSlot]) -> SlotUsageStats:
    kinds = Counter(SlotKind(slot.kind) for slot in slots)
    active = sum(1 for slot in slots if slot.is_active)
    durations = [TimeRange.from_slot(slot).duration_minutes for slot in slots]
    return SlotUsageStats(
        total_slots=len(slots),
        active_slots=active,
        inactive_slots=len(slots) - active,
        regular_slots=kinds[SlotKind.regular],
        break_slots=kinds[SlotKind.break_],
        lunch_slots=kinds[SlotKind.lunch],
        avg_duration_minutes=round(sum(durations) / len(durations), 1) if durations else 0.0,
    )
