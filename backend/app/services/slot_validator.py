from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from app.core.config import Settings
from app.core.exceptions import ShapeRule, SlotShapeError
from app.models.time_slot import TimeSlot, Weekday
from app.services.time_range import TimeRange, parse_time_to_minutes


class SlotCandidate(Protocol):
    day_of_week: Weekday
    start_time: str
    end_time: str
    name: str


class TimeSlotValidator:
    """Shape checks for a proposed slot and lookups against existing definitions.

    Nothing here touches storage; callers pass in the slots to compare with.
    """

    def __init__(
        self,
        *,
        min_duration_minutes: int = 15,
        max_duration_minutes: int = 240,
        max_name_length: int = 20,
    ) -> None:
        self.min_duration_minutes = min_duration_minutes
        self.max_duration_minutes = max_duration_minutes
        self.max_name_length = max_name_length

    @classmethod
    def from_settings(cls, settings: Settings) -> TimeSlotValidator:
        return cls(
            min_duration_minutes=settings.slot_min_duration_minutes,
            max_duration_minutes=settings.slot_max_duration_minutes,
            max_name_length=settings.slot_name_max_length,
        )

    def validate_shape(self, candidate: SlotCandidate) -> TimeRange:
        """Return the candidate's range or raise :class:`SlotShapeError`.

        Rules are checked in order: format, ordering, minimum duration,
        maximum duration, name length. Duration bounds are inclusive.
        """
        parsed: dict[str, int] = {}
        for field in ("start_time", "end_time"):
            raw = getattr(candidate, field)
            try:
                parsed[field] = parse_time_to_minutes(raw)
            except ValueError as exc:
                raise SlotShapeError(
                    ShapeRule.bad_format,
                    f"Invalid {field.replace('_', ' ')} format. Use HH:MM format.",
                    field=field,
                    value=raw,
                ) from exc

        start, end = parsed["start_time"], parsed["end_time"]
        if start >= end:
            raise SlotShapeError(
                ShapeRule.inverted,
                "End time must be after start time.",
                start_time=candidate.start_time,
                end_time=candidate.end_time,
            )

        duration = end - start
        if duration < self.min_duration_minutes:
            raise SlotShapeError(
                ShapeRule.too_short,
                f"Time slot must be at least {self.min_duration_minutes} minutes long.",
                duration_minutes=duration,
                limit_minutes=self.min_duration_minutes,
            )
        if duration > self.max_duration_minutes:
            raise SlotShapeError(
                ShapeRule.too_long,
                f"Time slot cannot be longer than {self.max_duration_minutes} minutes.",
                duration_minutes=duration,
                limit_minutes=self.max_duration_minutes,
            )

        name_length = len(candidate.name)
        if name_length > self.max_name_length:
            raise SlotShapeError(
                ShapeRule.name_too_long,
                f"Slot name cannot exceed {self.max_name_length} characters.",
                length=name_length,
                limit=self.max_name_length,
            )

        return TimeRange(day=Weekday(candidate.day_of_week), start=start, end=end)

    def find_conflicting_slot(
        self,
        candidate: SlotCandidate,
        existing: Iterable[TimeSlot],
        *,
        exclude_id: str | None = None,
    ) -> TimeSlot | None:
        """First existing slot whose range overlaps the candidate's on the same day.

        Advisory only: nested break slots across class periods are legitimate.
        """
        candidate_range = self.validate_shape(candidate)
        for slot in existing:
            if exclude_id is not None and slot.id == exclude_id:
                continue
            if TimeRange.from_slot(slot).overlaps(candidate_range):
                return slot
        return None

    def find_duplicate_slot(
        self,
        candidate: SlotCandidate,
        existing: Iterable[TimeSlot],
        *,
        exclude_id: str | None = None,
    ) -> TimeSlot | None:
        candidate_range = self.validate_shape(candidate)
        for slot in existing:
            if exclude_id is not None and slot.id == exclude_id:
                continue
            if TimeRange.from_slot(slot) == candidate_range:
                return slot
        return None
