from __future__ import annotations

from dataclasses import dataclass
import re

from app.models.time_slot import TimeSlot, Weekday

# H:MM, HH:MM or HH:MM:SS; seconds are tolerated only as ":00" (minute precision).
TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")


def parse_time_to_minutes(value: str) -> int:
    match = TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes, seconds = match.groups()
    if seconds not in (None, "00"):
        raise ValueError("Time must be given to the minute")
    return int(hours) * 60 + int(minutes)


def format_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def normalize_time(value: str) -> str:
    return format_minutes(parse_time_to_minutes(value))


@dataclass(frozen=True)
class TimeRange:
    """A half-open ``[start, end)`` interval on one weekday, in minutes from midnight."""

    day: Weekday
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("start must be earlier than end")

    @classmethod
    def from_slot(cls, slot: TimeSlot) -> TimeRange:
        return cls(
            day=Weekday(slot.day_of_week),
            start=parse_time_to_minutes(slot.start_time),
            end=parse_time_to_minutes(slot.end_time),
        )

    @property
    def duration_minutes(self) -> int:
        return self.end - self.start

    def overlaps(self, other: TimeRange) -> bool:
        if self.day != other.day:
            return False
        # Touching ranges (self.end == other.start) share no instant.
        return max(self.start, other.start) < min(self.end, other.end)

    def __str__(self) -> str:
        return f"{self.day.value} {format_minutes(self.start)}-{format_minutes(self.end)}"
