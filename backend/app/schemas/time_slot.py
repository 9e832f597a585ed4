from pydantic import BaseModel, Field, field_validator

from app.models.time_slot import SlotKind, Weekday


def _strip_required(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        raise ValueError("Value cannot be blank")
    return stripped


class TimeSlotBase(BaseModel):
    day_of_week: Weekday
    # Format and ordering are checked by TimeSlotValidator so failures carry a rule code.
    start_time: str = Field(min_length=1, max_length=8)
    end_time: str = Field(min_length=1, max_length=8)
    name: str = Field(min_length=1, max_length=100)
    kind: SlotKind = SlotKind.regular

    @field_validator("name", "start_time", "end_time")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return _strip_required(value)


class TimeSlotCreate(TimeSlotBase):
    is_active: bool = True


class TimeSlotUpdate(BaseModel):
    day_of_week: Weekday | None = None
    start_time: str | None = Field(default=None, min_length=1, max_length=8)
    end_time: str | None = Field(default=None, min_length=1, max_length=8)
    name: str | None = Field(default=None, min_length=1, max_length=100)
    kind: SlotKind | None = None

    @field_validator("name", "start_time", "end_time")
    @classmethod
    def strip_text(cls, value: str | None) -> str | None:
        return _strip_required(value)


class TimeSlotOut(BaseModel):
    id: str
    day_of_week: Weekday
    start_time: str
    end_time: str
    name: str
    kind: SlotKind
    is_active: bool

    model_config = {"from_attributes": True}


class TimeSlotWriteResult(BaseModel):
    slot: TimeSlotOut
    # Overlap between slot definitions is advisory; the write still happens.
    conflicting_slot: TimeSlotOut | None = None
    warnings: list[str] = Field(default_factory=list)


class SlotUsageStats(BaseModel):
    total_slots: int
    active_slots: int
    inactive_slots: int
    regular_slots: int
    break_slots: int
    lunch_slots: int
    avg_duration_minutes: float
