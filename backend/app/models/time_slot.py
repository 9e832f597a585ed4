import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class Weekday(str, Enum):
    monday = "Monday"
    tuesday = "Tuesday"
    wednesday = "Wednesday"
    thursday = "Thursday"
    friday = "Friday"
    saturday = "Saturday"


WEEKDAY_ORDER: dict[Weekday, int] = {day: index for index, day in enumerate(Weekday)}


class SlotKind(str, Enum):
    regular = "regular"
    break_ = "break"
    lunch = "lunch"


def _enum_values(members) -> list[str]:
    return [member.value for member in members]


class TimeSlot(Base):
    __tablename__ = "time_slots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    day_of_week: Mapped[Weekday] = mapped_column(
        SAEnum(Weekday, name="weekday", values_callable=_enum_values), index=True, nullable=False
    )
    # Stored as zero-padded "HH:MM" so lexical order matches chronological order.
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    name: Mapped[str] = mapped_column(String(20), nullable=False)
    kind: Mapped[SlotKind] = mapped_column(
        SAEnum(SlotKind, name="slot_kind", values_callable=_enum_values),
        nullable=False,
        default=SlotKind.regular,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
