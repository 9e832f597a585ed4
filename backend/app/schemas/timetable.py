from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, Field, field_validator

ACADEMIC_YEAR_PATTERN = re.compile(r"^\d{4}-\d{4}$")


def clean_academic_year(value: str) -> str:
    year = value.strip()
    if not ACADEMIC_YEAR_PATTERN.match(year):
        raise ValueError("Academic year must look like 2025-2026")
    return year


def clean_section(value: str) -> str:
    return value.strip().upper() or "A"


class TimetableEntryBase(BaseModel):
    subject_id: str = Field(min_length=1, max_length=36)
    faculty_id: str = Field(min_length=1, max_length=36)
    classroom_id: str = Field(min_length=1, max_length=36)
    section: str = Field(default="A", min_length=1, max_length=10)
    semester: int = Field(ge=1, le=12)
    academic_year: str
    slot_id: str = Field(min_length=1, max_length=36)

    @field_validator("academic_year")
    @classmethod
    def validate_academic_year(cls, value: str) -> str:
        return clean_academic_year(value)

    @field_validator("section")
    @classmethod
    def normalize_section(cls, value: str) -> str:
        return clean_section(value)


class TimetableEntryCreate(TimetableEntryBase):
    pass


class TimetableEntryUpdate(BaseModel):
    subject_id: str | None = Field(default=None, min_length=1, max_length=36)
    faculty_id: str | None = Field(default=None, min_length=1, max_length=36)
    classroom_id: str | None = Field(default=None, min_length=1, max_length=36)
    section: str | None = Field(default=None, min_length=1, max_length=10)
    slot_id: str | None = Field(default=None, min_length=1, max_length=36)


class TimetableEntryOut(TimetableEntryBase):
    id: str
    is_active: bool

    model_config = {"from_attributes": True}


class ConflictCheckRequest(BaseModel):
    """Prospective assignment; ``exclude_entry_id`` skips the entry being edited."""

    faculty_id: str
    classroom_id: str
    section: str = "A"
    semester: int = Field(ge=1, le=12)
    academic_year: str
    slot_id: str
    exclude_entry_id: str | None = None

    @field_validator("academic_year")
    @classmethod
    def validate_academic_year(cls, value: str) -> str:
        return clean_academic_year(value)

    @field_validator("section")
    @classmethod
    def normalize_section(cls, value: str) -> str:
        return clean_section(value)


class ConflictKind(str, Enum):
    none = "none"
    faculty_double_booked = "faculty_double_booked"
    classroom_double_booked = "classroom_double_booked"
    section_double_booked = "section_double_booked"


class EntryContextOut(BaseModel):
    entry_id: str
    subject_id: str
    subject_code: str | None = None
    subject_name: str | None = None
    faculty_id: str
    faculty_name: str | None = None
    classroom_id: str
    room_number: str | None = None
    building: str | None = None
    section: str
    semester: int
    academic_year: str
    slot_id: str
    slot_name: str | None = None
    day_of_week: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    slot_is_active: bool | None = None
    is_active: bool = True


class ConflictResult(BaseModel):
    kind: ConflictKind = ConflictKind.none
    conflicting_entry: EntryContextOut | None = None

    @property
    def has_conflict(self) -> bool:
        return self.kind != ConflictKind.none


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    kind: ConflictKind
    conflicting_entry: EntryContextOut | None = None
    faculty_day_schedule: list[EntryContextOut] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class TermConflict(BaseModel):
    kind: ConflictKind
    first: EntryContextOut
    second: EntryContextOut


class TermConflictReport(BaseModel):
    semester: int
    academic_year: str
    conflicts: list[TermConflict]


class TimetableEntryWriteResult(BaseModel):
    entry: TimetableEntryOut
    warnings: list[str] = Field(default_factory=list)
