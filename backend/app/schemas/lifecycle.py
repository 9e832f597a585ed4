from enum import Enum

from pydantic import BaseModel, Field

from app.schemas.timetable import EntryContextOut


class SlotState(str, Enum):
    active = "active"
    inactive = "inactive"
    deleted = "deleted"


class SlotTransition(str, Enum):
    activate = "activate"
    deactivate = "deactivate"
    delete = "delete"


class TransitionOutcome(str, Enum):
    applied = "applied"
    forced_deactivation = "forced_deactivation"
    failed = "failed"


class DependencySnapshot(BaseModel):
    slot_id: str
    has_dependencies: bool = False
    active_entries: list[EntryContextOut] = Field(default_factory=list)
    total_dependency_count: int = 0
    # True when the read failed and the empty snapshot above is not trustworthy.
    check_failed: bool = False


class BlockedByDependency(BaseModel):
    reason: str
    total_dependency_count: int
    active_entry_count: int
    sample: list[EntryContextOut] = Field(default_factory=list)


class TransitionRequest(BaseModel):
    transition: SlotTransition


class BulkTransitionRequest(BaseModel):
    slot_ids: list[str] = Field(min_length=1, max_length=500)
    transition: SlotTransition


class TransitionResult(BaseModel):
    slot_id: str
    transition: SlotTransition
    outcome: TransitionOutcome
    from_state: SlotState | None = None
    to_state: SlotState | None = None
    affected_active_entry_count: int = 0
    blocked: BlockedByDependency | None = None
    reason: str | None = None
    message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome != TransitionOutcome.failed


class BulkTransitionResult(BaseModel):
    transition: SlotTransition
    results: list[TransitionResult]
    succeeded: int
    failed: int
