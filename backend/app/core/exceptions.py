from enum import Enum


class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ShapeRule(str, Enum):
    bad_format = "bad_format"
    inverted = "inverted"
    too_short = "too_short"
    too_long = "too_long"
    name_too_long = "name_too_long"


class SlotShapeError(AppError):
    """Raised when a candidate time slot violates a shape rule.

    ``rule`` names the violated rule; any extra keyword arguments are copied
    into ``details`` so the caller can render a specific message.
    """
    def __init__(self, rule: ShapeRule, message: str, **context):
        self.rule = rule
        super().__init__(message, status_code=422, details={"rule": rule.value, **context})


class DuplicateSlotError(AppError):
    """Raised when a slot with the same day, start and end already exists."""
    def __init__(self, existing_slot_id: str):
        super().__init__(
            "A time slot with the same day and time already exists",
            status_code=409,
            details={"existing_slot_id": existing_slot_id},
        )


class InactiveSlotError(AppError):
    """Raised when a timetable entry is assigned to a deactivated slot."""
    def __init__(self, slot_id: str):
        super().__init__(
            "Time slot is inactive and cannot receive new assignments",
            status_code=422,
            details={"slot_id": slot_id},
        )


class ScheduleConflictError(AppError):
    """Raised by the entry endpoints when an assignment double-books a resource."""
    def __init__(self, message: str, details: dict):
        super().__init__(message, status_code=409, details=details)


class StorageWriteError(AppError):
    """Raised when a storage mutation fails. Never retried automatically."""
    def __init__(self, operation: str, message: str = "Storage write failed"):
        super().__init__(message, status_code=503, details={"operation": operation})
