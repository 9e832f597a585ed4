from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.classroom import Classroom  # noqa: F401
from app.models.faculty import Faculty  # noqa: F401
from app.models.subject import Subject  # noqa: F401
from app.models.time_slot import SlotKind, TimeSlot, Weekday  # noqa: F401
from app.models.timetable_entry import TimetableEntry  # noqa: F401
