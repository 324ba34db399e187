from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from .descriptors import EnrolledStudent


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"


@dataclass
class AttendanceEvent:
    student_id: str
    attendance_date: date
    time_in: Optional[datetime]
    status: AttendanceStatus
    confidence: float
    time_out: Optional[datetime] = None
    photo_path: Optional[str] = None
    id: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.time_in is not None and self.time_out is None


@dataclass
class AttendanceRow:
    id: int
    student_id: str
    name: str
    attendance_date: str
    time_in: Optional[str]
    time_out: Optional[str]
    status: str
    confidence: Optional[float]


class RecordStore(Protocol):
    def insert_event(self, event: AttendanceEvent) -> int:
        ...

    def update_event(self, event_id: int, patch: Dict[str, Any]) -> None:
        ...

    def get_event(self, event_id: int) -> AttendanceEvent:
        ...

    def find_open_event(self, student_id: str, attendance_date: date) -> Optional[AttendanceEvent]:
        ...

    def events_for(self, student_id: str, attendance_date: date) -> List[AttendanceEvent]:
        ...

    def last_event_time(self, student_id: str) -> Optional[datetime]:
        ...


class RosterSource(Protocol):
    def list_students(self) -> List[EnrolledStudent]:
        ...
