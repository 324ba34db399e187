import os
from datetime import datetime

import pytest

os.environ.setdefault("ATTENDANCE_LOG_TO_FILE", "0")

from student_attendance.database import AttendanceDatabase  # noqa: E402
from student_attendance.descriptors import EnrolledStudent  # noqa: E402
from student_attendance.registry import DescriptorRegistry  # noqa: E402


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class TickClock:
    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value


@pytest.fixture
def db(tmp_path):
    return AttendanceDatabase(tmp_path / "attendance.db")


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 4, 8, 15, 0))


@pytest.fixture
def registry():
    reg = DescriptorRegistry()
    reg.load(
        [
            EnrolledStudent("S-001", "Ana Cruz", [0.0, 0.0, 0.0, 0.0]),
            EnrolledStudent("S-002", "Ben Reyes", [0.3, 0.3, 0.3, 0.3]),
            EnrolledStudent("S-003", "Carla Diaz", [1.0, 1.0, 1.0, 1.0]),
        ]
    )
    return reg


@pytest.fixture
def ticks():
    return TickClock()
