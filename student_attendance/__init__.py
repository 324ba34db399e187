from .attendance_service import CheckpointService, RecognitionDebouncer
from .database import AttendanceDatabase
from .matcher import Matched, Matcher, Unmatched
from .policy import RawDistancePolicy, ScaledDistancePolicy, get_policy
from .reconciliation import AttendanceReconciler
from .registry import DescriptorRegistry

__all__ = [
    "AttendanceDatabase",
    "AttendanceReconciler",
    "CheckpointService",
    "DescriptorRegistry",
    "Matched",
    "Matcher",
    "RawDistancePolicy",
    "RecognitionDebouncer",
    "ScaledDistancePolicy",
    "Unmatched",
    "get_policy",
]
