from typing import List, Optional

from .config import CONFIDENCE_THRESHOLD, DESCRIPTOR_DIM, ENROLLMENT_MIN_SAMPLES
from .database import AttendanceDatabase
from .descriptors import RawDescriptor, average_descriptor
from .exceptions import DimensionMismatch, EnrollmentError
from .logger import setup_logger
from .matcher import Matched, Matcher
from .policy import DistancePolicy, ScaledDistancePolicy
from .registry import DescriptorRegistry


class EnrollmentService:
    def __init__(
        self,
        db: AttendanceDatabase,
        registry: DescriptorRegistry,
        policy: Optional[DistancePolicy] = None,
        threshold: float = CONFIDENCE_THRESHOLD,
        min_samples: int = ENROLLMENT_MIN_SAMPLES,
        descriptor_dim: int = DESCRIPTOR_DIM,
    ):
        self.db = db
        self.registry = registry
        self.matcher = Matcher(registry, policy or ScaledDistancePolicy(), threshold=threshold)
        self.min_samples = max(1, int(min_samples))
        self.descriptor_dim = int(descriptor_dim)
        self.logger = setup_logger(self.__class__.__name__)
        self.refresh()

    def refresh(self) -> int:
        return self.registry.load(self.db.list_students())

    def enroll(self, student_id: str, name: str, samples: List[RawDescriptor]) -> int:
        student_id = student_id.strip()
        name = name.strip()
        if not student_id:
            raise EnrollmentError("student_id cannot be empty.")
        if not name:
            raise EnrollmentError("name cannot be empty.")
        if len(samples) < self.min_samples:
            raise EnrollmentError(f"At least {self.min_samples} face samples are required, got {len(samples)}.")

        descriptor = average_descriptor(samples)
        if descriptor.size != self.descriptor_dim:
            raise DimensionMismatch(expected=self.descriptor_dim, actual=int(descriptor.size), student_id=student_id)
        self._validate_identity_uniqueness(student_id, descriptor)
        self.db.upsert_student(student_id=student_id, name=name, descriptor=descriptor)

        size = self.refresh()
        self.logger.info("Student %s enrolled with %d samples", student_id, len(samples))
        return size

    def remove(self, student_id: str) -> int:
        if not self.db.delete_student(student_id.strip()):
            raise EnrollmentError(f"Student {student_id} not found.")
        return self.refresh()

    def _validate_identity_uniqueness(self, student_id: str, descriptor) -> None:
        result = self.matcher.match(descriptor)
        if isinstance(result, Matched) and result.student_id != student_id:
            raise EnrollmentError(
                f"Captured face is too similar to existing student '{result.name}' ({result.student_id}). "
                "Use a different person or capture cleaner samples."
            )
