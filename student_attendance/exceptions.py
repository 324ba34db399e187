class AttendanceError(Exception):
    """Base exception for the attendance system."""


class ConfigurationError(AttendanceError):
    """Raised when a setting or policy name is invalid."""


class DescriptorError(AttendanceError):
    """Raised when a stored or supplied face descriptor cannot be parsed."""


class DimensionMismatch(AttendanceError):
    """Raised when two descriptors of different lengths are compared.

    This points at model or data drift and is never turned into a no-match.
    """

    def __init__(self, expected: int, actual: int, student_id: str = ""):
        self.expected = expected
        self.actual = actual
        self.student_id = student_id
        owner = f" for student {student_id}" if student_id else ""
        super().__init__(f"Descriptor length {actual}{owner} does not match query length {expected}.")


class NoFaceDetected(AttendanceError):
    """Raised by the extractor contract when a frame holds no face."""


class MultipleFacesDetected(AttendanceError):
    """Raised by the extractor contract when a frame holds more than one face."""


class DatabaseError(AttendanceError):
    """Raised when database operations fail."""


class StoreUnavailable(DatabaseError):
    """Raised when the record store cannot be reached or times out."""


class NotFound(DatabaseError):
    """Raised when a record referenced by id does not exist."""


class InvalidTransition(AttendanceError):
    """Raised when a time-in is attempted while an event is still open."""


class EnrollmentError(AttendanceError):
    """Raised when a student cannot be enrolled."""
