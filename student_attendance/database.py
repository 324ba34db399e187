import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .attendance_types import AttendanceEvent, AttendanceRow, AttendanceStatus
from .config import STORE_TIMEOUT_SECONDS
from .descriptors import EnrolledStudent, RawDescriptor, descriptor_to_json
from .exceptions import DatabaseError, NotFound, StoreUnavailable

_EVENT_COLUMNS = "id, student_id, attendance_date, time_in, time_out, status, confidence, photo_path"
_PATCHABLE = {"time_out", "status", "confidence", "photo_path"}


@dataclass
class StudentProfile:
    student_id: str
    name: str
    status: str
    enrolled: bool
    created_at: str
    updated_at: str


def _store_error(action: str, exc: sqlite3.Error) -> DatabaseError:
    if isinstance(exc, sqlite3.IntegrityError):
        return DatabaseError(f"{action}: {exc}")
    return StoreUnavailable(f"{action}: {exc}")


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="seconds") if value is not None else None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_event(row: sqlite3.Row) -> AttendanceEvent:
    return AttendanceEvent(
        id=row["id"],
        student_id=row["student_id"],
        attendance_date=date.fromisoformat(row["attendance_date"]),
        time_in=_parse_timestamp(row["time_in"]),
        time_out=_parse_timestamp(row["time_out"]),
        status=AttendanceStatus(row["status"]),
        confidence=row["confidence"],
        photo_path=row["photo_path"],
    )


class AttendanceDatabase:
    """SQLite roster and attendance event store."""

    def __init__(self, db_path: Path, timeout: float = STORE_TIMEOUT_SECONDS):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _initialize(self) -> None:
        try:
            with self._connect() as conn:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS students (
                        student_id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        face_encoding TEXT,
                        status TEXT NOT NULL DEFAULT 'active',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS attendance (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        student_id TEXT NOT NULL,
                        attendance_date TEXT NOT NULL,
                        time_in TEXT,
                        time_out TEXT,
                        status TEXT NOT NULL,
                        confidence REAL,
                        photo_path TEXT,
                        created_at TEXT NOT NULL,
                        FOREIGN KEY (student_id) REFERENCES students(student_id)
                    );

                    CREATE INDEX IF NOT EXISTS idx_attendance_date ON attendance(attendance_date);
                    CREATE INDEX IF NOT EXISTS idx_attendance_student ON attendance(student_id, attendance_date);
                    """
                )
        except sqlite3.Error as exc:
            raise _store_error("Failed to initialize database", exc) from exc

    # Roster

    def upsert_student(self, student_id: str, name: str, descriptor: Optional[RawDescriptor] = None) -> None:
        now = datetime.now().isoformat(timespec="seconds")
        encoding = descriptor_to_json(descriptor) if descriptor is not None else None

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO students (student_id, name, face_encoding, status, created_at, updated_at)
                    VALUES (?, ?, ?, 'active', ?, ?)
                    ON CONFLICT(student_id) DO UPDATE SET
                        name = excluded.name,
                        face_encoding = COALESCE(excluded.face_encoding, students.face_encoding),
                        updated_at = excluded.updated_at
                    """,
                    (student_id, name, encoding, now, now),
                )
        except sqlite3.Error as exc:
            raise _store_error(f"Failed to save student {student_id}", exc) from exc

    def list_students(self, active_only: bool = True) -> List[EnrolledStudent]:
        sql = "SELECT student_id, name, face_encoding FROM students"
        if active_only:
            sql += " WHERE status = 'active'"
        sql += " ORDER BY created_at ASC, student_id ASC"

        try:
            with self._connect() as conn:
                rows = conn.execute(sql).fetchall()
        except sqlite3.Error as exc:
            raise _store_error("Failed to load students", exc) from exc

        # Encodings stay raw here; the registry parses and skips bad ones.
        return [
            EnrolledStudent(student_id=row["student_id"], name=row["name"], descriptor=row["face_encoding"])
            for row in rows
        ]

    def list_student_profiles(self) -> List[StudentProfile]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT student_id, name, status, face_encoding IS NOT NULL AS enrolled,
                           created_at, updated_at
                    FROM students
                    ORDER BY created_at DESC
                    """
                ).fetchall()
        except sqlite3.Error as exc:
            raise _store_error("Failed to load student profiles", exc) from exc

        return [
            StudentProfile(
                student_id=row["student_id"],
                name=row["name"],
                status=row["status"],
                enrolled=bool(row["enrolled"]),
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in rows
        ]

    def get_student(self, student_id: str) -> Optional[EnrolledStudent]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT student_id, name, face_encoding FROM students WHERE student_id = ?",
                    (student_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise _store_error(f"Failed to load student {student_id}", exc) from exc

        if row is None:
            return None
        return EnrolledStudent(student_id=row["student_id"], name=row["name"], descriptor=row["face_encoding"])

    def set_student_status(self, student_id: str, status: str) -> None:
        if status not in {"active", "inactive"}:
            raise DatabaseError(f"Unknown student status '{status}'.")
        now = datetime.now().isoformat(timespec="seconds")
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    "UPDATE students SET status = ?, updated_at = ? WHERE student_id = ?",
                    (status, now, student_id),
                )
        except sqlite3.Error as exc:
            raise _store_error(f"Failed to update student {student_id}", exc) from exc
        if cursor.rowcount == 0:
            raise NotFound(f"Student {student_id} not found.")

    def delete_student(self, student_id: str) -> bool:
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM attendance WHERE student_id = ?", (student_id,))
                cursor = conn.execute("DELETE FROM students WHERE student_id = ?", (student_id,))
                return cursor.rowcount > 0
        except sqlite3.Error as exc:
            raise _store_error(f"Failed to delete student {student_id}", exc) from exc

    # Attendance events

    def insert_event(self, event: AttendanceEvent) -> int:
        now = datetime.now().isoformat(timespec="seconds")
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO attendance (
                        student_id, attendance_date, time_in, time_out, status, confidence, photo_path, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.student_id,
                        event.attendance_date.isoformat(),
                        _timestamp(event.time_in),
                        _timestamp(event.time_out),
                        AttendanceStatus(event.status).value,
                        event.confidence,
                        event.photo_path,
                        now,
                    ),
                )
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            raise _store_error(f"Failed to record attendance for {event.student_id}", exc) from exc

    def update_event(self, event_id: int, patch: Dict[str, Any]) -> None:
        unknown = set(patch) - _PATCHABLE
        if unknown:
            raise DatabaseError(f"Cannot update attendance fields: {', '.join(sorted(unknown))}")
        if not patch:
            return

        values: Dict[str, Any] = dict(patch)
        if "time_out" in values:
            values["time_out"] = _timestamp(values["time_out"])
        if "status" in values:
            values["status"] = AttendanceStatus(values["status"]).value

        assignments = ", ".join(f"{column} = ?" for column in values)
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    f"UPDATE attendance SET {assignments} WHERE id = ?",
                    (*values.values(), event_id),
                )
        except sqlite3.Error as exc:
            raise _store_error(f"Failed to update attendance record {event_id}", exc) from exc
        if cursor.rowcount == 0:
            raise NotFound(f"Attendance record {event_id} not found.")

    def get_event(self, event_id: int) -> AttendanceEvent:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    f"SELECT {_EVENT_COLUMNS} FROM attendance WHERE id = ?",
                    (event_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise _store_error(f"Failed to load attendance record {event_id}", exc) from exc
        if row is None:
            raise NotFound(f"Attendance record {event_id} not found.")
        return _row_to_event(row)

    def find_open_event(self, student_id: str, attendance_date: date) -> Optional[AttendanceEvent]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    f"""
                    SELECT {_EVENT_COLUMNS}
                    FROM attendance
                    WHERE student_id = ? AND attendance_date = ?
                      AND time_in IS NOT NULL AND time_out IS NULL
                    ORDER BY id DESC
                    LIMIT 1
                    """,
                    (student_id, attendance_date.isoformat()),
                ).fetchone()
        except sqlite3.Error as exc:
            raise _store_error(f"Failed to query open attendance for {student_id}", exc) from exc
        return _row_to_event(row) if row is not None else None

    def events_for(self, student_id: str, attendance_date: date) -> List[AttendanceEvent]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"""
                    SELECT {_EVENT_COLUMNS}
                    FROM attendance
                    WHERE student_id = ? AND attendance_date = ?
                    ORDER BY id ASC
                    """,
                    (student_id, attendance_date.isoformat()),
                ).fetchall()
        except sqlite3.Error as exc:
            raise _store_error(f"Failed to query attendance for {student_id}", exc) from exc
        return [_row_to_event(row) for row in rows]

    def last_event_time(self, student_id: str) -> Optional[datetime]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT time_in, time_out
                    FROM attendance
                    WHERE student_id = ?
                    ORDER BY id DESC
                    LIMIT 1
                    """,
                    (student_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise _store_error(f"Failed to query last attendance for {student_id}", exc) from exc

        if row is None:
            return None
        stamps = [stamp for stamp in (_parse_timestamp(row["time_in"]), _parse_timestamp(row["time_out"])) if stamp]
        return max(stamps) if stamps else None

    # Reporting

    def attendance_between(self, date_from: date, date_to: date) -> List[AttendanceRow]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT a.id, a.student_id, s.name, a.attendance_date, a.time_in, a.time_out,
                           a.status, a.confidence
                    FROM attendance a
                    JOIN students s ON s.student_id = a.student_id
                    WHERE a.attendance_date BETWEEN ? AND ?
                    ORDER BY a.attendance_date DESC, a.id DESC
                    """,
                    (date_from.isoformat(), date_to.isoformat()),
                ).fetchall()
        except sqlite3.Error as exc:
            raise _store_error("Failed to search attendance", exc) from exc

        return [
            AttendanceRow(
                id=row["id"],
                student_id=row["student_id"],
                name=row["name"],
                attendance_date=row["attendance_date"],
                time_in=row["time_in"],
                time_out=row["time_out"],
                status=row["status"],
                confidence=row["confidence"],
            )
            for row in rows
        ]

    def attendance_for_date(self, attendance_date: date) -> List[AttendanceRow]:
        return self.attendance_between(attendance_date, attendance_date)

    def student_history(self, student_id: str) -> List[AttendanceEvent]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"""
                    SELECT {_EVENT_COLUMNS}
                    FROM attendance
                    WHERE student_id = ?
                    ORDER BY attendance_date DESC, id DESC
                    """,
                    (student_id,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise _store_error(f"Failed to load attendance history for {student_id}", exc) from exc
        return [_row_to_event(row) for row in rows]

    def attendance_stats(self, attendance_date: date) -> Dict[str, int]:
        day = attendance_date.isoformat()
        try:
            with self._connect() as conn:
                students = conn.execute(
                    "SELECT COUNT(*) AS c FROM students WHERE status = 'active'"
                ).fetchone()["c"]
                present = conn.execute(
                    "SELECT COUNT(DISTINCT student_id) AS c FROM attendance WHERE attendance_date = ?",
                    (day,),
                ).fetchone()["c"]
                late = conn.execute(
                    "SELECT COUNT(DISTINCT student_id) AS c FROM attendance WHERE attendance_date = ? AND status = ?",
                    (day, AttendanceStatus.LATE.value),
                ).fetchone()["c"]
                open_count = conn.execute(
                    """
                    SELECT COUNT(*) AS c FROM attendance
                    WHERE attendance_date = ? AND time_in IS NOT NULL AND time_out IS NULL
                    """,
                    (day,),
                ).fetchone()["c"]
        except sqlite3.Error as exc:
            raise _store_error("Failed to load attendance stats", exc) from exc

        return {
            "students": int(students),
            "present": int(present),
            "late": int(late),
            "open": int(open_count),
        }
