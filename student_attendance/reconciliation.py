import threading
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, Optional, Tuple

from .attendance_types import AttendanceEvent, AttendanceStatus, RecordStore
from .exceptions import InvalidTransition
from .logger import setup_logger

Clock = Callable[[], datetime]


class AttendanceReconciler:
    def __init__(
        self,
        store: RecordStore,
        late_cutoff: Optional[time] = None,
        clock: Clock = datetime.now,
    ):
        self.store = store
        self.late_cutoff = late_cutoff
        self.clock = clock
        self.logger = setup_logger(self.__class__.__name__)

        self._guard = threading.Lock()
        self._key_locks: Dict[Tuple[str, date], threading.Lock] = {}

    def _lock_for(self, student_id: str, day: date) -> threading.Lock:
        key = (student_id, day)
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                # Locks older than yesterday are dropped once nobody holds them.
                cutoff = day - timedelta(days=1)
                stale = [k for k, held in self._key_locks.items() if k[1] < cutoff and not held.locked()]
                for old in stale:
                    del self._key_locks[old]
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def status_for(self, moment: datetime) -> AttendanceStatus:
        if self.late_cutoff is not None and moment.time() > self.late_cutoff:
            return AttendanceStatus.LATE
        return AttendanceStatus.PRESENT

    def get_open_event(self, student_id: str, day: Optional[date] = None) -> Optional[AttendanceEvent]:
        day = day or self.clock().date()
        return self.store.find_open_event(student_id, day)

    def last_event_time(self, student_id: str) -> Optional[datetime]:
        return self.store.last_event_time(student_id)

    def record_time_in(
        self,
        student_id: str,
        confidence: float,
        photo_path: Optional[str] = None,
    ) -> AttendanceEvent:
        now = self.clock()
        day = now.date()

        with self._lock_for(student_id, day):
            existing = self.store.find_open_event(student_id, day)
            if existing is not None:
                raise InvalidTransition(
                    f"Student {student_id} already has an open attendance record ({existing.id}) for {day}."
                )

            event = AttendanceEvent(
                student_id=student_id,
                attendance_date=day,
                time_in=now,
                status=self.status_for(now),
                confidence=float(confidence),
                photo_path=photo_path,
            )
            event.id = self.store.insert_event(event)

        self.logger.info(
            "Time-in recorded for %s (%s, confidence %.2f)",
            student_id,
            event.status.value,
            event.confidence,
        )
        return event

    def record_time_out(
        self,
        student_id: str,
        confidence: float,
        photo_path: Optional[str] = None,
    ) -> Optional[AttendanceEvent]:
        now = self.clock()
        day = now.date()

        with self._lock_for(student_id, day):
            event = self.store.find_open_event(student_id, day)
            if event is None:
                self.logger.info("Time-out for %s ignored: no open record for %s", student_id, day)
                return None

            patch = {"time_out": now, "confidence": float(confidence)}
            if photo_path is not None:
                patch["photo_path"] = photo_path
            self.store.update_event(event.id, patch)

        event.time_out = now
        event.confidence = float(confidence)
        if photo_path is not None:
            event.photo_path = photo_path
        self.logger.info("Time-out recorded for %s (record %s)", student_id, event.id)
        return event
