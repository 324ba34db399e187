import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .config import DUPLICATE_TIME_WINDOW_SECONDS
from .descriptors import RawDescriptor
from .logger import setup_logger
from .matcher import Matched, Matcher
from .reconciliation import AttendanceReconciler

ACTION_UNKNOWN = "unknown"
ACTION_SUPPRESSED = "suppressed"
ACTION_TIME_IN = "time_in"
ACTION_TIME_OUT = "time_out"


class RecognitionDebouncer:
    def __init__(
        self,
        window_seconds: float = DUPLICATE_TIME_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = max(0.0, float(window_seconds))
        self.clock = clock
        self._lock = threading.Lock()
        self._last_accepted: Dict[str, float] = {}

    def should_accept(self, student_id: str) -> bool:
        now = self.clock()
        with self._lock:
            last = self._last_accepted.get(student_id)
            if last is not None and now - last < self.window_seconds:
                return False
            self._last_accepted[student_id] = now
            return True

    def forget(self, student_id: str) -> None:
        with self._lock:
            self._last_accepted.pop(student_id, None)

    def reset(self) -> None:
        with self._lock:
            self._last_accepted.clear()


@dataclass
class CheckpointOutcome:
    action: str
    label: str
    student_id: Optional[str] = None
    confidence: Optional[float] = None
    event_id: Optional[int] = None

    @property
    def message(self) -> str:
        if self.action == ACTION_TIME_IN:
            return f"Time-in recorded: {self.label}"
        if self.action == ACTION_TIME_OUT:
            return f"Time-out recorded: {self.label}"
        if self.action == ACTION_SUPPRESSED:
            return f"Already recorded recently: {self.label}"
        return "Unknown"


class CheckpointService:
    def __init__(self, matcher: Matcher, reconciler: AttendanceReconciler, debouncer: RecognitionDebouncer):
        self.matcher = matcher
        self.reconciler = reconciler
        self.debouncer = debouncer
        self.logger = setup_logger(self.__class__.__name__)

    def process(self, descriptor: RawDescriptor, photo_path: Optional[str] = None) -> CheckpointOutcome:
        result = self.matcher.match(descriptor)
        if not isinstance(result, Matched):
            return CheckpointOutcome(action=ACTION_UNKNOWN, label=result.label, confidence=result.confidence)

        if self._recorded_recently(result.student_id) or not self.debouncer.should_accept(result.student_id):
            self.logger.info("Suppressed repeat recognition of %s", result.student_id)
            return CheckpointOutcome(
                action=ACTION_SUPPRESSED,
                label=result.name,
                student_id=result.student_id,
                confidence=result.confidence,
            )

        try:
            if self.reconciler.get_open_event(result.student_id) is None:
                event = self.reconciler.record_time_in(result.student_id, result.confidence, photo_path)
                action = ACTION_TIME_IN
            else:
                event = self.reconciler.record_time_out(result.student_id, result.confidence, photo_path)
                action = ACTION_TIME_OUT
        except Exception:
            # Nothing was recorded, so the next sighting must not be debounced.
            self.debouncer.forget(result.student_id)
            raise

        return CheckpointOutcome(
            action=action,
            label=result.name,
            student_id=result.student_id,
            confidence=result.confidence,
            event_id=event.id if event is not None else None,
        )

    def _recorded_recently(self, student_id: str) -> bool:
        # The record store outlives this process, so its last event also counts.
        last = self.reconciler.last_event_time(student_id)
        if last is None:
            return False
        elapsed = (self.reconciler.clock() - last).total_seconds()
        return elapsed < self.debouncer.window_seconds
