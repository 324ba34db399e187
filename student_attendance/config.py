import os
from datetime import time
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def _str_env(name: str, default: Optional[str]) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _path_env(name: str, default: Path) -> Path:
    raw = _str_env(name, None)
    return Path(raw) if raw else default


def parse_cutoff(raw: Optional[str]) -> Optional[time]:
    """Parse a ``HH:MM`` late cutoff. ``None`` or blank disables late marking."""
    if raw is None or not raw.strip():
        return None
    try:
        hours, minutes = raw.strip().split(":")
        return time(hour=int(hours), minute=int(minutes))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid late cutoff '{raw}', expected HH:MM.") from exc


BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
DB_PATH = _path_env("ATTENDANCE_DB_PATH", DATA_DIR / "attendance.db")
LOG_DIR = _path_env("ATTENDANCE_LOG_DIR", BASE_DIR / "logs")
LOG_TO_FILE = _bool_env("ATTENDANCE_LOG_TO_FILE", True)

# Matching settings
CONFIDENCE_THRESHOLD = _float_env("ATTENDANCE_CONFIDENCE_THRESHOLD", 0.6)
MAX_DISTANCE = _float_env("ATTENDANCE_MAX_DISTANCE", 0.6)
LIVE_POLICY = _str_env("ATTENDANCE_LIVE_POLICY", "raw")
ENROLLMENT_POLICY = _str_env("ATTENDANCE_ENROLLMENT_POLICY", "scaled")
DESCRIPTOR_DIM = _int_env("ATTENDANCE_DESCRIPTOR_DIM", 128)

# Attendance settings
DUPLICATE_TIME_WINDOW_SECONDS = _int_env("ATTENDANCE_DUPLICATE_TIME_WINDOW", 300)
LATE_CUTOFF = _str_env("ATTENDANCE_LATE_CUTOFF", None)
ENROLLMENT_MIN_SAMPLES = _int_env("ATTENDANCE_ENROLLMENT_MIN_SAMPLES", 1)

# Record store settings
STORE_TIMEOUT_SECONDS = _float_env("ATTENDANCE_STORE_TIMEOUT", 5.0)
