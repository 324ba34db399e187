import argparse
import json
import sys
from datetime import date
from pathlib import Path
from typing import Any, List, Optional

from student_attendance.attendance_service import CheckpointService, RecognitionDebouncer
from student_attendance.config import (
    CONFIDENCE_THRESHOLD,
    DB_PATH,
    DESCRIPTOR_DIM,
    DUPLICATE_TIME_WINDOW_SECONDS,
    ENROLLMENT_POLICY,
    LATE_CUTOFF,
    LIVE_POLICY,
    MAX_DISTANCE,
    parse_cutoff,
)
from student_attendance.database import AttendanceDatabase
from student_attendance.exceptions import AttendanceError, DescriptorError
from student_attendance.logger import setup_logger
from student_attendance.matcher import Matcher
from student_attendance.policy import get_policy
from student_attendance.reconciliation import AttendanceReconciler
from student_attendance.registration_service import EnrollmentService
from student_attendance.registry import DescriptorRegistry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Student attendance by face descriptor matching"
    )
    parser.add_argument("--db", type=Path, default=DB_PATH, help="SQLite database path")

    subparsers = parser.add_subparsers(dest="command", required=True)

    enroll = subparsers.add_parser("enroll", help="Enroll or update a student face profile")
    enroll.add_argument("--id", required=True, dest="student_id", help="Student ID")
    enroll.add_argument("--name", required=True, help="Student name")
    enroll.add_argument(
        "--samples",
        type=Path,
        required=True,
        help="JSON file with one descriptor or a list of descriptor samples",
    )
    enroll.add_argument("--dim", type=int, default=DESCRIPTOR_DIM, help="Expected descriptor length")
    enroll.add_argument(
        "--policy",
        default=ENROLLMENT_POLICY,
        choices=["scaled", "raw"],
        help="Distance policy for the duplicate-face check",
    )

    checkpoint = subparsers.add_parser("checkpoint", help="Match a descriptor and record time-in or time-out")
    checkpoint.add_argument("--descriptor", type=Path, required=True, help="JSON file with the query descriptor")
    checkpoint.add_argument("--photo", default=None, help="Optional photo path stored with the record")
    checkpoint.add_argument(
        "--policy",
        default=LIVE_POLICY,
        choices=["scaled", "raw"],
        help="Distance policy for live recognition",
    )
    checkpoint.add_argument(
        "--threshold",
        type=float,
        default=CONFIDENCE_THRESHOLD,
        help="Minimum confidence to accept a match",
    )
    checkpoint.add_argument("--max-distance", type=float, default=MAX_DISTANCE, help="Scale for the scaled policy")
    checkpoint.add_argument("--late-cutoff", default=LATE_CUTOFF, help="HH:MM after which time-ins are late")

    today = subparsers.add_parser("today", help="Show attendance records for a day")
    today.add_argument("--date", type=date.fromisoformat, default=None, help="Day to show (YYYY-MM-DD)")

    students = subparsers.add_parser("students", help="List enrolled students")
    students.add_argument("--limit", type=int, default=100, help="Max rows to print")

    remove = subparsers.add_parser("remove", help="Delete a student and their attendance")
    remove.add_argument("--id", required=True, dest="student_id", help="Student ID")

    return parser


def load_descriptor_file(path: Path) -> List[Any]:
    """Read descriptor samples. A flat list of numbers is a single sample."""
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise DescriptorError(f"Cannot read descriptors from {path}: {exc}") from exc

    if isinstance(payload, dict):
        payload = payload.get("descriptors", payload.get("descriptor"))
    if not isinstance(payload, list) or not payload:
        raise DescriptorError(f"{path} does not contain a descriptor list.")
    if all(isinstance(value, (int, float)) for value in payload):
        return [payload]
    return payload


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = setup_logger("main")

    try:
        db = AttendanceDatabase(args.db)

        if args.command == "enroll":
            registry = DescriptorRegistry()
            service = EnrollmentService(
                db=db,
                registry=registry,
                policy=get_policy(args.policy),
                descriptor_dim=args.dim,
            )
            size = service.enroll(args.student_id, args.name, load_descriptor_file(args.samples))
            print(f"Enrollment successful for {args.student_id} ({args.name}). {size} students indexed.")
            return 0

        if args.command == "checkpoint":
            registry = DescriptorRegistry()
            registry.load(db.list_students())
            matcher = Matcher(
                registry,
                get_policy(args.policy, max_distance=args.max_distance),
                threshold=args.threshold,
            )
            reconciler = AttendanceReconciler(db, late_cutoff=parse_cutoff(args.late_cutoff))
            service = CheckpointService(matcher, reconciler, RecognitionDebouncer(DUPLICATE_TIME_WINDOW_SECONDS))
            samples = load_descriptor_file(args.descriptor)
            outcome = service.process(samples[0], photo_path=args.photo)
            print(outcome.message)
            return 0

        if args.command == "today":
            day = args.date or date.today()
            rows = db.attendance_for_date(day)
            if not rows:
                print(f"No attendance recorded for {day.isoformat()}.")
                return 0

            print(f"{'Student ID':<14} {'Name':<24} {'Time In':<20} {'Time Out':<20} {'Status'}")
            print("-" * 90)
            for row in rows:
                print(
                    f"{row.student_id:<14} {row.name:<24} {row.time_in or '-':<20} "
                    f"{row.time_out or '-':<20} {row.status}"
                )
            return 0

        if args.command == "students":
            profiles = db.list_student_profiles()
            if not profiles:
                print("No students enrolled.")
                return 0

            print(f"{'Student ID':<16} {'Face':<6} {'Name'}")
            print("-" * 52)
            for profile in profiles[: args.limit]:
                face = "yes" if profile.enrolled else "no"
                print(f"{profile.student_id:<16} {face:<6} {profile.name}")
            return 0

        if args.command == "remove":
            service = EnrollmentService(db=db, registry=DescriptorRegistry())
            service.remove(args.student_id)
            print(f"Removed student {args.student_id}.")
            return 0

    except AttendanceError as exc:
        logger.error("Application error: %s", exc)
        print(f"Error: {exc}")
        return 1
    except KeyboardInterrupt:
        print("\nStopped by user.")
        return 1
    except Exception as exc:
        logger.exception("Unexpected failure")
        print(f"Unexpected error: {exc}")
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
