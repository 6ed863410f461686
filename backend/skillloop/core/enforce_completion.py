"""Completion Gate Enforcement — validates progress conditions before escrow release.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Return an error reason on violation, None on success
    - validate_completion_prerequisites chains all checks — first error wins
    - Attendance is checked here independently of ProgressTracking.can_complete

Design Decisions:
    - Pure functions over method dispatch: testable without mocks
    - Reasons as plain strings: the lifecycle service wraps the first one in CompletionGateError
"""

import math

from skillloop.core.progress_tracking import (
    COMPLETION_PROGRESS_THRESHOLD, MIN_TIME_FRACTION, ProgressTracking,
)


def minimum_time_required(duration: int) -> int:
    return math.floor(duration * MIN_TIME_FRACTION)


def check_progress_started(progress: ProgressTracking | None) -> str | None:
    if progress is None:
        return "Session progress tracking not found. Please start the session first."
    return None


def check_progress_threshold(progress: ProgressTracking) -> str | None:
    if progress.overall_progress < COMPLETION_PROGRESS_THRESHOLD:
        return (
            f"Progress is {progress.overall_progress}% but minimum "
            f"{COMPLETION_PROGRESS_THRESHOLD}% is required."
        )
    return None


def check_attendance(progress: ProgressTracking) -> str | None:
    if not progress.attendance_verified:
        return "Attendance verification is required."
    return None


def check_time_spent(progress: ProgressTracking, duration: int) -> str | None:
    required = minimum_time_required(duration)
    if progress.time_spent < required:
        return (
            f"Minimum {required} minutes required, but only "
            f"{progress.time_spent} minutes spent."
        )
    return None


def validate_completion_prerequisites(
    progress: ProgressTracking | None, duration: int,
) -> str | None:
    """Chain all completion checks. Returns first failure reason or None."""
    if progress is None:
        return check_progress_started(progress)
    return (
        check_progress_threshold(progress)
        or check_attendance(progress)
        or check_time_spent(progress, duration)
    )
