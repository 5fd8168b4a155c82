"""Derived submission status.

Status is never stored. It is recomputed on every read from the record's
fields, the task's due date and the current time, so editing a due date
reclassifies existing submissions.
"""
import enum
from datetime import datetime
from typing import Optional

from coursework.core.clock import as_utc


class SubmissionStatus(str, enum.Enum):
    NOT_SUBMITTED = "NOT_SUBMITTED"
    SUBMITTED_ON_TIME = "SUBMITTED_ON_TIME"
    SUBMITTED_LATE = "SUBMITTED_LATE"
    GRADED = "GRADED"
    DUE_UNSUBMITTED = "DUE_UNSUBMITTED"


class Timeliness(str, enum.Enum):
    ON_TIME = "ON_TIME"
    LATE = "LATE"
    NOT_SUBMITTED = "NOT_SUBMITTED"


def is_late(submitted_at: Optional[datetime], due_at: Optional[datetime]) -> bool:
    if submitted_at is None or due_at is None:
        return False
    return as_utc(submitted_at) > as_utc(due_at)


def derive_status(
    *,
    is_submitted: bool,
    submitted_at: Optional[datetime],
    grade: Optional[float],
    due_at: Optional[datetime],
    now: datetime,
) -> SubmissionStatus:
    if grade is not None:
        return SubmissionStatus.GRADED
    if is_submitted:
        if is_late(submitted_at, due_at):
            return SubmissionStatus.SUBMITTED_LATE
        return SubmissionStatus.SUBMITTED_ON_TIME
    if due_at is not None and as_utc(due_at) < as_utc(now):
        return SubmissionStatus.DUE_UNSUBMITTED
    return SubmissionStatus.NOT_SUBMITTED


def status_of(submission, task, now: datetime) -> SubmissionStatus:
    # no record yet behaves like a pending one
    if submission is None:
        return derive_status(
            is_submitted=False, submitted_at=None, grade=None, due_at=task.due_at, now=now
        )
    return derive_status(
        is_submitted=bool(submission.is_submitted),
        submitted_at=submission.submitted_at,
        grade=submission.grade,
        due_at=task.due_at,
        now=now,
    )


def late_by_minutes(submitted_at: Optional[datetime], due_at: Optional[datetime]) -> Optional[int]:
    if not is_late(submitted_at, due_at):
        return None
    return int((as_utc(submitted_at) - as_utc(due_at)).total_seconds() // 60)


def classify_timeliness(
    *,
    is_submitted: bool,
    submitted_at: Optional[datetime],
    due_at: Optional[datetime],
    now: datetime,
) -> Optional[Timeliness]:
    """Bucket one (task, student) pair; None when it does not count yet."""
    if due_at is None:
        return None
    if is_submitted and submitted_at is not None:
        return Timeliness.LATE if is_late(submitted_at, due_at) else Timeliness.ON_TIME
    if as_utc(due_at) < as_utc(now):
        return Timeliness.NOT_SUBMITTED
    return None
